import datetime as dt
import logging
from itertools import islice

import pytest

from project_forecast.errors import ForecastInputError
from project_forecast.project_models import Phase, RecurringConfig
from project_forecast.recurrence import (
    describe_recurrence,
    expand_recurring,
    pattern_dates,
    validate_recurring_config,
)


def _recurring(config, start=None, end=dt.date(2025, 12, 31), hours=3):
    return Phase(
        id="r",
        project_id="p",
        start_date=start,
        end_date=end,
        time_allocation_hours=hours,
        is_recurring=True,
        recurring_config=config,
    )


def test_weekly_occurrences_cover_the_days_up_to_each_monday():
    phase = _recurring(RecurringConfig(type="weekly", weekly_day_of_week=0), start=dt.date(2025, 1, 7))

    occurrences = expand_recurring(phase, dt.date(2025, 1, 7), dt.date(2025, 2, 3))

    assert [o.occurrence_date for o in occurrences] == [
        dt.date(2025, 1, 13),
        dt.date(2025, 1, 20),
        dt.date(2025, 1, 27),
        dt.date(2025, 2, 3),
    ]
    assert [o.start_date for o in occurrences] == [
        dt.date(2025, 1, 7),
        dt.date(2025, 1, 14),
        dt.date(2025, 1, 21),
        dt.date(2025, 1, 28),
    ]
    assert [o.number for o in occurrences] == [1, 2, 3, 4]
    assert all(o.hours == 3 for o in occurrences)


def test_occurrence_numbers_count_from_the_series_start():
    phase = _recurring(RecurringConfig(type="weekly", weekly_day_of_week=0), start=dt.date(2025, 1, 7))

    occurrences = expand_recurring(phase, dt.date(2025, 1, 21), dt.date(2025, 2, 3))

    assert [o.number for o in occurrences] == [3, 4]
    assert occurrences[0].start_date == dt.date(2025, 1, 21)


def test_monthly_date_is_clamped_to_short_months():
    config = RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=30)

    dates = list(islice(pattern_dates(config, dt.date(2025, 1, 1)), 3))

    assert dates == [dt.date(2025, 1, 30), dt.date(2025, 2, 28), dt.date(2025, 3, 30)]


def test_monthly_nth_weekday():
    config = RecurringConfig(type="monthly", monthly_week_of_month=2, monthly_day_of_week=1)

    dates = list(islice(pattern_dates(config, dt.date(2025, 1, 1)), 3))

    assert dates == [dt.date(2025, 1, 14), dt.date(2025, 2, 11), dt.date(2025, 3, 11)]


def test_daily_interval():
    phase = _recurring(RecurringConfig(type="daily", interval=3), start=dt.date(2025, 1, 1))

    occurrences = expand_recurring(phase, dt.date(2025, 1, 1), dt.date(2025, 1, 9))

    assert [o.occurrence_date for o in occurrences] == [dt.date(2025, 1, 1), dt.date(2025, 1, 4), dt.date(2025, 1, 7)]
    assert occurrences[1].start_date == dt.date(2025, 1, 2)


def test_expansion_stops_at_phase_end():
    phase = _recurring(RecurringConfig(type="daily"), start=dt.date(2025, 1, 1), end=dt.date(2025, 1, 5))

    occurrences = expand_recurring(phase, dt.date(2025, 1, 1), dt.date(2025, 1, 31))

    assert occurrences[-1].occurrence_date == dt.date(2025, 1, 5)
    assert len(occurrences) == 5


def test_expansion_is_capped(caplog):
    phase = _recurring(RecurringConfig(type="daily"), start=dt.date(2025, 1, 1))

    with caplog.at_level(logging.WARNING, logger="project_forecast"):
        occurrences = expand_recurring(phase, dt.date(2025, 1, 1), dt.date(2025, 1, 31), max_occurrences=5)

    assert len(occurrences) == 5
    assert "truncated" in caplog.text


def test_expanding_a_plain_phase_is_rejected():
    plain = Phase(id="a", project_id="p", end_date=dt.date(2025, 1, 31), time_allocation_hours=1)

    with pytest.raises(ForecastInputError):
        expand_recurring(plain, dt.date(2025, 1, 1), dt.date(2025, 1, 31))


def test_validation_messages():
    assert validate_recurring_config(RecurringConfig(type="daily")) == []
    assert validate_recurring_config(None) == ["Recurring phase must have a recurrence configuration"]

    weekly = validate_recurring_config(RecurringConfig(type="weekly"))
    assert any("day of week" in message for message in weekly)

    monthly = validate_recurring_config(
        RecurringConfig(type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=5, monthly_day_of_week=1)
    )
    assert monthly == ["Monthly week of month must be between 1 and 4"]

    assert validate_recurring_config(RecurringConfig(type="daily", interval=0))


def test_describe_recurrence():
    assert describe_recurrence(RecurringConfig(type="daily")) == "Every day"
    assert describe_recurrence(RecurringConfig(type="weekly", interval=2, weekly_day_of_week=0)) == (
        "Every 2 weeks on Monday"
    )
    assert describe_recurrence(RecurringConfig(type="monthly", monthly_date=1)) == "Every month on the 1st"
    assert describe_recurrence(
        RecurringConfig(type="monthly", monthly_week_of_month=2, monthly_day_of_week=1)
    ) == "Every month on the 2nd Tuesday"


def test_last_occurrence_closes_at_the_series_end():
    phase = _recurring(RecurringConfig(type="monthly", monthly_date=15), end=dt.date(2025, 3, 31))

    occurrences = expand_recurring(
        phase, dt.date(2025, 1, 1), dt.date(2025, 6, 30), anchor=dt.date(2025, 1, 1), until=dt.date(2025, 3, 31)
    )

    assert [o.occurrence_date for o in occurrences] == [
        dt.date(2025, 1, 15),
        dt.date(2025, 2, 15),
        dt.date(2025, 3, 15),
        dt.date(2025, 3, 31),
    ]
    assert occurrences[-1].start_date == dt.date(2025, 3, 16)
    assert occurrences[-1].number == 4


def test_window_end_does_not_close_the_series():
    phase = _recurring(RecurringConfig(type="monthly", monthly_date=15), start=dt.date(2025, 1, 1))

    occurrences = expand_recurring(phase, dt.date(2025, 1, 1), dt.date(2025, 2, 20))

    assert occurrences[-1].occurrence_date == dt.date(2025, 2, 15)


def test_pattern_dates_reject_incomplete_configs():
    with pytest.raises(ForecastInputError):
        next(pattern_dates(RecurringConfig(type="weekly"), dt.date(2025, 1, 1)))
