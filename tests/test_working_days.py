import datetime as dt

import pytest

from project_forecast.project_models import WORKWEEK, Holiday, WeekdayMask
from project_forecast.working_days import count_working_days, is_working_day, working_days


def test_workweek_skips_weekends():
    # 2025-01-01 is a Wednesday
    days = working_days(dt.date(2025, 1, 1), dt.date(2025, 1, 7), WORKWEEK)

    assert days == [
        dt.date(2025, 1, 1),
        dt.date(2025, 1, 2),
        dt.date(2025, 1, 3),
        dt.date(2025, 1, 6),
        dt.date(2025, 1, 7),
    ]


def test_holidays_are_never_working_days():
    holidays = [Holiday(start_date=dt.date(2025, 1, 6), end_date=dt.date(2025, 1, 8), name="Retreat")]

    days = working_days(dt.date(2025, 1, 1), dt.date(2025, 1, 10), WORKWEEK, holidays)

    assert dt.date(2025, 1, 7) not in days
    assert days == [dt.date(2025, 1, 1), dt.date(2025, 1, 2), dt.date(2025, 1, 3), dt.date(2025, 1, 9), dt.date(2025, 1, 10)]
    assert not is_working_day(dt.date(2025, 1, 8), WORKWEEK, holidays)


def test_reversed_range_is_empty():
    assert working_days(dt.date(2025, 1, 10), dt.date(2025, 1, 1), WeekdayMask()) == []
    assert count_working_days(dt.date(2025, 1, 10), dt.date(2025, 1, 1), WeekdayMask()) == 0


def test_single_day_range():
    assert working_days(dt.date(2025, 1, 6), dt.date(2025, 1, 6), WORKWEEK) == [dt.date(2025, 1, 6)]
    assert working_days(dt.date(2025, 1, 4), dt.date(2025, 1, 4), WORKWEEK) == []


def test_result_matches_mask_and_holidays_for_every_day():
    mask = WeekdayMask.from_days(["monday", "Wednesday", "friday"])
    holidays = [Holiday(start_date=dt.date(2025, 2, 12), end_date=dt.date(2025, 2, 12))]
    start, end = dt.date(2025, 2, 1), dt.date(2025, 2, 28)

    days = working_days(start, end, mask, holidays)

    current = start
    while current <= end:
        expected = current.weekday() in (0, 2, 4) and current != dt.date(2025, 2, 12)
        assert (current in days) is expected
        current += dt.timedelta(days=1)
    assert days == sorted(set(days))


def test_weekday_mask_rejects_unknown_names():
    with pytest.raises(ValueError):
        WeekdayMask.from_days(["funday"])
