import datetime as dt

import pytest

from project_forecast.errors import ForecastInputError, InvariantViolation
from project_forecast.project_models import WORKWEEK, DateWindow, Holiday, Phase, Project, RecurringConfig
from project_forecast.scheduling import (
    compute_day_estimates,
    find_degenerate_allocations,
    phase_bounds,
    segment_phases,
)


def _project(**overrides):
    values = dict(
        id="p",
        estimated_hours=120,
        start_date=dt.date(2025, 1, 1),
        end_date=dt.date(2025, 3, 31),
        working_day_mask=WORKWEEK,
    )
    values.update(overrides)
    return Project(**values)


def _phase(phase_id, end, hours, start=None, project_id="p"):
    return Phase(id=phase_id, project_id=project_id, end_date=end, time_allocation_hours=hours, start_date=start)


def test_project_without_phases_gets_one_implicit_segment():
    project = _project()

    segments = segment_phases(project, [])

    assert len(segments) == 1
    segment = segments[0]
    assert segment.is_implicit
    assert segment.start_date == project.start_date
    assert segment.end_date == project.end_date
    assert segment.hours == 120


def test_phases_are_ordered_by_deadline_and_inherit_starts():
    late = _phase("late", dt.date(2025, 2, 28), 20)
    early = _phase("early", dt.date(2025, 1, 31), 10)

    segments = segment_phases(_project(), [late, early])

    assert [s.phase.id for s in segments] == ["early", "late"]
    assert segments[0].start_date == dt.date(2025, 1, 1)
    assert segments[1].start_date == dt.date(2025, 2, 1)
    assert segments[1].end_date == dt.date(2025, 2, 28)


def test_gap_between_phases_is_not_covered():
    first = _phase("a", dt.date(2025, 1, 31), 10, start=dt.date(2025, 1, 1))
    second = _phase("b", dt.date(2025, 3, 31), 10, start=dt.date(2025, 3, 1))

    segments = segment_phases(_project(), [first, second])

    for segment in segments:
        assert not (segment.start_date <= dt.date(2025, 2, 15) <= segment.end_date)


def test_segments_are_clipped_to_the_project_range():
    phase = _phase("a", dt.date(2025, 4, 15), 10, start=dt.date(2025, 3, 1))

    segments = segment_phases(_project(), [phase])

    assert segments[0].end_date == dt.date(2025, 3, 31)


def test_phase_bounds_follow_deadlines():
    bounds = phase_bounds(_project(), [_phase("b", dt.date(2025, 2, 10), 1), _phase("a", dt.date(2025, 1, 10), 1)])

    assert [(phase.id, start, end) for phase, start, end in bounds] == [
        ("a", dt.date(2025, 1, 1), dt.date(2025, 1, 10)),
        ("b", dt.date(2025, 1, 11), dt.date(2025, 2, 10)),
    ]


def test_single_phase_spreads_hours_evenly_over_working_days():
    # 2025-01-01 .. 2025-02-15 holds 33 weekdays
    phase = _phase("design", dt.date(2025, 2, 15), 40)

    estimates = compute_day_estimates(_project(), [phase])

    assert len(estimates) == 33
    assert all(e.hours == pytest.approx(40 / 33) for e in estimates)
    assert estimates[0].hours == pytest.approx(1.212, abs=1e-3)
    assert all(e.source_phase_id == "design" for e in estimates)
    assert sum(e.hours for e in estimates) == pytest.approx(40)
    assert estimates[-1].date == dt.date(2025, 2, 14)


def test_holidays_keep_the_phase_total():
    phase = _phase("design", dt.date(2025, 2, 15), 40)
    holidays = [Holiday(start_date=dt.date(2025, 1, 6), end_date=dt.date(2025, 1, 10))]

    estimates = compute_day_estimates(_project(), [phase], holidays)

    assert len(estimates) == 28
    assert sum(e.hours for e in estimates) == pytest.approx(40)
    assert all(not dt.date(2025, 1, 6) <= e.date <= dt.date(2025, 1, 10) for e in estimates)


def test_window_does_not_change_per_day_hours():
    phase = _phase("design", dt.date(2025, 2, 15), 40)
    window = DateWindow(dt.date(2025, 2, 1), dt.date(2025, 2, 28))

    estimates = compute_day_estimates(_project(), [phase], window=window)

    assert [e.date for e in estimates][0] == dt.date(2025, 2, 3)
    assert len(estimates) == 10
    assert all(e.hours == pytest.approx(40 / 33) for e in estimates)


def test_implicit_phase_uses_project_budget():
    estimates = compute_day_estimates(_project(end_date=dt.date(2025, 1, 10)), [])

    # Jan 1-3 and Jan 6-10
    assert len(estimates) == 8
    assert sum(e.hours for e in estimates) == pytest.approx(120)
    assert {e.source_phase_id for e in estimates} == {"p:implicit"}


def test_phase_without_working_days_yields_nothing_and_is_reported():
    weekend = _phase("weekend", dt.date(2025, 1, 5), 8, start=dt.date(2025, 1, 4))

    assert compute_day_estimates(_project(), [weekend]) == []
    degenerate = find_degenerate_allocations(_project(), [weekend])
    assert [a.phase.id for a in degenerate] == ["weekend"]


def test_recurring_phase_divides_each_occurrence_over_its_own_days():
    config = RecurringConfig(type="weekly", weekly_day_of_week=0)
    phase = Phase(
        id="sync",
        project_id="p",
        start_date=dt.date(2025, 1, 7),
        end_date=dt.date(2025, 3, 31),
        time_allocation_hours=3,
        is_recurring=True,
        recurring_config=config,
    )
    window = DateWindow(dt.date(2025, 1, 7), dt.date(2025, 2, 3))

    estimates = compute_day_estimates(_project(), [phase], window=window)

    assert len(estimates) == 20
    assert all(e.hours == pytest.approx(0.6) for e in estimates)
    assert sum(e.hours for e in estimates) == pytest.approx(12)


def test_continuous_project_without_phases_has_no_estimates():
    project = _project(end_date=None, continuous=True)
    window = DateWindow(dt.date(2025, 1, 1), dt.date(2025, 1, 31))

    assert compute_day_estimates(project, [], window=window) == []


def test_continuous_project_phases_are_scheduled():
    project = _project(end_date=None, continuous=True)
    phase = _phase("jan", dt.date(2025, 1, 31), 46)
    window = DateWindow(dt.date(2025, 1, 1), dt.date(2025, 1, 31))

    estimates = compute_day_estimates(project, [phase], window=window)

    assert len(estimates) == 23
    assert all(e.hours == pytest.approx(2) for e in estimates)


def test_continuous_project_needs_a_window():
    with pytest.raises(ForecastInputError):
        compute_day_estimates(_project(end_date=None, continuous=True), [])


def test_non_positive_allocation_is_rejected():
    with pytest.raises(ForecastInputError) as excinfo:
        segment_phases(_project(), [_phase("a", dt.date(2025, 1, 31), 0)])

    assert excinfo.value.phase_ids == ("a",)


def test_recurring_and_explicit_phases_cannot_be_mixed():
    recurring = Phase(
        id="r",
        project_id="p",
        end_date=dt.date(2025, 3, 31),
        time_allocation_hours=1,
        is_recurring=True,
        recurring_config=RecurringConfig(type="daily"),
    )

    with pytest.raises(InvariantViolation):
        segment_phases(_project(), [recurring, _phase("a", dt.date(2025, 1, 31), 5)])


def test_bounded_project_needs_end_after_start():
    with pytest.raises(ForecastInputError):
        segment_phases(_project(end_date=dt.date(2025, 1, 1)), [])


def test_recurring_phase_covers_days_after_its_last_pattern_date():
    phase = Phase(
        id="report",
        project_id="p",
        end_date=dt.date(2025, 3, 31),
        time_allocation_hours=10,
        is_recurring=True,
        recurring_config=RecurringConfig(type="monthly", monthly_date=15),
    )

    estimates = compute_day_estimates(_project(), [phase])

    tail = [e for e in estimates if e.date > dt.date(2025, 3, 15)]
    assert len(tail) == 11
    assert tail[-1].date == dt.date(2025, 3, 31)
    assert all(e.hours == pytest.approx(10 / 11) for e in tail)
