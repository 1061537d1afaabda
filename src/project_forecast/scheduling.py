from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Iterator, Sequence

from .config import ForecastSettings
from .errors import ForecastInputError, InvariantViolation
from .project_models import (
    Allocation,
    DateWindow,
    DayEstimate,
    Holiday,
    Phase,
    Project,
    Segment,
    implicit_phase,
)
from .recurrence import expand_recurring, interval_span, validate_recurring_config
from .working_days import working_days

logger = logging.getLogger(__name__)

PhaseBounds = tuple[Phase, date, date]


def validate_project(project: Project) -> None:
    """Raise ForecastInputError when the project's budget or range is malformed."""

    if project.estimated_hours <= 0:
        raise ForecastInputError(
            f"Project '{project.id}' has non-positive estimated_hours={project.estimated_hours}"
        )
    if project.continuous:
        if project.end_date is not None:
            raise ForecastInputError(f"Continuous project '{project.id}' must not have an end_date")
        return
    if project.end_date is None:
        raise ForecastInputError(f"Project '{project.id}' is not continuous but has no end_date")
    if project.end_date <= project.start_date:
        raise ForecastInputError(
            f"Project '{project.id}' end {project.end_date} is not after start {project.start_date}"
        )


def phase_problems(phase: Phase) -> list[str]:
    """Allocation, range and recurrence problems of a single phase."""

    problems: list[str] = []
    if phase.time_allocation_hours <= 0:
        problems.append(f"non-positive time_allocation_hours={phase.time_allocation_hours}")
    if phase.start_date is not None and phase.start_date > phase.end_date:
        problems.append(f"start {phase.start_date} is after end {phase.end_date}")
    if phase.is_recurring:
        problems.extend(validate_recurring_config(phase.recurring_config))
    return problems


def assert_owned_by(project: Project, phase: Phase) -> None:
    if not phase.project_id:
        raise ForecastInputError(f"Phase '{phase.id}' has no project_id", [phase.id])
    if phase.project_id != project.id:
        raise ForecastInputError(
            f"Phase '{phase.id}' belongs to project '{phase.project_id}', not '{project.id}'", [phase.id]
        )


def exclusivity_conflict(phases: Sequence[Phase]) -> InvariantViolation | None:
    """A project holds explicit phases or a single recurring template, never both."""

    recurring = [p.id for p in phases if p.is_recurring]
    explicit = [p.id for p in phases if not p.is_recurring]
    if len(recurring) > 1:
        return InvariantViolation(
            f"Only one recurring phase is allowed per project; found {', '.join(recurring)}", recurring
        )
    if recurring and explicit:
        return InvariantViolation(
            f"Recurring phase '{recurring[0]}' cannot be combined with explicit phases {', '.join(explicit)}",
            recurring + explicit,
        )
    return None


def validate_phases(project: Project, phases: Sequence[Phase]) -> None:
    """Raise for phases the calculators cannot work with (garbage in is a programmer error)."""

    for phase in phases:
        assert_owned_by(project, phase)
        problems = phase_problems(phase)
        if problems:
            raise ForecastInputError(f"Phase '{phase.id}': {'; '.join(problems)}", [phase.id])
    conflict = exclusivity_conflict(phases)
    if conflict is not None:
        raise conflict


def phase_bounds(project: Project, phases: Iterable[Phase]) -> list[PhaseBounds]:
    """
    Non-recurring phases in deadline order with their effective start date.

    An explicit ``start_date`` wins; otherwise a phase starts the day after the
    previous deadline, or on the project start for the first phase.
    """

    bounds: list[PhaseBounds] = []
    previous_end: date | None = None
    for phase in sorted((p for p in phases if not p.is_recurring), key=lambda p: p.end_date):
        if phase.start_date is not None:
            start = phase.start_date
        elif previous_end is None:
            start = project.start_date
        else:
            start = max(previous_end + timedelta(days=1), project.start_date)
        bounds.append((phase, start, phase.end_date))
        previous_end = phase.end_date
    return bounds


def effective_end(project: Project, horizon: date | None = None) -> date:
    """Project end, or the caller's horizon for continuous projects."""
    if not project.continuous and project.end_date is not None:
        return project.end_date
    if horizon is None:
        raise ForecastInputError(f"Continuous project '{project.id}' needs a horizon to be segmented")
    return horizon


def segment_phases(project: Project, phases: Sequence[Phase], horizon: date | None = None) -> list[Segment]:
    """
    Partition ``[project.start_date, effective end]`` into phase-owned segments.

    - No phases: one segment for the implicit whole-project phase.
    - Phases are ordered by deadline, never by manual index.
    - Gaps between phases produce no segment.
    - Recurring phases are skipped; they are expanded into occurrences instead.
    """

    validate_project(project)
    validate_phases(project, phases)
    end = effective_end(project, horizon)

    if not phases:
        if end < project.start_date:
            return []
        return [Segment(phase=implicit_phase(project, end), start_date=project.start_date, end_date=end)]

    segments: list[Segment] = []
    for phase, start, finish in phase_bounds(project, phases):
        lower = max(start, project.start_date)
        upper = min(finish, end)
        if lower > upper:
            continue
        segments.append(Segment(phase=phase, start_date=lower, end_date=upper))
    return segments


def iter_allocations(
    project: Project,
    phases: Sequence[Phase],
    window: DateWindow,
    horizon: date | None = None,
    settings: ForecastSettings | None = None,
) -> Iterator[Allocation]:
    """Yield every segment and recurring occurrence that can put hours into ``window``."""

    settings = settings or ForecastSettings()
    recurring = [p for p in phases if p.is_recurring]

    if project.continuous and horizon is None:
        horizon = max([window.end] + [p.end_date for p in phases if not p.is_recurring])

    for segment in segment_phases(project, phases, horizon):
        # An open-ended budget cannot be spread over days.
        if segment.is_implicit and project.continuous:
            continue
        if segment.end_date < window.start or segment.start_date > window.end:
            continue
        yield segment

    for phase in recurring:
        lookahead = window.end + interval_span(phase.recurring_config)
        until = lookahead if project.continuous else min(phase.end_date, effective_end(project))
        yield from expand_recurring(
            phase,
            window.start,
            lookahead,
            anchor=project.start_date,
            until=until,
            max_occurrences=settings.max_occurrences,
        )


def allocation_working_days(allocation: Allocation, project: Project, holidays: Sequence[Holiday]) -> list[date]:
    start = max(allocation.start_date, project.start_date)
    end = allocation.end_date
    if not project.continuous and project.end_date is not None:
        end = min(end, project.end_date)
    return working_days(start, end, project.working_day_mask, holidays)


def _allocation_estimates(allocation: Allocation, project: Project, holidays: Sequence[Holiday]) -> list[DayEstimate]:
    days = allocation_working_days(allocation, project, holidays)
    if not days:
        logger.debug(
            "No working days for phase '%s' between %s and %s; no estimate",
            allocation.phase.id,
            allocation.start_date,
            allocation.end_date,
        )
        return []
    per_day = allocation.hours / len(days)
    return [DayEstimate(date=day, hours=per_day, source_phase_id=allocation.phase.id) for day in days]


def resolve_window(project: Project, window: DateWindow | None) -> DateWindow:
    if window is not None:
        if window.end < window.start:
            raise ForecastInputError(f"Window end {window.end} precedes start {window.start}")
        return window
    if project.continuous or project.end_date is None:
        raise ForecastInputError(f"Continuous project '{project.id}' needs an explicit window")
    return DateWindow(project.start_date, project.end_date)


def compute_day_estimates(
    project: Project,
    phases: Sequence[Phase],
    holidays: Iterable[Holiday] = (),
    window: DateWindow | None = None,
    horizon: date | None = None,
    settings: ForecastSettings | None = None,
) -> list[DayEstimate]:
    """
    Hours per working day for every phase-owned day in ``window``, ascending by date.

    - Each segment/occurrence divides its allocation evenly over its own working
      days; the division uses the full allocation range, so the per-day value
      does not depend on the window being viewed.
    - Allocations without working days yield nothing.
    - Nothing is cached: every call recomputes from the given state.
    """

    validate_project(project)
    window = resolve_window(project, window)
    holiday_list = list(holidays)

    estimates: list[DayEstimate] = []
    for allocation in iter_allocations(project, phases, window, horizon, settings):
        estimates.extend(
            estimate for estimate in _allocation_estimates(allocation, project, holiday_list) if estimate.date in window
        )
    estimates.sort(key=lambda estimate: estimate.date)
    return estimates


def find_degenerate_allocations(
    project: Project,
    phases: Sequence[Phase],
    holidays: Iterable[Holiday] = (),
    window: DateWindow | None = None,
    horizon: date | None = None,
    settings: ForecastSettings | None = None,
) -> list[Allocation]:
    """Segments and occurrences touching ``window`` that have no working day to carry their hours."""

    validate_project(project)
    window = resolve_window(project, window)
    holiday_list = list(holidays)
    return [
        allocation
        for allocation in iter_allocations(project, phases, window, horizon, settings)
        if allocation.end_date >= window.start
        and allocation.start_date <= window.end
        and not allocation_working_days(allocation, project, holiday_list)
    ]
