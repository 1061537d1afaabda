from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Literal, Sequence

from .budget import analyze_budget
from .config import ForecastSettings
from .errors import ForecastError, ForecastInputError, InvariantViolation
from .project_models import Phase, Project
from .scheduling import (
    PhaseBounds,
    assert_owned_by,
    exclusivity_conflict,
    phase_bounds,
    phase_problems,
    validate_project,
)

logger = logging.getLogger(__name__)

ChangeKind = Literal["phase_created", "phase_updated", "phase_deleted", "project_updated"]
CHANGE_KINDS: tuple[str, ...] = ("phase_created", "phase_updated", "phase_deleted", "project_updated")


@dataclass(frozen=True)
class PhaseChange:
    """The mutation that triggered a synchronization; ``phase`` is unset for project edits."""

    kind: ChangeKind
    phase: Phase | None = None


@dataclass(frozen=True)
class DateCorrection:
    """An automatic project date adjustment the caller must surface to the user."""

    field: Literal["start_date", "end_date"]
    old: date | None
    new: date
    reason: str


@dataclass(frozen=True)
class SyncResult:
    """
    Outcome of a synchronization.

    ``project`` is only set when the project had to be corrected; ``phases`` is
    the validated phase set in deadline order. With errors, neither is set and
    nothing may be persisted.
    """

    project: Project | None = None
    phases: tuple[Phase, ...] | None = None
    corrections: tuple[DateCorrection, ...] = ()
    errors: tuple[ForecastError, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def notifications(self) -> list[str]:
        return [correction.reason for correction in self.corrections]

    def raise_for_errors(self) -> None:
        if self.errors:
            raise self.errors[0]


def _check_change(change: PhaseChange, phases: Sequence[Phase]) -> None:
    if change.kind not in CHANGE_KINDS:
        raise ForecastInputError(f"Unknown change kind '{change.kind}'")
    if change.kind == "project_updated":
        return
    if change.phase is None:
        raise ForecastInputError(f"Change '{change.kind}' needs the phase it is about")
    present = any(phase.id == change.phase.id for phase in phases)
    if change.kind == "phase_deleted" and present:
        raise ForecastInputError(f"Deleted phase '{change.phase.id}' is still in the phase set", [change.phase.id])
    if change.kind != "phase_deleted" and not present:
        raise ForecastInputError(f"Changed phase '{change.phase.id}' is missing from the phase set", [change.phase.id])


def range_conflicts(project: Project, phases: Sequence[Phase]) -> list[ForecastError]:
    """Overlapping or empty effective ranges among the non-recurring phases."""

    conflicts: list[ForecastError] = []
    bounds: list[PhaseBounds] = phase_bounds(project, phases)
    empty: set[str] = set()

    for index, (phase, start, end) in enumerate(bounds):
        if start <= end:
            continue
        empty.add(phase.id)
        previous = bounds[index - 1][0] if index > 0 and phase.start_date is None else None
        if previous is not None and previous.end_date == end:
            conflicts.append(
                InvariantViolation(
                    f"Phases '{previous.id}' and '{phase.id}' share the deadline {end}; "
                    f"give '{phase.id}' a later end date",
                    [previous.id, phase.id],
                )
            )
        else:
            conflicts.append(
                ForecastInputError(
                    f"Phase '{phase.id}' ends {end} before it starts {start}",
                    [phase.id],
                )
            )

    for i, (first, first_start, first_end) in enumerate(bounds):
        if first.id in empty:
            continue
        for second, second_start, second_end in bounds[i + 1 :]:
            if second.id in empty:
                continue
            if second_start <= first_end and first_start <= second_end:
                conflicts.append(
                    InvariantViolation(
                        f"Phase '{second.id}' ({second_start} - {second_end}) overlaps phase "
                        f"'{first.id}' ({first_start} - {first_end})",
                        [first.id, second.id],
                    )
                )
    return conflicts


def _phase_start(project: Project, phase: Phase) -> date:
    return phase.start_date if phase.start_date is not None else project.start_date


def _corrections(project: Project, phases: Sequence[Phase], change: PhaseChange) -> list[DateCorrection]:
    corrections: list[DateCorrection] = []
    if not phases:
        return corrections

    earliest = min(phases, key=lambda p: _phase_start(project, p))
    earliest_start = _phase_start(project, earliest)
    if earliest_start < project.start_date:
        corrections.append(
            DateCorrection(
                field="start_date",
                old=project.start_date,
                new=earliest_start,
                reason=f"Project start date adjusted to {earliest_start.isoformat()} "
                f"to encompass phase '{earliest.id}'",
            )
        )

    if project.continuous or project.end_date is None:
        return corrections

    latest = max(phases, key=lambda p: p.end_date)
    if latest.end_date > project.end_date:
        corrections.append(
            DateCorrection(
                field="end_date",
                old=project.end_date,
                new=latest.end_date,
                reason=f"Project end date adjusted to {latest.end_date.isoformat()} "
                f"to encompass phase '{latest.id}'",
            )
        )
    elif (
        change.kind == "phase_deleted"
        and change.phase is not None
        and change.phase.end_date >= project.end_date
        and latest.end_date < project.end_date
        # the end must stay after the start
        and latest.end_date > min(project.start_date, earliest_start)
    ):
        corrections.append(
            DateCorrection(
                field="end_date",
                old=project.end_date,
                new=latest.end_date,
                reason=f"Project end date moved to {latest.end_date.isoformat()}, "
                f"the deadline of phase '{latest.id}', after deleting phase '{change.phase.id}'",
            )
        )
    return corrections


def sync_project_phase_dates(
    project: Project,
    phases: Sequence[Phase],
    change: PhaseChange | None = None,
    now: date | None = None,
    settings: ForecastSettings | None = None,
) -> SyncResult:
    """
    Keep a project's range and its phases' ranges consistent after a mutation.

    ``phases`` is the complete phase set as it would be after the mutation.

    - Phases beyond the project range extend the project; extensions are
      returned as corrections, never as errors.
    - Deleting the latest phase pulls the project end back to the new latest
      deadline; deleting the only phase leaves the project untouched.
    - Overlaps, explicit phases mixed with a recurring template, non-positive
      allocations and bad recurrence patterns are returned as errors and
      nothing is applied.
    - Malformed arguments (foreign phases, a bounded project without end
      date, a change that does not match the phase set) raise.

    The function is pure; persisting the result is up to the caller.
    """

    change = change or PhaseChange("project_updated")
    _check_change(change, phases)
    validate_project(project)
    for phase in phases:
        assert_owned_by(project, phase)

    errors: list[ForecastError] = []
    for phase in phases:
        problems = phase_problems(phase)
        if problems:
            errors.append(ForecastInputError(f"Phase '{phase.id}': {'; '.join(problems)}", [phase.id]))
    conflict = exclusivity_conflict(phases)
    if conflict is not None:
        errors.append(conflict)
    if not errors:
        errors.extend(range_conflicts(project, phases))
    if errors:
        logger.info("Rejected %s on project '%s': %s", change.kind, project.id, "; ".join(map(str, errors)))
        return SyncResult(errors=tuple(errors))

    corrections = _corrections(project, phases, change)
    updated: Project | None = None
    if corrections:
        updated = replace(project, **{correction.field: correction.new for correction in corrections})
        for correction in corrections:
            logger.info("Project '%s': %s", project.id, correction.reason)

    warnings: list[str] = []
    effective_project = updated or project
    if phases:
        budget = analyze_budget(effective_project, phases, settings)
        warnings.extend(budget.errors)
        warnings.extend(budget.warnings)

    today = now or date.today()
    created = change.phase if change.kind == "phase_created" else None
    if created is not None and created.time_allocation_hours > 0 and created.end_date < today:
        warnings.append(
            f"Phase '{created.id}' ends {created.end_date.isoformat()}, before today ({today.isoformat()}); "
            "its hours can no longer be scheduled"
        )

    ordered = tuple(sorted(phases, key=lambda p: p.end_date))
    return SyncResult(project=updated, phases=ordered, corrections=tuple(corrections), warnings=tuple(warnings))


def phase_coverage_days(phases: Sequence[Phase]) -> int | None:
    """Days between the earliest explicit phase start and the latest deadline."""
    starts = [phase.start_date for phase in phases if phase.start_date is not None]
    if not phases or not starts:
        return None
    return (max(phase.end_date for phase in phases) - min(starts)).days
