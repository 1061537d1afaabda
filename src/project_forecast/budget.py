from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .config import ForecastSettings
from .project_models import Phase, Project
from .recurrence import expand_recurring


@dataclass(frozen=True)
class BudgetAnalysis:
    """How much of a project's hour budget its phases claim."""

    total_allocated: float
    project_budget: float
    phase_ids: tuple[str, ...] = ()
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def remaining(self) -> float:
        return self.project_budget - self.total_allocated

    @property
    def overage(self) -> float:
        return max(0.0, -self.remaining)

    @property
    def utilization_percentage(self) -> float:
        if self.project_budget <= 0:
            return 0.0
        return self.total_allocated / self.project_budget * 100.0

    @property
    def is_over_budget(self) -> bool:
        return self.total_allocated > self.project_budget


def phase_allocation(project: Project, phase: Phase, settings: ForecastSettings | None = None) -> float:
    """
    Hours a phase claims from the project budget.

    A recurring phase claims its allocation once per occurrence inside the
    project range; on continuous projects that total is open-ended and counts 0.
    """

    if not phase.is_recurring:
        return phase.time_allocation_hours
    if project.continuous or project.end_date is None:
        return 0.0
    settings = settings or ForecastSettings()
    occurrences = expand_recurring(
        phase,
        project.start_date,
        project.end_date,
        anchor=project.start_date,
        until=min(phase.end_date, project.end_date),
        max_occurrences=settings.max_occurrences,
    )
    return len(occurrences) * phase.time_allocation_hours


def analyze_budget(
    project: Project,
    phases: Sequence[Phase],
    settings: ForecastSettings | None = None,
) -> BudgetAnalysis:
    settings = settings or ForecastSettings()
    total = sum(phase_allocation(project, phase, settings) for phase in phases)
    phase_ids = tuple(phase.id for phase in phases)
    budget = project.estimated_hours

    errors: list[str] = []
    warnings: list[str] = []
    if total > budget:
        errors.append(
            f"Phase budgets ({total:g}h) exceed project budget ({budget:g}h) by {total - budget:g}h; "
            f"review phases {', '.join(phase_ids)}"
        )
    elif budget > 0 and total / budget > settings.budget_warning_ratio:
        warnings.append(f"Budget utilization at {total / budget * 100:.1f}% - approaching project limit")

    return BudgetAnalysis(
        total_allocated=total,
        project_budget=budget,
        phase_ids=phase_ids,
        errors=errors,
        warnings=warnings,
    )
