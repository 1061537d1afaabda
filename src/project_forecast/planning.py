from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date
from typing import Callable, Protocol, Sequence

from .config import ForecastSettings
from .date_sync import PhaseChange, SyncResult, sync_project_phase_dates
from .errors import ForecastInputError
from .project_models import Phase, Project
from .scheduling import validate_project

logger = logging.getLogger(__name__)


class ProjectStore(Protocol):
    """Persistence boundary: whatever engine stores projects and their phases."""

    def get_project(self, project_id: str) -> Project: ...

    def list_phases(self, project_id: str) -> list[Phase]: ...

    def save(self, project: Project, phases: Sequence[Phase]) -> None: ...

    def delete_project(self, project_id: str) -> None: ...


class InMemoryStore:
    """Dict-backed store; ``save`` replaces a project and its whole phase set at once."""

    def __init__(self) -> None:
        self._projects: dict[str, Project] = {}
        self._phases: dict[str, list[Phase]] = {}

    def get_project(self, project_id: str) -> Project:
        try:
            return self._projects[project_id]
        except KeyError:
            raise ForecastInputError(f"Unknown project '{project_id}'") from None

    def list_phases(self, project_id: str) -> list[Phase]:
        return list(self._phases.get(project_id, []))

    def save(self, project: Project, phases: Sequence[Phase]) -> None:
        self._projects[project.id] = project
        self._phases[project.id] = list(phases)

    def delete_project(self, project_id: str) -> None:
        self._projects.pop(project_id, None)
        self._phases.pop(project_id, None)


class PhasePlanner:
    """
    Applies phase and project edits through the date synchronization rules.

    Edits to one project are serialized by a per-project lock so every sync
    sees a consistent snapshot of all phases; different projects never block
    each other. A rejected edit is not persisted.
    """

    def __init__(
        self,
        store: ProjectStore,
        settings: ForecastSettings | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._settings = settings or ForecastSettings()
        self._today = today
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, project_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(project_id, threading.Lock())

    def _apply(self, project: Project, phases: Sequence[Phase], change: PhaseChange) -> SyncResult:
        result = sync_project_phase_dates(project, phases, change, now=self._today(), settings=self._settings)
        if not result.ok:
            return result
        self._store.save(result.project or project, result.phases or ())
        for notice in result.notifications:
            logger.info("%s", notice)
        for warning in result.warnings:
            logger.warning("%s", warning)
        return result

    def create_project(self, project: Project) -> None:
        validate_project(project)
        with self._lock_for(project.id):
            self._store.save(project, [])

    def create_phase(self, phase: Phase) -> SyncResult:
        with self._lock_for(phase.project_id):
            project = self._store.get_project(phase.project_id)
            phases = self._store.list_phases(project.id)
            if any(existing.id == phase.id for existing in phases):
                raise ForecastInputError(f"Phase '{phase.id}' already exists", [phase.id])
            return self._apply(project, phases + [phase], PhaseChange("phase_created", phase))

    def update_phase(self, phase: Phase) -> SyncResult:
        with self._lock_for(phase.project_id):
            project = self._store.get_project(phase.project_id)
            phases = self._store.list_phases(project.id)
            if not any(existing.id == phase.id for existing in phases):
                raise ForecastInputError(f"Unknown phase '{phase.id}'", [phase.id])
            updated = [phase if existing.id == phase.id else existing for existing in phases]
            return self._apply(project, updated, PhaseChange("phase_updated", phase))

    def delete_phase(self, project_id: str, phase_id: str) -> SyncResult:
        with self._lock_for(project_id):
            project = self._store.get_project(project_id)
            phases = self._store.list_phases(project_id)
            removed = next((existing for existing in phases if existing.id == phase_id), None)
            if removed is None:
                raise ForecastInputError(f"Unknown phase '{phase_id}'", [phase_id])
            remaining = [existing for existing in phases if existing.id != phase_id]
            return self._apply(project, remaining, PhaseChange("phase_deleted", removed))

    def update_project_dates(
        self,
        project_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> SyncResult:
        with self._lock_for(project_id):
            project = self._store.get_project(project_id)
            edited = replace(
                project,
                start_date=start_date or project.start_date,
                end_date=end_date or project.end_date,
            )
            phases = self._store.list_phases(project_id)
            return self._apply(edited, phases, PhaseChange("project_updated"))

    def delete_project(self, project_id: str) -> None:
        """Remove a project; its phases go with it."""
        with self._lock_for(project_id):
            self._store.delete_project(project_id)
        with self._locks_guard:
            self._locks.pop(project_id, None)
