from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Sequence

from .blocking import resolve_day_display
from .config import ForecastSettings
from .project_models import Allocation, CalendarEvent, DateWindow, DayDisplay, Holiday, Phase, Project
from .scheduling import compute_day_estimates, find_degenerate_allocations, resolve_window
from .sources import EventSource, HolidaySource


@dataclass(frozen=True)
class Forecast:
    """Per-day view of a project over a window, plus the allocations that could not be placed."""

    project: Project
    window: DateWindow
    days: list[DayDisplay] = field(default_factory=list)
    degenerate: list[Allocation] = field(default_factory=list)

    @property
    def estimate_hours(self) -> float:
        return sum(day.hours for day in self.days if day.source == "estimate")

    @property
    def event_hours(self) -> float:
        return sum(day.hours for day in self.days if day.source == "event")

    @property
    def total_hours(self) -> float:
        return self.estimate_hours + self.event_hours


def forecast_days(
    project: Project,
    phases: Sequence[Phase],
    holidays: Iterable[Holiday] = (),
    events: Iterable[CalendarEvent] = (),
    window: DateWindow | None = None,
    settings: ForecastSettings | None = None,
    include_empty: bool = False,
) -> Forecast:
    """
    Resolve every day of ``window`` for a project.

    Days with neither estimate nor event are left out unless ``include_empty``.
    """

    window = resolve_window(project, window)
    holiday_list = list(holidays)
    event_list = [event for event in events if event.project_id == project.id]

    estimates = compute_day_estimates(project, phases, holiday_list, window, settings=settings)
    by_date: dict[date, list] = {}
    for estimate in estimates:
        by_date.setdefault(estimate.date, []).append(estimate)

    days: list[DayDisplay] = []
    for day in window.days():
        display = resolve_day_display(day, project.id, by_date.get(day), event_list)
        if include_empty or display.source != "none":
            days.append(display)

    degenerate = find_degenerate_allocations(project, phases, holiday_list, window, settings=settings)
    return Forecast(project=project, window=window, days=days, degenerate=degenerate)


def forecast_from_sources(
    project: Project,
    phases: Sequence[Phase],
    holiday_source: HolidaySource,
    event_source: EventSource,
    window: DateWindow | None = None,
    settings: ForecastSettings | None = None,
) -> Forecast:
    """Fetch holidays and events for the window from collaborators, then forecast."""

    window = resolve_window(project, window)
    # Allocations can reach beyond the window, so holidays are fetched for the whole project span.
    latest = max([window.end, project.end_date or window.end] + [phase.end_date for phase in phases])
    holiday_window = DateWindow(min(window.start, project.start_date), latest)
    return forecast_days(
        project,
        phases,
        holiday_source.list_holidays(holiday_window),
        event_source.list_events(project.id, window),
        window,
        settings,
    )
