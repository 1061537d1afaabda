from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable

from .errors import ForecastInputError
from .project_models import CalendarEvent, DayDisplay, DayEstimate


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time())
    return start, start + timedelta(days=1)


def _check_event(event: CalendarEvent) -> None:
    if event.end_time < event.start_time:
        raise ForecastInputError(
            f"Event '{event.id or event.title or '?'}' ends {event.end_time} before it starts {event.start_time}"
        )


def event_touches_day(event: CalendarEvent, day: date) -> bool:
    """True when the event's span intersects the calendar day (zero-length events count on their day)."""
    day_start, day_end = _day_bounds(day)
    if event.start_time == event.end_time:
        return day_start <= event.start_time < day_end
    return event.start_time < day_end and event.end_time > day_start


def intersection_hours(event: CalendarEvent, day: date) -> float:
    """Hours of ``event`` falling inside ``day``; events crossing midnight are split."""
    _check_event(event)
    day_start, day_end = _day_bounds(day)
    overlap = min(event.end_time, day_end) - max(event.start_time, day_start)
    return max(0.0, overlap.total_seconds() / 3600.0)


def events_on_day(day: date, project_id: str, events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    """Events of ``project_id`` touching ``day``; planned and completed alike."""
    matching: list[CalendarEvent] = []
    for event in events:
        _check_event(event)
        if event.project_id == project_id and event_touches_day(event, day):
            matching.append(event)
    return matching


def resolve_day_display(
    day: date,
    project_id: str,
    estimates: Iterable[DayEstimate] | DayEstimate | None,
    events: Iterable[CalendarEvent],
) -> DayDisplay:
    """
    Decide what ``day`` shows for a project.

    - Any matching event blocks the estimate: the day shows event hours only.
    - Otherwise the day shows its estimate, if one exists.
    - Otherwise it shows nothing (0h).

    Estimate and event hours are never summed for the same day.
    """

    blocking = events_on_day(day, project_id, events)
    if blocking:
        hours = sum(intersection_hours(event, day) for event in blocking)
        return DayDisplay(date=day, hours=hours, source="event", events=tuple(blocking))

    if isinstance(estimates, DayEstimate):
        estimates = [estimates]
    todays = [estimate for estimate in estimates or () if estimate.date == day]
    if todays:
        phase_ids = {estimate.source_phase_id for estimate in todays}
        return DayDisplay(
            date=day,
            hours=sum(estimate.hours for estimate in todays),
            source="estimate",
            phase_id=todays[0].source_phase_id if len(phase_ids) == 1 else None,
        )

    return DayDisplay(date=day, hours=0.0, source="none")
