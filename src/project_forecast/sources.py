from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Iterable, Protocol

from .project_models import CalendarEvent, DateWindow, Holiday


class HolidaySource(Protocol):
    def list_holidays(self, window: DateWindow) -> list[Holiday]: ...


class EventSource(Protocol):
    def list_events(self, project_id: str, window: DateWindow) -> list[CalendarEvent]: ...


class InMemorySource:
    """Holiday and event source over plain lists, e.g. the contents of a forecast file."""

    def __init__(self, holidays: Iterable[Holiday] = (), events: Iterable[CalendarEvent] = ()) -> None:
        self._holidays = list(holidays)
        self._events = list(events)

    def list_holidays(self, window: DateWindow) -> list[Holiday]:
        return [h for h in self._holidays if h.end_date >= window.start and h.start_date <= window.end]

    def list_events(self, project_id: str, window: DateWindow) -> list[CalendarEvent]:
        window_start = datetime.combine(window.start, time())
        window_end = datetime.combine(window.end, time()) + timedelta(days=1)
        return [
            event
            for event in self._events
            if event.project_id == project_id
            and event.start_time < window_end
            and (event.end_time > window_start or event.start_time == event.end_time >= window_start)
        ]
