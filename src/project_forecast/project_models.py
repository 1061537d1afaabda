from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Literal


RecurrenceType = Literal["daily", "weekly", "monthly"]
"""Allowed recurrence frequencies for a recurring phase."""

MonthlyPattern = Literal["date", "dayOfWeek"]
"""Monthly recurrences either fall on a day number or on the nth weekday of the month."""

DaySource = Literal["estimate", "event", "none"]
"""What a day display is driven by: a computed estimate, actual events, or nothing."""

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
"""Weekday names indexed by ``date.weekday()`` (0=Monday)."""

IMPLICIT_PHASE_SUFFIX = ":implicit"


@dataclass(frozen=True)
class WeekdayMask:
    """Per-weekday switch deciding which weekdays can carry estimated work."""

    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = True
    sunday: bool = True

    def is_enabled(self, day: date) -> bool:
        return getattr(self, WEEKDAY_NAMES[day.weekday()])

    @classmethod
    def from_days(cls, enabled: Iterable[str]) -> "WeekdayMask":
        """Build a mask enabling only the named weekdays (case-insensitive)."""
        names = {name.lower() for name in enabled}
        unknown = sorted(names - set(WEEKDAY_NAMES))
        if unknown:
            raise ValueError(f"unknown weekday names {unknown}")
        return cls(**{name: name in names for name in WEEKDAY_NAMES})

    @property
    def enabled_days(self) -> tuple[str, ...]:
        return tuple(name for name in WEEKDAY_NAMES if getattr(self, name))


WORKWEEK = WeekdayMask(saturday=False, sunday=False)
"""Monday to Friday."""


@dataclass(frozen=True)
class Holiday:
    """Inclusive span of days that are never working days."""

    start_date: date
    end_date: date
    name: str | None = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class Project:
    """Hour budget spread over a date range; continuous projects have no end date."""

    id: str
    estimated_hours: float
    start_date: date
    end_date: date | None = None
    working_day_mask: WeekdayMask = field(default_factory=WeekdayMask)
    continuous: bool = False
    name: str | None = None


@dataclass(frozen=True)
class RecurringConfig:
    """
    Recurrence pattern of a recurring phase.

    Weekdays are numbered like ``date.weekday()``: 0=Monday .. 6=Sunday.
    """

    type: RecurrenceType
    interval: int = 1
    weekly_day_of_week: int | None = None
    monthly_pattern: MonthlyPattern | None = None
    monthly_date: int | None = None
    monthly_week_of_month: int | None = None
    monthly_day_of_week: int | None = None


@dataclass(frozen=True)
class Phase:
    """
    Time-bounded portion of a project's hour budget.

    A phase without ``start_date`` starts the day after the previous phase's
    deadline (or on the project start for the first phase).
    """

    id: str
    project_id: str
    end_date: date
    time_allocation_hours: float
    start_date: date | None = None
    is_recurring: bool = False
    recurring_config: RecurringConfig | None = None
    name: str | None = None

    @property
    def is_implicit(self) -> bool:
        return self.id.endswith(IMPLICIT_PHASE_SUFFIX)


def implicit_phase(project: Project, end_date: date | None = None) -> Phase:
    """Synthesize the whole-project phase used when a project has no explicit phases."""
    end = end_date if end_date is not None else project.end_date
    if end is None:
        raise ValueError(f"Project '{project.id}' has no end date; pass end_date for the implicit phase")
    return Phase(
        id=f"{project.id}{IMPLICIT_PHASE_SUFFIX}",
        project_id=project.id,
        start_date=project.start_date,
        end_date=end,
        time_allocation_hours=project.estimated_hours,
        name=project.name,
    )


@dataclass(frozen=True)
class CalendarEvent:
    """Actually scheduled (planned or completed) time, optionally tied to a project."""

    start_time: datetime
    end_time: datetime
    project_id: str | None = None
    completed: bool = False
    id: str | None = None
    title: str | None = None

    @property
    def duration_hours(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 3600.0


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date range."""

    start: date
    end: date

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        """Every calendar day in the window, ascending."""
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    @property
    def length(self) -> int:
        return max(0, (self.end - self.start).days + 1)


@dataclass(frozen=True)
class Segment:
    """Contiguous date range owned by one (possibly implicit) non-recurring phase."""

    phase: Phase
    start_date: date
    end_date: date

    @property
    def hours(self) -> float:
        return self.phase.time_allocation_hours

    @property
    def is_implicit(self) -> bool:
        return self.phase.is_implicit


@dataclass(frozen=True)
class Occurrence:
    """One expanded instance of a recurring phase, ending on its pattern date."""

    phase: Phase
    number: int
    start_date: date
    end_date: date

    @property
    def occurrence_date(self) -> date:
        return self.end_date

    @property
    def hours(self) -> float:
        return self.phase.time_allocation_hours


Allocation = Segment | Occurrence
"""Anything that owns a budget over a date range."""


@dataclass(frozen=True)
class DayEstimate:
    """Computed hours to work on a day to meet the owning phase's deadline."""

    date: date
    hours: float
    source_phase_id: str


@dataclass(frozen=True)
class DayDisplay:
    """What a single day shows for a project: an estimate or the actual events, never both."""

    date: date
    hours: float
    source: DaySource
    events: tuple[CalendarEvent, ...] = ()
    phase_id: str | None = None


@dataclass(frozen=True)
class ForecastRow:
    """
    Flattened view of one forecast day used by the table and YAML writers.

    Only the fields relevant to output are kept: positional order, the day,
    its hours and what drives them.
    """

    order: int
    date: date
    weekday: str
    hours: float
    source: DaySource
    phase_id: str | None = None
    event_count: int = 0
    event_titles: list[str] = field(default_factory=list)
