"""Per-day hour forecasts for projects split into deadline-ordered phases."""

from .blocking import resolve_day_display
from .date_sync import PhaseChange, SyncResult, sync_project_phase_dates
from .errors import ForecastError, ForecastInputError, InvariantViolation, ProjectValidationError
from .forecast import Forecast, forecast_days
from .project_models import (
    CalendarEvent,
    DateWindow,
    DayDisplay,
    DayEstimate,
    Holiday,
    Occurrence,
    Phase,
    Project,
    RecurringConfig,
    Segment,
    WeekdayMask,
)
from .recurrence import expand_recurring
from .scheduling import compute_day_estimates, segment_phases
from .working_days import count_working_days, is_working_day, working_days

__all__ = [
    "CalendarEvent",
    "DateWindow",
    "DayDisplay",
    "DayEstimate",
    "Forecast",
    "ForecastError",
    "ForecastInputError",
    "Holiday",
    "InvariantViolation",
    "Occurrence",
    "Phase",
    "PhaseChange",
    "Project",
    "ProjectValidationError",
    "RecurringConfig",
    "Segment",
    "SyncResult",
    "WeekdayMask",
    "compute_day_estimates",
    "count_working_days",
    "expand_recurring",
    "forecast_days",
    "is_working_day",
    "resolve_day_display",
    "segment_phases",
    "sync_project_phase_dates",
    "working_days",
]
