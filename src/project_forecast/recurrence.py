from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterator

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, rrule

from .config import DEFAULT_MAX_OCCURRENCES
from .errors import ForecastInputError
from .project_models import MonthlyPattern, Occurrence, Phase, RecurringConfig, WEEKDAY_NAMES

logger = logging.getLogger(__name__)

# Indexed like date.weekday(): 0=Monday .. 6=Sunday.
RRULE_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)
RECURRENCE_TYPES = ("daily", "weekly", "monthly")
_ORDINALS = ("1st", "2nd", "3rd", "4th")


def monthly_pattern(config: RecurringConfig) -> MonthlyPattern | None:
    """Explicit pattern, or the one implied by which monthly fields are filled in."""
    if config.monthly_pattern is not None:
        return config.monthly_pattern
    has_date = config.monthly_date is not None
    has_weekday = config.monthly_week_of_month is not None or config.monthly_day_of_week is not None
    if has_date and not has_weekday:
        return "date"
    if has_weekday and not has_date:
        return "dayOfWeek"
    return None


def validate_recurring_config(config: RecurringConfig | None) -> list[str]:
    """Return human-readable problems with a recurrence pattern; empty when valid."""

    if config is None:
        return ["Recurring phase must have a recurrence configuration"]

    errors: list[str] = []
    if config.type not in RECURRENCE_TYPES:
        errors.append(f"Invalid recurrence type '{config.type}'; expected daily, weekly or monthly")
    if not isinstance(config.interval, int) or isinstance(config.interval, bool) or config.interval < 1:
        errors.append("Recurrence interval must be a whole number of at least 1")

    if config.type == "weekly":
        if config.weekly_day_of_week is None:
            errors.append("Weekly recurrence must specify a day of week (0=Monday .. 6=Sunday)")
        elif not _is_weekday(config.weekly_day_of_week):
            errors.append("Weekly day of week must be between 0 (Monday) and 6 (Sunday)")

    if config.type == "monthly":
        pattern = monthly_pattern(config)
        if pattern is None:
            errors.append(
                "Monthly recurrence needs either monthly_date or monthly_week_of_month with monthly_day_of_week"
            )
        elif pattern == "date":
            if config.monthly_date is None:
                errors.append("Monthly date pattern must specify a date (1-31)")
            elif not 1 <= config.monthly_date <= 31:
                errors.append("Monthly date must be between 1 and 31")
        elif pattern == "dayOfWeek":
            if config.monthly_week_of_month is None or config.monthly_day_of_week is None:
                errors.append("Monthly dayOfWeek pattern must specify week of month and day of week")
            else:
                if not 1 <= config.monthly_week_of_month <= 4:
                    errors.append("Monthly week of month must be between 1 and 4")
                if not _is_weekday(config.monthly_day_of_week):
                    errors.append("Monthly day of week must be between 0 (Monday) and 6 (Sunday)")
        else:
            errors.append(f"Invalid monthly pattern '{pattern}'; expected date or dayOfWeek")

    return errors


def _is_weekday(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 6


def _require_config(phase: Phase) -> RecurringConfig:
    if not phase.is_recurring:
        raise ForecastInputError(f"Phase '{phase.id}' is not recurring", [phase.id])
    config = phase.recurring_config
    problems = validate_recurring_config(config)
    if config is None or problems:
        raise ForecastInputError(f"Phase '{phase.id}': {'; '.join(problems)}", [phase.id])
    return config


def interval_span(config: RecurringConfig) -> relativedelta:
    """Upper bound on the distance between two consecutive pattern dates."""
    if config.type == "daily":
        return relativedelta(days=config.interval)
    if config.type == "weekly":
        return relativedelta(weeks=config.interval)
    # nth-weekday dates drift by up to a week between months
    return relativedelta(months=config.interval + 1)


def pattern_dates(config: RecurringConfig, anchor: date) -> Iterator[date]:
    """Endless ascending pattern dates on or after ``anchor``; callers stop consuming."""

    problems = validate_recurring_config(config)
    if problems:
        raise ForecastInputError("; ".join(problems))

    if config.type == "monthly" and monthly_pattern(config) == "date":
        yield from _clamped_monthly_dates(anchor, config.interval, config.monthly_date)
        return

    start = datetime.combine(anchor, time())
    if config.type == "daily":
        rule = rrule(DAILY, interval=config.interval, dtstart=start)
    elif config.type == "weekly":
        rule = rrule(WEEKLY, interval=config.interval, byweekday=RRULE_WEEKDAYS[config.weekly_day_of_week], dtstart=start)
    else:
        nth = RRULE_WEEKDAYS[config.monthly_day_of_week](config.monthly_week_of_month)
        rule = rrule(MONTHLY, interval=config.interval, byweekday=nth, dtstart=start)

    for occurrence in rule:
        yield occurrence.date()


def _clamped_monthly_dates(anchor: date, interval: int, day_of_month: int) -> Iterator[date]:
    # relativedelta(day=31) lands on the last day of shorter months (Feb 30 -> Feb 28/29).
    first_month = anchor.replace(day=1)
    step = 0
    while True:
        candidate = first_month + relativedelta(months=step * interval, day=day_of_month)
        if candidate >= anchor:
            yield candidate
        step += 1


def expand_recurring(
    phase: Phase,
    window_start: date,
    window_end: date,
    anchor: date | None = None,
    until: date | None = None,
    max_occurrences: int | None = None,
) -> list[Occurrence]:
    """
    Expand a recurring phase into the occurrences whose pattern date lies in the window.

    - The series starts at ``phase.start_date``, else ``anchor`` (usually the
      project start), else ``window_start``.
    - Each occurrence owns ``(previous pattern date, pattern date]``; the first
      one owns ``[series start, pattern date]``.
    - Each occurrence carries the phase's full ``time_allocation_hours``.
    - Pattern dates stop at ``until`` (default ``phase.end_date``) and at
      ``window_end``; at most ``max_occurrences`` are returned.
    - When the series runs into ``until`` between two pattern dates, a last
      occurrence closes the remaining days and ends on ``until``.
    """

    config = _require_config(phase)
    if window_end < window_start:
        return []

    series_start = phase.start_date or anchor or window_start
    limit = until if until is not None else phase.end_date
    last_day = min(window_end, limit)
    cap = max_occurrences or DEFAULT_MAX_OCCURRENCES

    occurrences: list[Occurrence] = []
    previous: date | None = None
    number = 0
    for pattern_date in pattern_dates(config, series_start):
        period_start = series_start if previous is None else previous + timedelta(days=1)
        if pattern_date > last_day:
            if last_day < limit or period_start > limit:
                break
            pattern_date = limit
        number += 1
        previous = pattern_date
        if pattern_date >= window_start:
            if len(occurrences) >= cap:
                logger.warning(
                    "Recurring phase '%s' truncated at %d occurrences before %s", phase.id, cap, pattern_date
                )
                break
            occurrences.append(Occurrence(phase=phase, number=number, start_date=period_start, end_date=pattern_date))
        if pattern_date == limit:
            break
    return occurrences


def describe_recurrence(config: RecurringConfig) -> str:
    """Human-readable pattern, e.g. ``Every 2 weeks on Monday``."""

    interval = config.interval
    plural = "s" if interval > 1 else ""
    every = f"Every {interval} " if interval > 1 else "Every "

    if config.type == "daily":
        return f"{every}day{plural}"
    if config.type == "weekly":
        day = _day_name(config.weekly_day_of_week) or "week"
        return f"{every}week{plural} on {day}"
    if config.type == "monthly":
        pattern = monthly_pattern(config)
        if pattern == "date" and config.monthly_date:
            return f"{every}month{plural} on the {config.monthly_date}{_ordinal_suffix(config.monthly_date)}"
        if (
            pattern == "dayOfWeek"
            and config.monthly_week_of_month in (1, 2, 3, 4)
            and config.monthly_day_of_week is not None
        ):
            week = _ORDINALS[config.monthly_week_of_month - 1]
            return f"{every}month{plural} on the {week} {_day_name(config.monthly_day_of_week)}"
        return f"{every}month{plural}"
    return "Unknown recurrence pattern"


def _day_name(index: int | None) -> str | None:
    if index is None or not 0 <= index <= 6:
        return None
    return WEEKDAY_NAMES[index].capitalize()


def _ordinal_suffix(number: int) -> str:
    if number % 100 in (11, 12, 13):
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
