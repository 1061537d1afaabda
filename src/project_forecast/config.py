from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from datetime import date, timedelta
from typing import Any, Mapping

from .errors import ProjectValidationError
from .project_models import DateWindow, Project


LOG_LEVEL_ENV = "PROJECT_FORECAST_LOG_LEVEL"

# Windows used when a continuous project is viewed without an explicit range.
DEFAULT_CONTINUOUS_HORIZON_DAYS = 90
DEFAULT_CONTINUOUS_LOOKBACK_DAYS = 30
# Expansion cap for a single recurring phase.
DEFAULT_MAX_OCCURRENCES = 365
DEFAULT_BUDGET_WARNING_RATIO = 0.9


@dataclass(frozen=True)
class ForecastSettings:
    """Tunables shared by the calculators, the planner and the command line."""

    continuous_horizon_days: int = DEFAULT_CONTINUOUS_HORIZON_DAYS
    continuous_lookback_days: int = DEFAULT_CONTINUOUS_LOOKBACK_DAYS
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES
    budget_warning_ratio: float = DEFAULT_BUDGET_WARNING_RATIO
    log_level: str = "INFO"


def load_settings(overrides: Mapping[str, Any] | None = None) -> ForecastSettings:
    """Defaults, then the environment log level, then explicit overrides."""

    settings = ForecastSettings()
    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        settings = replace(settings, log_level=env_level.upper())
    if overrides:
        settings = settings_from_mapping(overrides, base=settings)
    return settings


def settings_from_mapping(data: Mapping[str, Any], base: ForecastSettings | None = None) -> ForecastSettings:
    """Apply a ``settings:`` mapping from a forecast file on top of ``base``."""

    base = base or ForecastSettings()
    known = {f.name: f for f in fields(ForecastSettings)}
    extras = sorted(set(data) - set(known))
    if extras:
        raise ProjectValidationError(f"settings: unexpected fields {extras}")

    values: dict[str, Any] = {}
    for key, value in data.items():
        expected = type(getattr(base, key))
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if not isinstance(value, expected) or isinstance(value, bool):
            raise ProjectValidationError(f"settings.{key}: expected {expected.__name__}")
        if expected in (int, float) and value <= 0:
            raise ProjectValidationError(f"settings.{key}: expected a positive number")
        values[key] = value.upper() if key == "log_level" else value
    return replace(base, **values)


def default_window(project: Project, today: date, settings: ForecastSettings | None = None) -> DateWindow:
    """
    Window shown when the caller does not pick one.

    Bounded projects show their whole range; continuous projects show a
    lookback/horizon slice around ``today`` that never starts before the project.
    """

    settings = settings or ForecastSettings()
    if not project.continuous and project.end_date is not None:
        return DateWindow(project.start_date, project.end_date)
    start = max(project.start_date, today - timedelta(days=settings.continuous_lookback_days))
    end = today + timedelta(days=settings.continuous_horizon_days)
    return DateWindow(start, max(start, end))
