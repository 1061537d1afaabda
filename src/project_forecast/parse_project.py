from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from typing import Any

import yaml

from .config import ForecastSettings, load_settings
from .errors import ProjectValidationError
from .project_models import (
    WEEKDAY_NAMES,
    CalendarEvent,
    Holiday,
    Phase,
    Project,
    RecurringConfig,
    WeekdayMask,
)

# Older files use these names; they are mapped onto the canonical field once, here.
_LEGACY_PHASE_FIELDS = {"due_date": "end_date", "time_allocation": "time_allocation_hours"}
_LEGACY_PROJECT_FIELDS = {"auto_estimate_days": "working_days"}
# Older recurrence fields number weekdays from Sunday (0=Sunday .. 6=Saturday).
_SUNDAY_FIRST_FIELDS = {"weeklyDayOfWeek": "weekly_day_of_week", "monthlyDayOfWeek": "monthly_day_of_week"}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like phases[0].recurring."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


@dataclass(frozen=True)
class ForecastInput:
    """Everything a forecast file describes, normalized to canonical fields."""

    project: Project
    phases: list[Phase] = field(default_factory=list)
    holidays: list[Holiday] = field(default_factory=list)
    events: list[CalendarEvent] = field(default_factory=list)
    settings: ForecastSettings = field(default_factory=ForecastSettings)


def load_forecast(path: str) -> ForecastInput:
    """Load a forecast file (project, phases, holidays, events, settings) from YAML."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_forecast(raw)


def parse_forecast(data: Any) -> ForecastInput:
    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"project", "phases", "holidays", "events", "settings"}, path)

    project = _parse_project(data.get("project"), path.child("project"))

    phases: list[Phase] = []
    ids: set[str] = set()
    for idx, phase_raw in enumerate(_optional_list(data, "phases", path)):
        phases.append(_parse_phase(phase_raw, path.child(f"phases[{idx}]"), project, ids))

    holidays = [
        _parse_holiday(raw, path.child(f"holidays[{idx}]"))
        for idx, raw in enumerate(_optional_list(data, "holidays", path))
    ]
    events = [
        _parse_event(raw, path.child(f"events[{idx}]"), project)
        for idx, raw in enumerate(_optional_list(data, "events", path))
    ]

    settings_raw = data.get("settings")
    if settings_raw is not None and not isinstance(settings_raw, dict):
        raise ProjectValidationError(f"{path.child('settings')}: expected mapping")
    settings = load_settings(settings_raw)

    return ForecastInput(project=project, phases=phases, holidays=holidays, events=events, settings=settings)


def _parse_project(data: Any, path: _Path) -> Project:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: missing required mapping 'project'")
    data = _normalize_legacy(data, _LEGACY_PROJECT_FIELDS, path)
    _assert_allowed_keys(
        data,
        {"id", "name", "estimated_hours", "start_date", "end_date", "continuous", "working_days"},
        path,
    )

    project_id = _require_id(data, path)
    continuous = data.get("continuous", False)
    if not isinstance(continuous, bool):
        raise ProjectValidationError(f"{path.child('continuous')}: expected boolean")

    start_date = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    end_date = None
    if data.get("end_date") is not None:
        end_date = _parse_date(data["end_date"], path.child("end_date"))
    if continuous and end_date is not None:
        raise ProjectValidationError(f"{path}: continuous projects must not define end_date")
    if not continuous:
        if end_date is None:
            raise ProjectValidationError(f"{path}: missing required field 'end_date' (or set continuous: true)")
        if end_date <= start_date:
            raise ProjectValidationError(f"{path}: end_date {end_date} must be after start_date {start_date}")

    mask = WeekdayMask()
    if "working_days" in data:
        mask = _parse_mask(data["working_days"], path.child("working_days"))

    return Project(
        id=project_id,
        name=_optional_str(data, "name", path),
        estimated_hours=_require_positive(data, "estimated_hours", path),
        start_date=start_date,
        end_date=end_date,
        working_day_mask=mask,
        continuous=continuous,
    )


def _parse_phase(data: Any, path: _Path, project: Project, ids: set[str]) -> Phase:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for phase")
    data = _normalize_legacy(data, _LEGACY_PHASE_FIELDS, path)
    _assert_allowed_keys(
        data,
        {"id", "name", "project_id", "start_date", "end_date", "time_allocation_hours", "recurring"},
        path,
    )

    phase_id = _require_id(data, path)
    if phase_id in ids:
        raise ProjectValidationError(f"{path.child('id')}: duplicate phase id '{phase_id}'")
    ids.add(phase_id)

    project_id = str(data.get("project_id", project.id))
    if project_id != project.id:
        raise ProjectValidationError(f"{path.child('project_id')}: expected '{project.id}', got '{project_id}'")

    start_date = None
    if data.get("start_date") is not None:
        start_date = _parse_date(data["start_date"], path.child("start_date"))
    end_date = _parse_date(_require_value(data, "end_date", path), path.child("end_date"))
    if start_date is not None and start_date > end_date:
        raise ProjectValidationError(f"{path}: start_date {start_date} is after end_date {end_date}")

    recurring = None
    if data.get("recurring") is not None:
        recurring = _parse_recurring(data["recurring"], path.child("recurring"))

    return Phase(
        id=phase_id,
        project_id=project_id,
        name=_optional_str(data, "name", path),
        start_date=start_date,
        end_date=end_date,
        time_allocation_hours=_require_positive(data, "time_allocation_hours", path),
        is_recurring=recurring is not None,
        recurring_config=recurring,
    )


def _parse_recurring(data: Any, path: _Path) -> RecurringConfig:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for recurrence")
    data = _normalize_sunday_first(data, path)
    _assert_allowed_keys(
        data,
        {
            "type",
            "interval",
            "weekly_day_of_week",
            "monthly_pattern",
            "monthly_date",
            "monthly_week_of_month",
            "monthly_day_of_week",
        },
        path,
    )
    kind = _require_str(data, "type", path)
    if kind not in ("daily", "weekly", "monthly"):
        raise ProjectValidationError(f"{path.child('type')}: expected daily, weekly or monthly")
    pattern = data.get("monthly_pattern")
    if pattern is not None and pattern not in ("date", "dayOfWeek"):
        raise ProjectValidationError(f"{path.child('monthly_pattern')}: expected date or dayOfWeek")

    return RecurringConfig(
        type=kind,
        interval=_optional_int(data, "interval", path, default=1),
        weekly_day_of_week=_optional_weekday(data, "weekly_day_of_week", path),
        monthly_pattern=pattern,
        monthly_date=_optional_int(data, "monthly_date", path),
        monthly_week_of_month=_optional_int(data, "monthly_week_of_month", path),
        monthly_day_of_week=_optional_weekday(data, "monthly_day_of_week", path),
    )


def _parse_holiday(data: Any, path: _Path) -> Holiday:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for holiday")
    _assert_allowed_keys(data, {"name", "start_date", "end_date"}, path)
    start_date = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    end_date = start_date
    if data.get("end_date") is not None:
        end_date = _parse_date(data["end_date"], path.child("end_date"))
    if end_date < start_date:
        raise ProjectValidationError(f"{path}: end_date {end_date} precedes start_date {start_date}")
    return Holiday(start_date=start_date, end_date=end_date, name=_optional_str(data, "name", path))


def _parse_event(data: Any, path: _Path, project: Project) -> CalendarEvent:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for event")
    _assert_allowed_keys(data, {"id", "title", "project_id", "start", "end", "completed"}, path)
    start = _parse_datetime(_require_value(data, "start", path), path.child("start"))
    end = _parse_datetime(_require_value(data, "end", path), path.child("end"))
    if end < start:
        raise ProjectValidationError(f"{path}: end {end} precedes start {start}")
    completed = data.get("completed", False)
    if not isinstance(completed, bool):
        raise ProjectValidationError(f"{path.child('completed')}: expected boolean")
    project_id = data.get("project_id", project.id)
    return CalendarEvent(
        id=str(data["id"]) if data.get("id") is not None else None,
        title=_optional_str(data, "title", path),
        project_id=str(project_id) if project_id is not None else None,
        start_time=start,
        end_time=end,
        completed=completed,
    )


def _normalize_legacy(data: dict[str, Any], renames: dict[str, str], path: _Path) -> dict[str, Any]:
    normalized = dict(data)
    for legacy, canonical in renames.items():
        if legacy not in normalized:
            continue
        if canonical in normalized:
            raise ProjectValidationError(f"{path}: choose either {canonical} or {legacy}, not both")
        normalized[canonical] = normalized.pop(legacy)
    return normalized


def _normalize_sunday_first(data: dict[str, Any], path: _Path) -> dict[str, Any]:
    normalized = _normalize_legacy(data, _SUNDAY_FIRST_FIELDS, path)
    for legacy, canonical in _SUNDAY_FIRST_FIELDS.items():
        value = normalized.get(canonical)
        if legacy not in data or isinstance(value, bool) or not isinstance(value, int):
            continue
        if not 0 <= value <= 6:
            raise ProjectValidationError(f"{path.child(legacy)}: expected 0 (Sunday) .. 6 (Saturday)")
        normalized[canonical] = (value - 1) % 7
    return normalized


def _parse_mask(value: Any, path: _Path) -> WeekdayMask:
    if isinstance(value, list):
        if not all(isinstance(day, str) for day in value):
            raise ProjectValidationError(f"{path}: expected list of weekday names")
        try:
            return WeekdayMask.from_days(value)
        except ValueError as exc:
            raise ProjectValidationError(f"{path}: {exc}") from exc
    if isinstance(value, dict):
        _assert_allowed_keys(value, set(WEEKDAY_NAMES), path)
        if not all(isinstance(flag, bool) for flag in value.values()):
            raise ProjectValidationError(f"{path}: expected boolean per weekday")
        return WeekdayMask(**value)
    raise ProjectValidationError(f"{path}: expected list of weekday names or mapping of weekday to boolean")


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProjectValidationError(f"{path.child(key)}: expected list")
    return value


def _require_id(data: dict[str, Any], path: _Path) -> str:
    value = _require_value(data, "id", path)
    if isinstance(value, bool) or not isinstance(value, (str, int)) or not str(value).strip():
        raise ProjectValidationError(f"{path.child('id')}: expected non-empty string")
    return str(value)


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    if data.get(key) is None:
        return None
    return _require_str(data, key, path)


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_positive(data: dict[str, Any], key: str, path: _Path) -> float:
    value = _require_value(data, key, path)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProjectValidationError(f"{path.child(key)}: expected number")
    if value <= 0:
        raise ProjectValidationError(f"{path.child(key)}: expected positive number, got {value}")
    return float(value)


def _optional_int(data: dict[str, Any], key: str, path: _Path, default: int | None = None) -> int | None:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProjectValidationError(f"{path.child(key)}: expected integer")
    return value


def _optional_weekday(data: dict[str, Any], key: str, path: _Path) -> int | None:
    value = data.get(key)
    if isinstance(value, str):
        name = value.lower()
        if name not in WEEKDAY_NAMES:
            raise ProjectValidationError(f"{path.child(key)}: unknown weekday '{value}'")
        return WEEKDAY_NAMES.index(name)
    return _optional_int(data, key, path)


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # YAML turns unquoted 2024-01-31 into a date already.
    if isinstance(value, _dt.date) and not isinstance(value, _dt.datetime):
        return value
    if not isinstance(value, str):
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        parsed = _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD string") from exc
    return parsed


def _parse_datetime(value: Any, path: _Path) -> _dt.datetime:
    if isinstance(value, str):
        try:
            value = _dt.datetime.fromisoformat(value)
        except ValueError as exc:
            raise ProjectValidationError(f"{path}: expected 'YYYY-MM-DD HH:MM' string") from exc
    if not isinstance(value, _dt.datetime):
        raise ProjectValidationError(f"{path}: expected 'YYYY-MM-DD HH:MM' string")
    # Offsets are folded into UTC so events from different zones compare on one clock.
    if value.tzinfo is not None:
        value = value.astimezone(_dt.timezone.utc).replace(tzinfo=None)
    return value
