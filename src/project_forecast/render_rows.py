from __future__ import annotations

from typing import Any, List

import yaml

from .forecast import Forecast
from .project_models import WEEKDAY_NAMES, DayDisplay, ForecastRow

_HEADERS = ("date", "day", "hours", "source", "phase", "events")


def to_render_rows(forecast: Forecast) -> list[ForecastRow]:
    """
    Convert a forecast into a flat list of rows, one per displayed day.

    Rows follow the forecast's day order. Event-driven days carry the titles
    of the events that blocked the estimate.
    """

    rows: List[ForecastRow] = []
    for order, day in enumerate(forecast.days):
        rows.append(_to_row(order, day))
    return rows


def _to_row(order: int, day: DayDisplay) -> ForecastRow:
    titles = [event.title or event.id or "event" for event in day.events]
    return ForecastRow(
        order=order,
        date=day.date,
        weekday=WEEKDAY_NAMES[day.date.weekday()][:3].capitalize(),
        hours=day.hours,
        source=day.source,
        phase_id=day.phase_id,
        event_count=len(day.events),
        event_titles=titles,
    )


def format_table(rows: list[ForecastRow], title: str = "") -> str:
    """Fixed-width text table with a total line; hours are rounded to two decimals."""

    cells = [
        (
            row.date.isoformat(),
            row.weekday,
            f"{row.hours:.2f}",
            row.source,
            row.phase_id or "",
            ", ".join(row.event_titles),
        )
        for row in rows
    ]
    widths = [len(header) for header in _HEADERS]
    for line in cells:
        widths = [max(width, len(cell)) for width, cell in zip(widths, line)]

    def fmt(values) -> str:
        return "  ".join(value.ljust(width) for value, width in zip(values, widths)).rstrip()

    lines: list[str] = []
    if title:
        lines.append(title)
    lines.append(fmt(_HEADERS))
    lines.append(fmt(["-" * width for width in widths]))
    lines.extend(fmt(line) for line in cells)
    total = sum(row.hours for row in rows)
    lines.append(f"total: {total:.2f}h over {len(rows)} day(s)")
    return "\n".join(lines)


def dump_yaml(forecast: Forecast, rows: list[ForecastRow]) -> str:
    """YAML document with the window, totals and per-day rows."""

    data: dict[str, Any] = {
        "project": forecast.project.id,
        "window": {"start": forecast.window.start, "end": forecast.window.end},
        "totals": {
            "estimate_hours": round(forecast.estimate_hours, 4),
            "event_hours": round(forecast.event_hours, 4),
            "total_hours": round(forecast.total_hours, 4),
        },
        "days": [
            {
                "date": row.date,
                "hours": round(row.hours, 4),
                "source": row.source,
                **({"phase_id": row.phase_id} if row.phase_id else {}),
                **({"events": row.event_titles} if row.event_count else {}),
            }
            for row in rows
        ],
    }
    if forecast.degenerate:
        data["unplaced"] = [
            {"phase_id": item.phase.id, "start": item.start_date, "end": item.end_date}
            for item in forecast.degenerate
        ]
    return yaml.safe_dump(data, sort_keys=False)
