from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path

import yaml

from .config import ForecastSettings, default_window
from .date_sync import sync_project_phase_dates
from .errors import ForecastError, ProjectValidationError
from .forecast import Forecast, forecast_days
from .logging_setup import setup_logging
from .parse_project import load_forecast
from .project_models import DateWindow, Project
from .render_rows import dump_yaml, format_table, to_render_rows

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Per-day hour forecast for a project and its phases",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("forecast", help="Path to forecast YAML")
    parser.add_argument("--from", dest="start", type=_parse_date, help="First day to show (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", type=_parse_date, help="Last day to show (YYYY-MM-DD)")
    parser.add_argument("--format", choices=("table", "yaml"), default="table", help="Output format")
    parser.add_argument(
        "--all-days",
        action="store_true",
        help="Also list days with neither estimate nor event",
    )
    parser.add_argument("--log-level", help="Log level; defaults to settings or PROJECT_FORECAST_LOG_LEVEL")
    return parser


def _window(project: Project, settings: ForecastSettings, start: dt.date | None, end: dt.date | None) -> DateWindow:
    fallback = default_window(project, dt.date.today(), settings)
    window = DateWindow(start or fallback.start, end or fallback.end)
    if window.end < window.start:
        raise ProjectValidationError(f"--to {window.end} precedes --from {window.start}")
    return window


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    forecast_path = Path(args.forecast)

    try:
        data = load_forecast(str(forecast_path))
    except (yaml.YAMLError, ProjectValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: forecast file not found: {forecast_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading forecast: {exc}", file=sys.stderr)
        return 1

    setup_logging(args.log_level or data.settings.log_level)

    try:
        synced = sync_project_phase_dates(data.project, data.phases, settings=data.settings)
        synced.raise_for_errors()
        project = synced.project or data.project
        for notice in synced.notifications:
            logger.info("%s", notice)
        for warning in synced.warnings:
            logger.warning("%s", warning)
        window = _window(project, data.settings, args.start, args.end)
        forecast: Forecast = forecast_days(
            project,
            data.phases,
            data.holidays,
            data.events,
            window,
            data.settings,
            include_empty=args.all_days,
        )
    except ForecastError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        print(f"Unexpected error while forecasting: {exc}", file=sys.stderr)
        return 1

    for allocation in forecast.degenerate:
        logger.warning(
            "Phase '%s' has no working day between %s and %s; its %gh are not placed",
            allocation.phase.id,
            allocation.start_date,
            allocation.end_date,
            allocation.hours,
        )

    rows = to_render_rows(forecast)
    if args.format == "yaml":
        print(dump_yaml(forecast, rows), end="")
    else:
        title = project.name or project.id
        print(format_table(rows, title=f"{title} ({window.start} - {window.end})"))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
