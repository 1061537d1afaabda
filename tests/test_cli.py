import logging
import textwrap

import pytest
import yaml

from project_forecast.__main__ import main
from project_forecast.logging_setup import setup_logging

FORECAST = """
project:
  id: web
  name: Website relaunch
  estimated_hours: 120
  start_date: 2025-01-01
  end_date: 2025-03-31
  working_days: [monday, tuesday, wednesday, thursday, friday]
phases:
  - id: design
    end_date: 2025-02-15
    time_allocation_hours: 40
events:
  - title: Review
    start: "2025-01-15 09:00"
    end: "2025-01-15 11:00"
"""


def _write(tmp_path, body):
    path = tmp_path / "forecast.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return str(path)


def test_yaml_output(tmp_path, capsys):
    code = main([_write(tmp_path, FORECAST), "--format", "yaml", "--log-level", "ERROR"])

    assert code == 0
    out = yaml.safe_load(capsys.readouterr().out)
    assert out["project"] == "web"
    assert len(out["days"]) == 33
    review = next(day for day in out["days"] if str(day["date"]) == "2025-01-15")
    assert review["source"] == "event"
    assert review["hours"] == 2
    assert out["totals"]["total_hours"] == pytest.approx(40 - 40 / 33 + 2, abs=1e-3)


def test_table_output_respects_window(tmp_path, capsys):
    code = main(
        [_write(tmp_path, FORECAST), "--from", "2025-02-10", "--to", "2025-02-16", "--log-level", "ERROR"]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert out.startswith("Website relaunch (2025-02-10 - 2025-02-16)")
    assert "2025-02-14" in out
    assert "2025-02-15" not in out
    assert "over 5 day(s)" in out


def test_overlapping_phases_exit_with_2(tmp_path, capsys):
    body = """
    project:
      id: web
      estimated_hours: 120
      start_date: 2025-01-01
      end_date: 2025-03-31
    phases:
      - id: design
        start_date: 2025-01-01
        end_date: 2025-02-15
        time_allocation_hours: 40
      - id: build
        start_date: 2025-02-01
        end_date: 2025-03-31
        time_allocation_hours: 60
    """

    code = main([_write(tmp_path, body), "--log-level", "ERROR"])

    assert code == 2
    err = capsys.readouterr().err
    assert "'build'" in err and "'design'" in err


def test_invalid_file_exits_with_2(tmp_path, capsys):
    code = main([_write(tmp_path, "project: [1, 2]\n")])

    assert code == 2
    assert "project" in capsys.readouterr().err


def test_missing_file_exits_with_1(tmp_path, capsys):
    code = main([str(tmp_path / "missing.yaml")])

    assert code == 1
    assert "not found" in capsys.readouterr().err


def test_setup_logging_does_not_stack_handlers():
    logger = setup_logging("WARNING")
    count = len(logger.handlers)

    setup_logging("ERROR")

    assert len(logger.handlers) == count
    assert logger.level == logging.ERROR
