from __future__ import annotations

from typing import Iterable


class ForecastError(Exception):
    """Base error; carries the IDs of the phases the problem is about."""

    def __init__(self, message: str, phase_ids: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.phase_ids: tuple[str, ...] = tuple(phase_ids)


class ForecastInputError(ForecastError, ValueError):
    """Raised when arguments are malformed (bad ranges, non-positive allocation, bad recurrence)."""


class InvariantViolation(ForecastError):
    """Raised when phases conflict with each other (overlap, explicit and recurring mixed)."""


class ProjectValidationError(ForecastError):
    """Raised when a forecast file is structurally invalid."""
