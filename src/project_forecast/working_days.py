from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator, Sequence

from .project_models import Holiday, WeekdayMask


def is_working_day(day: date, mask: WeekdayMask, holidays: Iterable[Holiday] = ()) -> bool:
    """A day works iff its weekday is enabled in ``mask`` and no holiday covers it."""
    if not mask.is_enabled(day):
        return False
    return not any(holiday.covers(day) for holiday in holidays)


def iter_working_days(
    start: date,
    end: date,
    mask: WeekdayMask,
    holidays: Iterable[Holiday] = (),
) -> Iterator[date]:
    """
    Lazily yield the working days of ``[start, end]`` in ascending order.

    ``end < start`` yields nothing. Holidays that do not touch the range are
    dropped up front so long ranges with many holidays stay cheap.
    """

    if end < start:
        return
    relevant: Sequence[Holiday] = [h for h in holidays if h.end_date >= start and h.start_date <= end]
    current = start
    while current <= end:
        if is_working_day(current, mask, relevant):
            yield current
        current += timedelta(days=1)


def working_days(
    start: date,
    end: date,
    mask: WeekdayMask,
    holidays: Iterable[Holiday] = (),
) -> list[date]:
    """Inclusive, ascending, duplicate-free working days between ``start`` and ``end``."""
    return list(iter_working_days(start, end, mask, holidays))


def count_working_days(
    start: date,
    end: date,
    mask: WeekdayMask,
    holidays: Iterable[Holiday] = (),
) -> int:
    return sum(1 for _ in iter_working_days(start, end, mask, holidays))
