from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator, Protocol

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def parse_hhmm(value: str) -> time:
    """Parse HH:mm into a time. Raises ValueError on malformed input."""
    parts = str(value).strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts) or len(parts[0]) > 2 or len(parts[1]) != 2:
        raise ValueError(f"Invalid time string: {value!r}")
    return time(hour=int(parts[0]), minute=int(parts[1]))


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Inclusive day range; empty when end < start."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


class Clock(Protocol):
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock:
    def now(self) -> datetime:
        return now_local()
