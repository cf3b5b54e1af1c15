from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Any

from ..common.datetime_utils import format_hhmm, parse_hhmm
from ..core.exceptions import InvalidConfiguration


@dataclass(frozen=True)
class AttendanceConfiguration:
    """Work start time and grace period used to classify check-ins."""

    work_start_time: time
    late_threshold_minutes: int

    @classmethod
    def parse(cls, work_start_time: Any, late_threshold_minutes: Any) -> "AttendanceConfiguration":
        if isinstance(work_start_time, time):
            start = work_start_time
        else:
            try:
                start = parse_hhmm(work_start_time)
            except ValueError as exc:
                raise InvalidConfiguration(f"Work start time must be HH:mm, got {work_start_time!r}") from exc

        try:
            threshold = int(late_threshold_minutes)
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"Late threshold must be an integer, got {late_threshold_minutes!r}") from exc
        if threshold < 0:
            raise InvalidConfiguration("Late threshold must not be negative")

        return cls(work_start_time=start, late_threshold_minutes=threshold)

    def to_dict(self) -> dict:
        return {
            "work_start_time": format_hhmm(self.work_start_time),
            "late_threshold_minutes": self.late_threshold_minutes,
        }
