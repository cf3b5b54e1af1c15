from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ...core.enums import AttendanceStatus


@dataclass(frozen=True)
class StatusDecision:
    status: AttendanceStatus
    late_minutes: int = 0


class AttendanceStrategy(ABC):
    """Strategy Pattern: encapsulate how we decide a check-in status."""

    @abstractmethod
    def decide_checkin(self, *, minutes_after_start: float) -> StatusDecision:
        raise NotImplementedError
