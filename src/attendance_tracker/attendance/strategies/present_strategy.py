from __future__ import annotations

from ...core.enums import AttendanceStatus
from .base import AttendanceStrategy, StatusDecision


class PresentStrategy(AttendanceStrategy):
    """Early or within the grace period."""

    def decide_checkin(self, *, minutes_after_start: float) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT, late_minutes=0)
