from __future__ import annotations

import math

from ...core.enums import AttendanceStatus
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Late check-in; lateness counts from the work start, rounded half up."""

    def decide_checkin(self, *, minutes_after_start: float) -> StatusDecision:
        return StatusDecision(
            status=AttendanceStatus.LATE,
            late_minutes=int(math.floor(minutes_after_start + 0.5)),
        )
