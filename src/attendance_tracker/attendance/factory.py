from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time

from ..common.datetime_utils import minutes_between
from .strategies.base import AttendanceStrategy, StatusDecision
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


def minutes_after_start(check_in_time: datetime, work_start_time: time) -> float:
    """Minutes past the work start on the check-in's own day, never negative."""

    work_start = datetime.combine(check_in_time.date(), work_start_time, tzinfo=check_in_time.tzinfo)
    return max(0.0, minutes_between(work_start, check_in_time))


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_checkin(self, *, minutes_late: float, late_threshold_minutes: int) -> AttendanceStrategy:
        # The threshold itself is still on time
        if minutes_late > late_threshold_minutes:
            return LateStrategy()
        return PresentStrategy()


_DEFAULT_FACTORY = AttendanceStrategyFactory()


def classify(
    check_in_time: datetime,
    work_start_time: time,
    late_threshold_minutes: int,
    *,
    factory: AttendanceStrategyFactory | None = None,
) -> StatusDecision:
    """Decide present/late for a check-in. Pure: no clock, no storage."""

    factory = factory or _DEFAULT_FACTORY
    diff = minutes_after_start(check_in_time, work_start_time)
    strategy = factory.for_checkin(minutes_late=diff, late_threshold_minutes=int(late_threshold_minutes))
    return strategy.decide_checkin(minutes_after_start=diff)
