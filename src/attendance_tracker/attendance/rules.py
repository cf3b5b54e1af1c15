"""Record-level rules shared by every ledger backend.

Kept in one place so the in-memory and MySQL ledgers cannot drift apart.
"""

from __future__ import annotations

import dataclasses
from datetime import date, datetime
from typing import Optional

from ..common.validators import require_non_negative_int
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from .model import AttendanceRecord
from .strategies.base import StatusDecision


def _counted(status: AttendanceStatus, late_minutes: int) -> Optional[int]:
    return late_minutes if status == AttendanceStatus.LATE else None


def new_check_in_record(
    *,
    attendance_id: int,
    student_id: str,
    calendar_date: date,
    check_in_time: datetime,
    decision: StatusDecision,
    session_id: Optional[str] = None,
) -> AttendanceRecord:
    late_minutes = decision.late_minutes if decision.status == AttendanceStatus.LATE else 0
    return AttendanceRecord(
        attendance_id=attendance_id,
        student_id=student_id,
        calendar_date=calendar_date,
        check_in_time=check_in_time,
        status=decision.status,
        late_minutes=late_minutes,
        session_id=session_id,
        is_repeat_check_in=False,
        counted_late_minutes=_counted(decision.status, late_minutes),
    )


def merge_repeat(
    existing: AttendanceRecord,
    *,
    check_in_time: datetime,
    decision: StatusDecision,
    session_id: Optional[str] = None,
) -> AttendanceRecord:
    """Fold a check-in into the day's existing record.

    Late sticks for the rest of the day and lateness keeps its maximum, while the
    counted lateness stays at what the first check-in contributed. A day marked
    absent has seen no check-in yet: the arrival replaces the absence and counts
    as the day's first check-in.
    """

    if existing.status == AttendanceStatus.ABSENT:
        first = new_check_in_record(
            attendance_id=existing.attendance_id,
            student_id=existing.student_id,
            calendar_date=existing.calendar_date,
            check_in_time=check_in_time,
            decision=decision,
            session_id=existing.session_id or session_id,
        )
        return dataclasses.replace(first, reason=existing.reason)

    if AttendanceStatus.LATE in (existing.status, decision.status):
        status = AttendanceStatus.LATE
        late_minutes = max(existing.late_minutes, decision.late_minutes)
    else:
        status = AttendanceStatus.PRESENT
        late_minutes = 0

    return dataclasses.replace(
        existing,
        check_in_time=check_in_time,
        status=status,
        late_minutes=late_minutes,
        session_id=existing.session_id or session_id,
        is_repeat_check_in=True,
    )


def apply_status_override(
    existing: AttendanceRecord,
    *,
    status: AttendanceStatus,
    late_minutes: int,
    reason: Optional[str],
    corrected_at: datetime,
) -> AttendanceRecord:
    """An administrative correction replaces what the record counts towards the student."""

    return dataclasses.replace(
        existing,
        status=status,
        late_minutes=late_minutes,
        is_corrected=True,
        correction_reason=reason,
        corrected_at=corrected_at,
        counted_late_minutes=_counted(status, late_minutes),
    )


def late_contribution(record: Optional[AttendanceRecord]) -> tuple[int, int]:
    """``(late days, late minutes)`` a record adds to its student's counters."""

    if record is None or record.counted_late_minutes is None:
        return 0, 0
    return 1, record.counted_late_minutes


def normalize_correction(status, late_minutes) -> tuple[AttendanceStatus, int]:
    """Validate an administrative status change; non-late statuses carry no lateness."""

    try:
        new_status = AttendanceStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown attendance status {status!r}") from exc

    if new_status != AttendanceStatus.LATE:
        return new_status, 0
    return new_status, require_non_negative_int(late_minutes, "Late minutes")
