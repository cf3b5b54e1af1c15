from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus
from ..students.model import Student


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's attendance for one calendar day."""

    attendance_id: int
    student_id: str
    calendar_date: date
    check_in_time: datetime
    status: AttendanceStatus
    late_minutes: int = 0
    session_id: Optional[str] = None
    is_repeat_check_in: bool = False
    is_manual: bool = False
    reason: Optional[str] = None
    is_corrected: bool = False
    correction_reason: Optional[str] = None
    corrected_at: Optional[datetime] = None
    # Lateness this record added to the student's counters; None when it added no late day
    counted_late_minutes: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "attendance_id": self.attendance_id,
            "student_id": self.student_id,
            "date": self.calendar_date.strftime("%Y-%m-%d"),
            "check_in_time": self.check_in_time.isoformat(timespec="seconds"),
            "status": self.status.value,
            "late_minutes": self.late_minutes,
            "session_id": self.session_id,
            "is_repeat_check_in": self.is_repeat_check_in,
            "is_manual": self.is_manual,
            "reason": self.reason,
            "is_corrected": self.is_corrected,
            "correction_reason": self.correction_reason,
            "corrected_at": self.corrected_at.isoformat(timespec="seconds") if self.corrected_at else None,
            "counted_late_minutes": self.counted_late_minutes,
        }


@dataclass(frozen=True)
class AttendanceCorrection:
    """Log entry for an administrative change of a record's status."""

    correction_id: int
    attendance_id: int
    original_status: AttendanceStatus
    original_late_minutes: int
    new_status: AttendanceStatus
    new_late_minutes: int
    reason: Optional[str]
    corrected_by: str
    corrected_at: datetime

    def to_dict(self) -> dict:
        return {
            "correction_id": self.correction_id,
            "attendance_id": self.attendance_id,
            "original_status": self.original_status.value,
            "original_late_minutes": self.original_late_minutes,
            "new_status": self.new_status.value,
            "new_late_minutes": self.new_late_minutes,
            "reason": self.reason,
            "corrected_by": self.corrected_by,
            "corrected_at": self.corrected_at.isoformat(timespec="seconds"),
        }


@dataclass(frozen=True)
class CheckInResult:
    record: AttendanceRecord
    is_repeat_check_in: bool
    student: Student


@dataclass(frozen=True)
class DailyStats:
    calendar_date: date
    present_count: int
    late_count: int
    absent_count: int
    total_students: int
    ratio: float
    first_record: Optional[AttendanceRecord] = None
    last_record: Optional[AttendanceRecord] = None

    @property
    def percentage(self) -> int:
        return int(self.ratio * 100 + 0.5)


@dataclass
class AttendanceTally:
    """Per-key counters for range summaries."""

    total: int = 0
    present: int = 0
    late: int = 0
    absent: int = 0
    total_late_minutes: int = 0

    def add(self, record: AttendanceRecord) -> None:
        self.total += 1
        if record.status == AttendanceStatus.PRESENT:
            self.present += 1
        elif record.status == AttendanceStatus.LATE:
            self.late += 1
            self.total_late_minutes += record.late_minutes
        else:
            self.absent += 1
