from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceCorrection, AttendanceRecord
from .strategies.base import StatusDecision


class AttendanceLedger(Protocol):
    """Durable store of at most one record per (student, calendar date).

    The write paths own the uniqueness invariant: concurrent writers for the same
    key must end up with one insert and merges, never two rows.
    """

    def get_by_id(self, attendance_id: int) -> AttendanceRecord:
        """Raises RecordNotFound for an unknown id."""

        raise NotImplementedError

    def find_by_student_and_date(self, student_id: str, calendar_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def upsert_for_checkin(
        self,
        *,
        student_id: str,
        calendar_date: date,
        check_in_time: datetime,
        decision: StatusDecision,
        session_id: Optional[str] = None,
    ) -> AttendanceRecord:
        """Insert the day's record, or merge a repeat check-in into it."""

        raise NotImplementedError

    def insert_absent(
        self,
        *,
        student_id: str,
        calendar_date: date,
        marked_at: datetime,
        reason: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AttendanceRecord:
        """Raises DuplicateRecordConflict if the student already has a record that day."""

        raise NotImplementedError

    def apply_correction(
        self,
        *,
        attendance_id: int,
        status: AttendanceStatus,
        late_minutes: int,
        reason: Optional[str],
        corrected_at: datetime,
    ) -> tuple[AttendanceRecord, AttendanceRecord]:
        """Overwrite a record's status under its key lock; returns ``(before, after)``.

        Raises RecordNotFound for an unknown id.
        """

        raise NotImplementedError

    def delete(self, attendance_id: int) -> Optional[AttendanceRecord]:
        """Remove a record and return it, or None if it did not exist."""

        raise NotImplementedError

    def list_by_date(self, calendar_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_by_student(self, student_id: str, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        """Most recent day first."""

        raise NotImplementedError

    def list_by_date_range(
        self,
        start_date: date,
        end_date: date,
        *,
        student_id: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        """Newest first, inclusive range."""

        raise NotImplementedError

    def reassign_student(self, old_student_id: str, new_student_id: str) -> int:
        """Move every record to a new student id, all or nothing.

        Raises DuplicateRecordConflict before moving anything if the new id already
        has a record on one of the same days.
        """

        raise NotImplementedError


class CorrectionRepository(Protocol):
    def add(
        self,
        *,
        attendance_id: int,
        original_status: AttendanceStatus,
        original_late_minutes: int,
        new_status: AttendanceStatus,
        new_late_minutes: int,
        reason: Optional[str],
        corrected_by: str,
        corrected_at: datetime,
    ) -> AttendanceCorrection:
        raise NotImplementedError

    def list_for_record(self, attendance_id: int) -> Sequence[AttendanceCorrection]:
        """Most recent first."""

        raise NotImplementedError
