from __future__ import annotations

import dataclasses
import itertools
import threading
from datetime import date, datetime
from typing import Optional, Sequence

from ..common.keyed_lock import KeyedLock
from ..core.constants import DEFAULT_LOCK_TIMEOUT_SECONDS
from ..core.enums import AttendanceStatus
from ..core.exceptions import DuplicateRecordConflict, RecordNotFound
from .model import AttendanceCorrection, AttendanceRecord
from .repository import AttendanceLedger, CorrectionRepository
from .rules import apply_status_override, merge_repeat, new_check_in_record
from .strategies.base import StatusDecision


def _newest_first(records) -> list[AttendanceRecord]:
    return sorted(records, key=lambda r: (r.calendar_date, r.check_in_time, r.attendance_id), reverse=True)


class InMemoryAttendanceLedger(AttendanceLedger):
    """Process-local ledger with a primary key, a (student, date) unique index and
    secondary lookups by date and by student.

    Writes for one (student, date) key are serialized by a keyed lock.
    """

    def __init__(self, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self._by_id: dict[int, AttendanceRecord] = {}
        self._by_student_date: dict[tuple[str, date], int] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._key_locks = KeyedLock(timeout=lock_timeout)

    def _store(self, record: AttendanceRecord) -> None:
        with self._lock:
            self._by_id[record.attendance_id] = record
            self._by_student_date[(record.student_id, record.calendar_date)] = record.attendance_id

    def _next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def get_by_id(self, attendance_id: int) -> AttendanceRecord:
        with self._lock:
            record = self._by_id.get(int(attendance_id))
        if record is None:
            raise RecordNotFound(attendance_id)
        return record

    def find_by_student_and_date(self, student_id: str, calendar_date: date) -> Optional[AttendanceRecord]:
        with self._lock:
            attendance_id = self._by_student_date.get((student_id, calendar_date))
            return self._by_id.get(attendance_id) if attendance_id is not None else None

    def upsert_for_checkin(
        self,
        *,
        student_id: str,
        calendar_date: date,
        check_in_time: datetime,
        decision: StatusDecision,
        session_id: Optional[str] = None,
    ) -> AttendanceRecord:
        with self._key_locks.hold((student_id, calendar_date)):
            existing = self.find_by_student_and_date(student_id, calendar_date)
            if existing is None:
                record = new_check_in_record(
                    attendance_id=self._next_id(),
                    student_id=student_id,
                    calendar_date=calendar_date,
                    check_in_time=check_in_time,
                    decision=decision,
                    session_id=session_id,
                )
            else:
                record = merge_repeat(existing, check_in_time=check_in_time, decision=decision, session_id=session_id)
            self._store(record)
            return record

    def insert_absent(
        self,
        *,
        student_id: str,
        calendar_date: date,
        marked_at: datetime,
        reason: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AttendanceRecord:
        with self._key_locks.hold((student_id, calendar_date)):
            if self.find_by_student_and_date(student_id, calendar_date) is not None:
                raise DuplicateRecordConflict(
                    f"Student {student_id!r} already has a record for {calendar_date.isoformat()}"
                )
            record = AttendanceRecord(
                attendance_id=self._next_id(),
                student_id=student_id,
                calendar_date=calendar_date,
                check_in_time=marked_at,
                status=AttendanceStatus.ABSENT,
                late_minutes=0,
                session_id=session_id,
                is_manual=True,
                reason=reason,
            )
            self._store(record)
            return record

    def apply_correction(
        self,
        *,
        attendance_id: int,
        status: AttendanceStatus,
        late_minutes: int,
        reason: Optional[str],
        corrected_at: datetime,
    ) -> tuple[AttendanceRecord, AttendanceRecord]:
        existing = self.get_by_id(attendance_id)
        with self._key_locks.hold((existing.student_id, existing.calendar_date)):
            current = self.get_by_id(attendance_id)
            updated = apply_status_override(
                current, status=status, late_minutes=late_minutes, reason=reason, corrected_at=corrected_at
            )
            self._store(updated)
            return current, updated

    def delete(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with self._lock:
            record = self._by_id.pop(int(attendance_id), None)
            if record is not None:
                self._by_student_date.pop((record.student_id, record.calendar_date), None)
            return record

    def list_by_date(self, calendar_date: date) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [r for r in self._by_id.values() if r.calendar_date == calendar_date]
        return sorted(items, key=lambda r: (r.check_in_time, r.attendance_id))

    def list_by_student(self, student_id: str, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [r for r in self._by_id.values() if r.student_id == student_id]
        items = _newest_first(items)
        return items[:limit] if limit is not None else items

    def list_by_date_range(
        self,
        start_date: date,
        end_date: date,
        *,
        student_id: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [
                r
                for r in self._by_id.values()
                if start_date <= r.calendar_date <= end_date and (student_id is None or r.student_id == student_id)
            ]
        return _newest_first(items)

    def reassign_student(self, old_student_id: str, new_student_id: str) -> int:
        with self._lock:
            moving = [r for r in self._by_id.values() if r.student_id == old_student_id]
            for r in moving:
                if (new_student_id, r.calendar_date) in self._by_student_date:
                    raise DuplicateRecordConflict(
                        f"Student {new_student_id!r} already has a record for {r.calendar_date.isoformat()}"
                    )
            for r in moving:
                del self._by_student_date[(old_student_id, r.calendar_date)]
                moved = dataclasses.replace(r, student_id=new_student_id)
                self._by_id[r.attendance_id] = moved
                self._by_student_date[(new_student_id, r.calendar_date)] = r.attendance_id
            return len(moving)


class InMemoryCorrectionRepository(CorrectionRepository):
    def __init__(self):
        self._items: list[AttendanceCorrection] = []
        self._lock = threading.Lock()

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
        with self._lock:
            correction = AttendanceCorrection(
                correction_id=len(self._items) + 1,
                attendance_id=int(attendance_id),
                original_status=original_status,
                original_late_minutes=original_late_minutes,
                new_status=new_status,
                new_late_minutes=new_late_minutes,
                reason=reason,
                corrected_by=corrected_by,
                corrected_at=corrected_at,
            )
            self._items.append(correction)
            return correction

    def list_for_record(self, attendance_id: int) -> Sequence[AttendanceCorrection]:
        with self._lock:
            items = [c for c in self._items if c.attendance_id == int(attendance_id)]
        return sorted(items, key=lambda c: (c.corrected_at, c.correction_id), reverse=True)
