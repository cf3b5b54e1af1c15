from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceStatus
from ..core.exceptions import DuplicateRecordConflict, RecordNotFound, StorageUnavailable
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_deadlock, is_duplicate_key
from .model import AttendanceCorrection, AttendanceRecord
from .repository import AttendanceLedger, CorrectionRepository
from .rules import apply_status_override, merge_repeat, new_check_in_record
from .strategies.base import StatusDecision

logger = logging.getLogger(__name__)

_COLUMNS = """
    attendance_id, student_id, calendar_date, check_in_time, status, late_minutes, session_id,
    is_repeat_check_in, is_manual, reason, is_corrected, correction_reason, corrected_at,
    counted_late_minutes
"""


def _to_record(r: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        student_id=str(r["student_id"]),
        calendar_date=r["calendar_date"],
        check_in_time=r["check_in_time"],
        status=AttendanceStatus(r["status"]),
        late_minutes=int(r.get("late_minutes") or 0),
        session_id=r.get("session_id"),
        is_repeat_check_in=bool(r.get("is_repeat_check_in")),
        is_manual=bool(r.get("is_manual")),
        reason=r.get("reason"),
        is_corrected=bool(r.get("is_corrected")),
        correction_reason=r.get("correction_reason"),
        corrected_at=r.get("corrected_at"),
        counted_late_minutes=None if r.get("counted_late_minutes") is None else int(r["counted_late_minutes"]),
    )


class MySQLAttendanceLedger(AttendanceLedger):
    """Ledger on the ``attendance_records`` table.

    UNIQUE(student_id, calendar_date) backs the one-record-per-day invariant; the
    check-in path locks the row with SELECT ... FOR UPDATE and retries a lost
    insert race once as a merge.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, attendance_id: int) -> AttendanceRecord:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            row = fetchone(cur)
        if not row:
            raise RecordNotFound(attendance_id)
        return _to_record(row)

    def find_by_student_and_date(self, student_id: str, calendar_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE student_id=%s AND calendar_date=%s",
                (student_id, calendar_date),
            )
            row = fetchone(cur)
            return _to_record(row) if row else None

    def upsert_for_checkin(
        self,
        *,
        student_id: str,
        calendar_date: date,
        check_in_time: datetime,
        decision: StatusDecision,
        session_id: Optional[str] = None,
    ) -> AttendanceRecord:
        kwargs = dict(
            student_id=student_id,
            calendar_date=calendar_date,
            check_in_time=check_in_time,
            decision=decision,
            session_id=session_id,
        )
        try:
            return self._upsert_once(**kwargs)
        except mysql.connector.Error as exc:
            if not (is_duplicate_key(exc) or is_deadlock(exc)):
                raise
            # Lost the insert race: the row exists now, so the retry merges into it
            logger.info("Concurrent first check-in for %s on %s, retrying as merge", student_id, calendar_date)
        try:
            return self._upsert_once(**kwargs)
        except mysql.connector.Error as exc:
            raise StorageUnavailable(f"Check-in for {student_id!r} kept conflicting: {exc}") from exc

    def _upsert_once(
        self,
        *,
        student_id: str,
        calendar_date: date,
        check_in_time: datetime,
        decision: StatusDecision,
        session_id: Optional[str],
    ) -> AttendanceRecord:
        with db_cursor(self._conn_factory, raise_deadlocks=True) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE student_id=%s AND calendar_date=%s
                FOR UPDATE
                """,
                (student_id, calendar_date),
            )
            row = fetchone(cur)

            if row is None:
                record = new_check_in_record(
                    attendance_id=0,
                    student_id=student_id,
                    calendar_date=calendar_date,
                    check_in_time=check_in_time,
                    decision=decision,
                    session_id=session_id,
                )
                cur.execute(
                    """
                    INSERT INTO attendance_records(student_id, calendar_date, check_in_time, status, late_minutes,
                                                   session_id, is_repeat_check_in, counted_late_minutes)
                    VALUES(%s,%s,%s,%s,%s,%s,0,%s)
                    """,
                    (
                        record.student_id,
                        record.calendar_date,
                        record.check_in_time,
                        record.status.value,
                        record.late_minutes,
                        record.session_id,
                        record.counted_late_minutes,
                    ),
                )
                return dataclasses.replace(record, attendance_id=int(cur.lastrowid))

            merged = merge_repeat(_to_record(row), check_in_time=check_in_time, decision=decision, session_id=session_id)
            cur.execute(
                """
                UPDATE attendance_records
                SET check_in_time=%s, status=%s, late_minutes=%s, session_id=%s, is_repeat_check_in=%s,
                    is_manual=%s, counted_late_minutes=%s
                WHERE attendance_id=%s
                """,
                (
                    merged.check_in_time,
                    merged.status.value,
                    merged.late_minutes,
                    merged.session_id,
                    int(merged.is_repeat_check_in),
                    int(merged.is_manual),
                    merged.counted_late_minutes,
                    merged.attendance_id,
                ),
            )
            return merged

    def insert_absent(
        self,
        *,
        student_id: str,
        calendar_date: date,
        marked_at: datetime,
        reason: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AttendanceRecord:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(student_id, calendar_date, check_in_time, status,
                                                   late_minutes, session_id, is_manual, reason)
                    VALUES(%s,%s,%s,%s,0,%s,1,%s)
                    """,
                    (student_id, calendar_date, marked_at, AttendanceStatus.ABSENT.value, session_id, reason),
                )
                attendance_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                raise DuplicateRecordConflict(
                    f"Student {student_id!r} already has a record for {calendar_date.isoformat()}"
                ) from exc
            raise

        return AttendanceRecord(
            attendance_id=attendance_id,
            student_id=student_id,
            calendar_date=calendar_date,
            check_in_time=marked_at,
            status=AttendanceStatus.ABSENT,
            late_minutes=0,
            session_id=session_id,
            is_manual=True,
            reason=reason,
        )

    def apply_correction(
        self,
        *,
        attendance_id: int,
        status: AttendanceStatus,
        late_minutes: int,
        reason: Optional[str],
        corrected_at: datetime,
    ) -> tuple[AttendanceRecord, AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s FOR UPDATE",
                (int(attendance_id),),
            )
            row = fetchone(cur)
            if not row:
                raise RecordNotFound(attendance_id)

            before = _to_record(row)
            updated = apply_status_override(
                before, status=status, late_minutes=late_minutes, reason=reason, corrected_at=corrected_at
            )
            cur.execute(
                """
                UPDATE attendance_records
                SET status=%s, late_minutes=%s, is_corrected=1, correction_reason=%s, corrected_at=%s,
                    counted_late_minutes=%s
                WHERE attendance_id=%s
                """,
                (
                    updated.status.value,
                    updated.late_minutes,
                    updated.correction_reason,
                    updated.corrected_at,
                    updated.counted_late_minutes,
                    updated.attendance_id,
                ),
            )
            return before, updated

    def delete(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s FOR UPDATE",
                (int(attendance_id),),
            )
            row = fetchone(cur)
            if not row:
                return None
            cur.execute("DELETE FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            return _to_record(row)

    def list_by_date(self, calendar_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE calendar_date=%s
                ORDER BY check_in_time ASC, attendance_id ASC
                """,
                (calendar_date,),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_by_student(self, student_id: str, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        sql = f"""
            SELECT {_COLUMNS} FROM attendance_records
            WHERE student_id=%s
            ORDER BY calendar_date DESC, check_in_time DESC
        """
        params: tuple = (student_id,)
        if limit is not None:
            sql += " LIMIT %s"
            params = (student_id, int(limit))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_to_record(r) for r in fetchall(cur)]

    def list_by_date_range(
        self,
        start_date: date,
        end_date: date,
        *,
        student_id: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        clauses = ["calendar_date BETWEEN %s AND %s"]
        params: list[object] = [start_date, end_date]
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(student_id)
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE {where}
                ORDER BY calendar_date DESC, check_in_time DESC
                """,
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def reassign_student(self, old_student_id: str, new_student_id: str) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    "UPDATE attendance_records SET student_id=%s WHERE student_id=%s",
                    (new_student_id, old_student_id),
                )
                return int(cur.rowcount)
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                raise DuplicateRecordConflict(
                    f"Student {new_student_id!r} already has records on the same days"
                ) from exc
            raise


class MySQLCorrectionRepository(CorrectionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_corrections(attendance_id, original_status, original_late_minutes,
                                                   new_status, new_late_minutes, reason, corrected_by, corrected_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(attendance_id),
                    original_status.value,
                    int(original_late_minutes),
                    new_status.value,
                    int(new_late_minutes),
                    reason,
                    corrected_by,
                    corrected_at,
                ),
            )
            correction_id = int(cur.lastrowid)

        return AttendanceCorrection(
            correction_id=correction_id,
            attendance_id=int(attendance_id),
            original_status=original_status,
            original_late_minutes=int(original_late_minutes),
            new_status=new_status,
            new_late_minutes=int(new_late_minutes),
            reason=reason,
            corrected_by=corrected_by,
            corrected_at=corrected_at,
        )

    def list_for_record(self, attendance_id: int) -> Sequence[AttendanceCorrection]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT correction_id, attendance_id, original_status, original_late_minutes,
                       new_status, new_late_minutes, reason, corrected_by, corrected_at
                FROM attendance_corrections
                WHERE attendance_id=%s
                ORDER BY corrected_at DESC, correction_id DESC
                """,
                (int(attendance_id),),
            )
            return [
                AttendanceCorrection(
                    correction_id=int(r["correction_id"]),
                    attendance_id=int(r["attendance_id"]),
                    original_status=AttendanceStatus(r["original_status"]),
                    original_late_minutes=int(r["original_late_minutes"]),
                    new_status=AttendanceStatus(r["new_status"]),
                    new_late_minutes=int(r["new_late_minutes"]),
                    reason=r.get("reason"),
                    corrected_by=r["corrected_by"],
                    corrected_at=r["corrected_at"],
                )
                for r in fetchall(cur)
            ]
