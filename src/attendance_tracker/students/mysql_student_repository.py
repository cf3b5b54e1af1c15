from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import mysql.connector

from ..core.exceptions import DuplicateStudentError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import Student
from .repository import StudentRepository

_COLUMNS = "student_id, name, grade, class_name, guardian_phone, late_days_count, late_minutes_total"


def _to_student(r: Dict[str, Any]) -> Student:
    return Student(
        student_id=str(r["student_id"]),
        name=r["name"],
        grade=r["grade"],
        class_name=r["class_name"],
        guardian_phone=r.get("guardian_phone"),
        late_days_count=int(r.get("late_days_count") or 0),
        late_minutes_total=int(r.get("late_minutes_total") or 0),
    )


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, student_id: str) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE student_id=%s", (student_id,))
            row = fetchone(cur)
            return _to_student(row) if row else None

    def list_all(self) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students ORDER BY student_id")
            return [_to_student(r) for r in fetchall(cur)]

    def count(self) -> int:
        with db_cursor(self._conn_factory, dictionary=False) as (_, cur):
            cur.execute("SELECT COUNT(*) FROM students")
            (total,) = cur.fetchone()
            return int(total)

    def create(self, student: Student) -> None:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO students(student_id, name, grade, class_name, guardian_phone,
                                         late_days_count, late_minutes_total)
                    VALUES(%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        student.student_id,
                        student.name,
                        student.grade,
                        student.class_name,
                        student.guardian_phone,
                        student.late_days_count,
                        student.late_minutes_total,
                    ),
                )
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                raise DuplicateStudentError(f"Student id {student.student_id!r} already exists") from exc
            raise

    def update(self, student_id: str, student: Student) -> bool:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    UPDATE students
                    SET student_id=%s, name=%s, grade=%s, class_name=%s, guardian_phone=%s
                    WHERE student_id=%s
                    """,
                    (
                        student.student_id,
                        student.name,
                        student.grade,
                        student.class_name,
                        student.guardian_phone,
                        student_id,
                    ),
                )
                return cur.rowcount > 0
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                raise DuplicateStudentError(f"Student id {student.student_id!r} already exists") from exc
            raise

    def delete_by_id(self, student_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM students WHERE student_id=%s", (student_id,))
            return cur.rowcount > 0

    def add_late_stats(self, student_id: str, *, days: int, minutes: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE students
                SET late_days_count = GREATEST(CAST(late_days_count AS SIGNED) + %s, 0),
                    late_minutes_total = GREATEST(CAST(late_minutes_total AS SIGNED) + %s, 0)
                WHERE student_id=%s
                """,
                (int(days), int(minutes), student_id),
            )
            if cur.rowcount == 0:
                return None
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE student_id=%s", (student_id,))
            row = fetchone(cur)
            return _to_student(row) if row else None

    def set_late_stats(self, student_id: str, *, days: int, minutes: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE students SET late_days_count=%s, late_minutes_total=%s WHERE student_id=%s",
                (int(days), int(minutes), student_id),
            )
            return cur.rowcount > 0
