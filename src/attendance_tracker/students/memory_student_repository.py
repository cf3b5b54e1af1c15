from __future__ import annotations

import dataclasses
import threading
from typing import Iterable, Optional, Sequence

from ..core.exceptions import DuplicateStudentError
from .model import Student
from .repository import StudentRepository


class InMemoryStudentRepository(StudentRepository):
    def __init__(self, students: Iterable[Student] = ()):
        self._by_id: dict[str, Student] = {s.student_id: s for s in students}
        self._lock = threading.Lock()

    def get_by_id(self, student_id: str) -> Optional[Student]:
        with self._lock:
            return self._by_id.get(student_id)

    def list_all(self) -> Sequence[Student]:
        with self._lock:
            return sorted(self._by_id.values(), key=lambda s: s.student_id)

    def count(self) -> int:
        with self._lock:
            return len(self._by_id)

    def create(self, student: Student) -> None:
        with self._lock:
            if student.student_id in self._by_id:
                raise DuplicateStudentError(f"Student id {student.student_id!r} already exists")
            self._by_id[student.student_id] = student

    def update(self, student_id: str, student: Student) -> bool:
        with self._lock:
            current = self._by_id.get(student_id)
            if current is None:
                return False
            if student.student_id != student_id:
                if student.student_id in self._by_id:
                    raise DuplicateStudentError(f"Student id {student.student_id!r} already exists")
                del self._by_id[student_id]
            # Counters only move through add_late_stats / set_late_stats
            self._by_id[student.student_id] = dataclasses.replace(
                student,
                late_days_count=current.late_days_count,
                late_minutes_total=current.late_minutes_total,
            )
            return True

    def delete_by_id(self, student_id: str) -> bool:
        with self._lock:
            return self._by_id.pop(student_id, None) is not None

    def add_late_stats(self, student_id: str, *, days: int, minutes: int) -> Optional[Student]:
        with self._lock:
            current = self._by_id.get(student_id)
            if current is None:
                return None
            updated = dataclasses.replace(
                current,
                late_days_count=max(current.late_days_count + int(days), 0),
                late_minutes_total=max(current.late_minutes_total + int(minutes), 0),
            )
            self._by_id[student_id] = updated
            return updated

    def set_late_stats(self, student_id: str, *, days: int, minutes: int) -> bool:
        with self._lock:
            current = self._by_id.get(student_id)
            if current is None:
                return False
            self._by_id[student_id] = dataclasses.replace(
                current, late_days_count=int(days), late_minutes_total=int(minutes)
            )
            return True
