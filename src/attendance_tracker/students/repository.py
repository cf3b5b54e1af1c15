from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Student


class StudentRepository(Protocol):
    """Repository interface for the student directory.

    Note (DIP): services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, student_id: str) -> Optional[Student]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Student]:
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError

    def create(self, student: Student) -> None:
        """Insert a new student. Raises DuplicateStudentError if the id is taken."""

        raise NotImplementedError

    def update(self, student_id: str, student: Student) -> bool:
        """Replace the profile stored under ``student_id`` (the id itself may change).

        Late counters are never written here; they belong to add_late_stats and
        set_late_stats.
        """

        raise NotImplementedError

    def delete_by_id(self, student_id: str) -> bool:
        raise NotImplementedError

    def add_late_stats(self, student_id: str, *, days: int, minutes: int) -> Optional[Student]:
        """Atomically adjust the late counters (negative deltas allowed, floor at zero)
        and return the updated student."""

        raise NotImplementedError

    def set_late_stats(self, student_id: str, *, days: int, minutes: int) -> bool:
        raise NotImplementedError
