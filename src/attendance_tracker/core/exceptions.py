from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class StudentNotFound(DomainError):
    """Raised when an identifier does not resolve to a registered student."""

    def __init__(self, student_id: str):
        super().__init__(f"Student {student_id!r} is not registered")
        self.student_id = student_id


class RecordNotFound(DomainError):
    """Raised when an attendance record is looked up by a missing primary key."""

    def __init__(self, attendance_id: Any):
        super().__init__(f"Attendance record {attendance_id!r} does not exist")
        self.attendance_id = attendance_id


class DuplicateRecordConflict(DomainError):
    """Raised when a record already exists for the same student and day."""


class DuplicateStudentError(DomainError):
    """Raised when a student id is already taken."""


class InvalidConfiguration(DomainError):
    """Raised for a malformed work start time or a negative late threshold."""


class StorageUnavailable(DomainError):
    """Raised when the backing store is unreachable, corrupt or busy."""


class StatisticsUpdateFailed(DomainError):
    """The ledger write succeeded but the student's late statistics were not updated.

    ``record`` holds the stored attendance record so callers know the check-in exists.
    """

    def __init__(self, message: str, *, record: Any):
        super().__init__(message)
        self.record = record
