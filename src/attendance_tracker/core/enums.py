from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Attendance status stored in the ledger."""

    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"


class SummaryGrouping(str, Enum):
    STUDENT = "student"
    DATE = "date"
    SESSION = "session"


class AuditAction(str, Enum):
    CREATE_STUDENT = "CREATE_STUDENT"
    UPDATE_STUDENT = "UPDATE_STUDENT"
    DELETE_STUDENT = "DELETE_STUDENT"
    CREATE_ATTENDANCE = "CREATE_ATTENDANCE"
    UPDATE_ATTENDANCE = "UPDATE_ATTENDANCE"
    MARK_ABSENT = "MARK_ABSENT"
    CORRECT_ATTENDANCE = "CORRECT_ATTENDANCE"
    DELETE_ATTENDANCE = "DELETE_ATTENDANCE"
    UPDATE_SETTINGS = "UPDATE_SETTINGS"
