from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.memory_attendance_repository import InMemoryAttendanceLedger, InMemoryCorrectionRepository
from .attendance.mysql_attendance_repository import MySQLAttendanceLedger, MySQLCorrectionRepository
from .attendance.repository import AttendanceLedger, CorrectionRepository
from .attendance.service import AttendanceService
from .audit.memory_audit_repository import InMemoryAuditRepository
from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.repository import AuditRepository
from .audit.service import AuditTrail
from .common.datetime_utils import Clock, SystemClock
from .core.constants import DEFAULT_LOCK_TIMEOUT_SECONDS
from .core.exceptions import InvalidConfiguration
from .database.connection import DBConfig, DatabaseConnection
from .settings.memory_settings_repository import InMemorySettingsRepository
from .settings.model import AttendanceConfiguration
from .settings.mysql_settings_repository import MySQLSettingsRepository
from .settings.repository import SettingsRepository
from .settings.service import SettingsService
from .students.memory_student_repository import InMemoryStudentRepository
from .students.mysql_student_repository import MySQLStudentRepository
from .students.repository import StudentRepository
from .students.service import StudentDirectory


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    clock: Clock

    students_repo: StudentRepository
    attendance_ledger: AttendanceLedger
    corrections_repo: CorrectionRepository
    settings_repo: SettingsRepository
    audit_repo: AuditRepository

    audit_trail: AuditTrail
    student_directory: StudentDirectory
    settings_service: SettingsService
    attendance_service: AttendanceService


def build_container(
    *,
    storage_backend: str = "mysql",
    db_config: Optional[dict] = None,
    defaults: Optional[AttendanceConfiguration] = None,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    clock: Optional[Clock] = None,
) -> Container:
    clock = clock or SystemClock()
    defaults = defaults or AttendanceConfiguration.parse("07:00", 15)

    conn: Optional[DatabaseConnection] = None
    if storage_backend == "mysql":
        if not db_config:
            raise InvalidConfiguration("DB_CONFIG is required for the mysql storage backend")
        conn = DatabaseConnection(DBConfig.from_dict(db_config))
        students_repo = MySQLStudentRepository(conn)
        attendance_ledger = MySQLAttendanceLedger(conn)
        corrections_repo = MySQLCorrectionRepository(conn)
        settings_repo = MySQLSettingsRepository(conn)
        audit_repo = MySQLAuditRepository(conn)
    elif storage_backend == "memory":
        students_repo = InMemoryStudentRepository()
        attendance_ledger = InMemoryAttendanceLedger(lock_timeout=lock_timeout)
        corrections_repo = InMemoryCorrectionRepository()
        settings_repo = InMemorySettingsRepository()
        audit_repo = InMemoryAuditRepository()
    else:
        raise InvalidConfiguration(f"Unknown storage backend {storage_backend!r}")

    audit_trail = AuditTrail(audit_repo, clock=clock)
    student_directory = StudentDirectory(students_repo, ledger=attendance_ledger, audit=audit_trail)
    settings_service = SettingsService(settings_repo, defaults=defaults, audit=audit_trail)
    attendance_service = AttendanceService(
        attendance_ledger,
        corrections_repo,
        student_directory,
        settings_service,
        clock=clock,
        audit=audit_trail,
        strategy_factory=AttendanceStrategyFactory(),
    )

    return Container(
        conn=conn,
        clock=clock,
        students_repo=students_repo,
        attendance_ledger=attendance_ledger,
        corrections_repo=corrections_repo,
        settings_repo=settings_repo,
        audit_repo=audit_repo,
        audit_trail=audit_trail,
        student_directory=student_directory,
        settings_service=settings_service,
        attendance_service=attendance_service,
    )
