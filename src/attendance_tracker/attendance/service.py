from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import Clock, SystemClock, iter_dates
from ..common.validators import optional_text, require_non_negative_int
from ..core.constants import ADMIN_ACTOR, DEFAULT_HISTORY_LIMIT, SYSTEM_ACTOR
from ..core.enums import AttendanceStatus, AuditAction, SummaryGrouping
from ..core.exceptions import (
    DomainError,
    RecordNotFound,
    StatisticsUpdateFailed,
    StorageUnavailable,
    StudentNotFound,
    ValidationError,
)
from ..settings.service import SettingsService
from ..students.model import Student
from ..students.service import StudentDirectory
from .factory import AttendanceStrategyFactory, classify
from .model import AttendanceCorrection, AttendanceRecord, AttendanceTally, CheckInResult, DailyStats
from .repository import AttendanceLedger, CorrectionRepository
from .rules import late_contribution, normalize_correction

logger = logging.getLogger(__name__)

BULK_CORRECTION_REASON = "bulk correction"


@dataclass(frozen=True)
class AbsenceResult:
    student_id: str
    success: bool
    record: Optional[AttendanceRecord] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class CorrectionResult:
    attendance_id: Any
    success: bool
    record: Optional[AttendanceRecord] = None
    correction: Optional[AttendanceCorrection] = None
    error: Optional[str] = None


class AttendanceService:
    """Use cases around the attendance ledger.

    Owns every attendance rule exactly once: classification, repeat handling,
    late-statistics bookkeeping and the read-side aggregates. Storage, clock and
    configuration are injected.
    """

    def __init__(
        self,
        ledger: AttendanceLedger,
        corrections: CorrectionRepository,
        directory: StudentDirectory,
        settings: SettingsService,
        *,
        clock: Optional[Clock] = None,
        audit: Optional[AuditTrail] = None,
        strategy_factory: Optional[AttendanceStrategyFactory] = None,
    ):
        self._ledger = ledger
        self._corrections = corrections
        self._directory = directory
        self._settings = settings
        self._clock = clock or SystemClock()
        self._audit = audit
        self._factory = strategy_factory or AttendanceStrategyFactory()

    def _record_audit(self, actor: str, action: AuditAction, before: Any, after: Any) -> None:
        if self._audit:
            self._audit.record(actor=actor, action=action, entity="attendance", before=before, after=after)

    # ------------------------------------------------------------------ writes

    def record_check_in(
        self,
        code: Any,
        *,
        now: Optional[datetime] = None,
        session_id: Optional[str] = None,
    ) -> CheckInResult:
        """Check a student in for the current moment.

        ``code`` is whatever the kiosk captured: a typed id, a badge QR payload or a
        zero-padded barcode. Repeats on the same day merge into the day's record.
        """

        now = now or self._clock.now()
        student = self._directory.resolve_code(code)
        config = self._settings.current()
        decision = classify(now, config.work_start_time, config.late_threshold_minutes, factory=self._factory)

        record = self._ledger.upsert_for_checkin(
            student_id=student.student_id,
            calendar_date=now.date(),
            check_in_time=now,
            decision=decision,
            session_id=optional_text(session_id),
        )
        is_repeat = record.is_repeat_check_in

        if not is_repeat and record.counted_late_minutes is not None:
            try:
                student = self._directory.add_late_stats(
                    student.student_id, days=1, minutes=record.counted_late_minutes
                )
            except DomainError as exc:
                logger.error("Check-in %s stored but late statistics for %s not updated: %s",
                             record.attendance_id, student.student_id, exc)
                raise StatisticsUpdateFailed(
                    f"Check-in recorded but late statistics for {student.student_id!r} may be stale",
                    record=record,
                ) from exc

        logger.info(
            "Check-in %s student=%s status=%s late=%d repeat=%s",
            record.attendance_id,
            student.student_id,
            record.status.value,
            record.late_minutes,
            is_repeat,
        )
        self._record_audit(
            SYSTEM_ACTOR,
            AuditAction.UPDATE_ATTENDANCE if is_repeat else AuditAction.CREATE_ATTENDANCE,
            None,
            record.to_dict(),
        )
        return CheckInResult(record=record, is_repeat_check_in=is_repeat, student=student)

    def mark_absent(
        self,
        student_id: str,
        day: date,
        *,
        reason: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AttendanceRecord:
        student = self._directory.get(student_id)
        record = self._ledger.insert_absent(
            student_id=student.student_id,
            calendar_date=day,
            marked_at=self._clock.now(),
            reason=optional_text(reason),
            session_id=optional_text(session_id),
        )
        self._record_audit(ADMIN_ACTOR, AuditAction.MARK_ABSENT, None, record.to_dict())
        return record

    def bulk_mark_absent(
        self,
        student_ids: Iterable[str],
        day: date,
        *,
        reason: Optional[str] = None,
    ) -> list[AbsenceResult]:
        """Mark each student absent; conflicts and unknown ids are reported per student.

        Storage failures abort the whole batch.
        """

        results: list[AbsenceResult] = []
        for student_id in student_ids:
            try:
                record = self.mark_absent(student_id, day, reason=reason)
                results.append(AbsenceResult(student_id=student_id, success=True, record=record))
            except StorageUnavailable:
                raise
            except DomainError as exc:
                results.append(AbsenceResult(student_id=student_id, success=False, error=str(exc)))
        return results

    def correct_attendance(
        self,
        attendance_id: int,
        *,
        status: Any,
        late_minutes: Any = 0,
        reason: Optional[str] = None,
        corrected_by: str = ADMIN_ACTOR,
    ) -> tuple[AttendanceRecord, AttendanceCorrection]:
        """Administrative override of a record's status.

        The change is logged, and the student's late counters move by the difference
        between what the record counted before and after. Other days are untouched.
        """

        new_status, new_late_minutes = normalize_correction(status, late_minutes)
        reason = optional_text(reason)
        corrected_at = self._clock.now()

        before, updated = self._ledger.apply_correction(
            attendance_id=int(attendance_id),
            status=new_status,
            late_minutes=new_late_minutes,
            reason=reason,
            corrected_at=corrected_at,
        )
        correction = self._corrections.add(
            attendance_id=before.attendance_id,
            original_status=before.status,
            original_late_minutes=before.late_minutes,
            new_status=updated.status,
            new_late_minutes=updated.late_minutes,
            reason=reason,
            corrected_by=corrected_by,
            corrected_at=corrected_at,
        )
        self._shift_late_stats(before, updated)

        self._record_audit(corrected_by, AuditAction.CORRECT_ATTENDANCE, before.to_dict(), updated.to_dict())
        return updated, correction

    def bulk_correct_attendance(
        self,
        corrections: Iterable[Mapping[str, Any]],
        *,
        corrected_by: str = ADMIN_ACTOR,
    ) -> list[CorrectionResult]:
        """Apply many corrections; a bad item is reported and the rest still go in.

        Storage failures abort the whole batch.
        """

        results: list[CorrectionResult] = []
        for item in corrections:
            attendance_id = item.get("attendance_id")
            try:
                record, correction = self.correct_attendance(
                    require_non_negative_int(attendance_id, "Attendance id"),
                    status=item.get("status"),
                    late_minutes=item.get("late_minutes", 0),
                    reason=item.get("reason") or BULK_CORRECTION_REASON,
                    corrected_by=corrected_by,
                )
                results.append(
                    CorrectionResult(attendance_id=attendance_id, success=True, record=record, correction=correction)
                )
            except StorageUnavailable:
                raise
            except DomainError as exc:
                results.append(CorrectionResult(attendance_id=attendance_id, success=False, error=str(exc)))
        return results

    def delete_record(self, attendance_id: int, *, reason: Optional[str] = None) -> None:
        deleted = self._ledger.delete(int(attendance_id))
        if deleted is None:
            raise RecordNotFound(attendance_id)
        self._shift_late_stats(deleted, None)
        self._record_audit(ADMIN_ACTOR, AuditAction.DELETE_ATTENDANCE, deleted.to_dict(), {"reason": optional_text(reason)})

    def _shift_late_stats(self, before: AttendanceRecord, after: Optional[AttendanceRecord]) -> None:
        old_days, old_minutes = late_contribution(before)
        new_days, new_minutes = late_contribution(after)
        if (old_days, old_minutes) == (new_days, new_minutes):
            return

        try:
            self._directory.add_late_stats(
                before.student_id, days=new_days - old_days, minutes=new_minutes - old_minutes
            )
        except StudentNotFound:
            logger.warning("Late statistics not adjusted, student %s is no longer registered", before.student_id)
        except DomainError as exc:
            logger.error("Late statistics for %s not adjusted after change to record %s: %s",
                         before.student_id, before.attendance_id, exc)
            raise StatisticsUpdateFailed(
                f"Record {before.attendance_id} changed but late statistics for {before.student_id!r} may be stale",
                record=after or before,
            ) from exc

    def recalculate_late_stats(self, student_id: str) -> Student:
        """Rebuild a student's counters from what each of their records counted.

        Repairs counters left stale by a StatisticsUpdateFailed.
        """

        student = self._directory.get(student_id)
        counted = [r.counted_late_minutes for r in self._ledger.list_by_student(student.student_id)
                   if r.counted_late_minutes is not None]
        self._directory.set_late_stats(student.student_id, days=len(counted), minutes=sum(counted))
        logger.info("Late statistics for %s rebuilt: %d days, %d minutes", student.student_id, len(counted), sum(counted))
        return self._directory.get(student.student_id)

    # ------------------------------------------------------------------- reads

    def today(self) -> date:
        return self._clock.now().date()

    def get_daily_stats(
        self,
        day: Optional[date] = None,
        *,
        grade: Optional[str] = None,
        class_name: Optional[str] = None,
    ) -> DailyStats:
        """Dashboard counters for one day, for the whole school or one grade / class."""

        day = day or self.today()
        records = list(self._ledger.list_by_date(day))
        if grade or class_name:
            roster = {s.student_id for s in self._directory.search_students(grade=grade, class_name=class_name)}
            records = [r for r in records if r.student_id in roster]
            total = len(roster)
        else:
            total = self._directory.count()

        present = sum(1 for r in records if r.status == AttendanceStatus.PRESENT)
        late = sum(1 for r in records if r.status == AttendanceStatus.LATE)
        attended = present + late
        ratio = min(attended / total, 1.0) if total else 0.0

        checked_in = sorted(
            (r for r in records if r.status != AttendanceStatus.ABSENT),
            key=lambda r: (r.check_in_time, r.attendance_id),
        )
        return DailyStats(
            calendar_date=day,
            present_count=present,
            late_count=late,
            absent_count=max(total - attended, 0),
            total_students=total,
            ratio=ratio,
            first_record=checked_in[0] if checked_in else None,
            last_record=checked_in[-1] if checked_in else None,
        )

    def get_history(self, student_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        if int(limit) <= 0:
            raise ValidationError("History limit must be positive")
        return self._ledger.list_by_student(student_id, int(limit))

    def get_record(self, attendance_id: int) -> AttendanceRecord:
        return self._ledger.get_by_id(attendance_id)

    def get_corrections(self, attendance_id: int) -> Sequence[AttendanceCorrection]:
        self._ledger.get_by_id(attendance_id)
        return self._corrections.list_for_record(attendance_id)

    def get_records_by_date_range(
        self,
        start: date,
        end: date,
        *,
        student_id: Optional[str] = None,
        grade: Optional[str] = None,
        class_name: Optional[str] = None,
        status: Optional[Any] = None,
        session_id: Optional[str] = None,
    ) -> list[AttendanceRecord]:
        if end < start:
            raise ValidationError("End date must not be before start date")

        records = list(self._ledger.list_by_date_range(start, end, student_id=student_id))

        if grade or class_name:
            allowed = {s.student_id for s in self._directory.search_students(grade=grade, class_name=class_name)}
            records = [r for r in records if r.student_id in allowed]
        if status:
            try:
                wanted = AttendanceStatus(status)
            except ValueError as exc:
                raise ValidationError(f"Unknown attendance status {status!r}") from exc
            records = [r for r in records if r.status == wanted]
        if session_id:
            records = [r for r in records if r.session_id == session_id]
        return records

    def get_summary(
        self,
        start: date,
        end: date,
        *,
        group_by: Any = SummaryGrouping.STUDENT,
    ) -> dict[str, AttendanceTally]:
        """Totals per student, day or session over an inclusive date range.

        Student grouping lists every registered student; days without a record
        count as absent.
        """

        try:
            grouping = SummaryGrouping(group_by)
        except ValueError as exc:
            raise ValidationError(f"Cannot group attendance by {group_by!r}") from exc

        summary: dict[str, AttendanceTally] = {}
        for record in self.get_records_by_date_range(start, end):
            if grouping == SummaryGrouping.STUDENT:
                key = record.student_id
            elif grouping == SummaryGrouping.DATE:
                key = record.calendar_date.isoformat()
            else:
                key = record.session_id or "no-session"
            summary.setdefault(key, AttendanceTally()).add(record)

        if grouping == SummaryGrouping.STUDENT:
            days = sum(1 for _ in iter_dates(start, end))
            for student in self._directory.list_students():
                tally = summary.setdefault(student.student_id, AttendanceTally())
                # Explicit absences are already counted; add the days with no record at all
                tally.absent += max(days - tally.total, 0)
        return summary
