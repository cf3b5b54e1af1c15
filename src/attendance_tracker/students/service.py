from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.validators import optional_text, require_non_empty
from ..core.constants import QR_PREFIX, SYSTEM_ACTOR
from ..core.enums import AuditAction
from ..core.exceptions import DomainError, DuplicateStudentError, StudentNotFound, ValidationError
from .model import Student
from .repository import StudentRepository

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("student_id", "name", "grade", "class_name", "guardian_phone")


@dataclass(frozen=True)
class BulkResult:
    index: int
    student_id: Optional[str]
    success: bool
    error: Optional[str] = None


def normalize_code(raw: Any) -> str:
    """Turn a kiosk submission (typed id, QR payload, padded barcode) into a student id."""

    code = require_non_empty(raw, "Student code")
    if code.upper().startswith(QR_PREFIX):
        code = code[len(QR_PREFIX):].strip()
    if not code:
        raise ValidationError("Student code is required")
    return code


class StudentDirectory:
    """Use case: manage the student roster and resolve kiosk codes."""

    def __init__(self, students: StudentRepository, *, ledger=None, audit: Optional[AuditTrail] = None):
        self._students = students
        self._ledger = ledger
        self._audit = audit

    def _record_audit(self, action: AuditAction, before: Any, after: Any) -> None:
        if self._audit:
            self._audit.record(actor=SYSTEM_ACTOR, action=action, entity="students", before=before, after=after)

    def get(self, student_id: str) -> Student:
        student = self._students.get_by_id(student_id)
        if not student:
            raise StudentNotFound(student_id)
        return student

    def find(self, student_id: str) -> Optional[Student]:
        return self._students.get_by_id(student_id)

    def resolve_code(self, raw: Any) -> Student:
        code = normalize_code(raw)
        student = self._students.get_by_id(code)
        if student:
            return student

        # Barcodes are zero-padded to a fixed width
        unpadded = code.lstrip("0") or "0"
        if unpadded != code:
            student = self._students.get_by_id(unpadded)
            if student:
                return student
        raise StudentNotFound(code)

    def list_students(self) -> Sequence[Student]:
        return self._students.list_all()

    def count(self) -> int:
        return self._students.count()

    def add_student(
        self,
        *,
        student_id: Any,
        name: Any,
        grade: Any,
        class_name: Any,
        guardian_phone: Any = None,
    ) -> Student:
        student = Student(
            student_id=require_non_empty(student_id, "Student id"),
            name=require_non_empty(name, "Name"),
            grade=require_non_empty(grade, "Grade"),
            class_name=require_non_empty(class_name, "Class"),
            guardian_phone=optional_text(guardian_phone),
        )
        self._students.create(student)
        logger.info("Student %s registered", student.student_id)
        self._record_audit(AuditAction.CREATE_STUDENT, None, student)
        return student

    def update_student(self, student_id: str, updates: Mapping[str, Any]) -> Student:
        existing = self.get(student_id)

        unknown = set(updates) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {}
        for field in ("student_id", "name", "grade", "class_name"):
            if field in updates:
                changes[field] = require_non_empty(updates[field], field)
        if "guardian_phone" in updates:
            changes["guardian_phone"] = optional_text(updates["guardian_phone"])

        updated = dataclasses.replace(existing, **changes)
        new_id = updated.student_id
        if new_id != student_id and self._students.get_by_id(new_id):
            raise DuplicateStudentError(f"Student id {new_id!r} already exists")

        moves_records = new_id != student_id and self._ledger is not None
        if moves_records:
            # Fails with DuplicateRecordConflict before anything is renamed
            moved = self._ledger.reassign_student(student_id, new_id)
        try:
            if not self._students.update(student_id, updated):
                raise StudentNotFound(student_id)
        except DomainError:
            if moves_records:
                self._ledger.reassign_student(new_id, student_id)
            raise
        if moves_records:
            logger.info("Moved %d attendance records from %s to %s", moved, student_id, new_id)

        stored = self.get(new_id)
        self._record_audit(AuditAction.UPDATE_STUDENT, existing, stored)
        return stored

    def delete_student(self, student_id: str) -> None:
        existing = self.get(student_id)
        if not self._students.delete_by_id(student_id):
            raise StudentNotFound(student_id)
        self._record_audit(AuditAction.DELETE_STUDENT, existing, None)

    def bulk_add_students(self, rows: Iterable[Mapping[str, Any]]) -> list[BulkResult]:
        """Register many students; a bad row is reported and the rest still go in."""

        results: list[BulkResult] = []
        for index, row in enumerate(rows):
            raw_id = row.get("student_id")
            try:
                student = self.add_student(
                    student_id=raw_id,
                    name=row.get("name"),
                    grade=row.get("grade"),
                    class_name=row.get("class_name"),
                    guardian_phone=row.get("guardian_phone"),
                )
                results.append(BulkResult(index=index, student_id=student.student_id, success=True))
            except DomainError as exc:
                results.append(
                    BulkResult(index=index, student_id=optional_text(raw_id), success=False, error=str(exc))
                )
        return results

    def search_students(
        self,
        query: Optional[str] = None,
        *,
        grade: Optional[str] = None,
        class_name: Optional[str] = None,
        min_late_days: Optional[int] = None,
        max_late_days: Optional[int] = None,
    ) -> list[Student]:
        items = list(self._students.list_all())

        term = (query or "").strip().lower()
        if term:
            items = [
                s
                for s in items
                if term in s.name.lower()
                or term in s.student_id.lower()
                or (s.guardian_phone and term in s.guardian_phone)
            ]
        if grade:
            items = [s for s in items if s.grade == grade]
        if class_name:
            items = [s for s in items if s.class_name == class_name]
        if min_late_days is not None:
            items = [s for s in items if s.late_days_count >= int(min_late_days)]
        if max_late_days is not None:
            items = [s for s in items if s.late_days_count <= int(max_late_days)]
        return items

    def add_late_stats(self, student_id: str, *, days: int, minutes: int) -> Student:
        updated = self._students.add_late_stats(student_id, days=days, minutes=minutes)
        if updated is None:
            raise StudentNotFound(student_id)
        return updated

    def set_late_stats(self, student_id: str, *, days: int, minutes: int) -> None:
        if not self._students.set_late_stats(student_id, days=days, minutes=minutes):
            logger.warning("Late statistics not updated, student %s no longer exists", student_id)
