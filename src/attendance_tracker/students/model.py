from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Student:
    """Domain entity: a registered student and their cumulative lateness."""

    student_id: str
    name: str
    grade: str
    class_name: str
    guardian_phone: Optional[str] = None
    late_days_count: int = 0
    late_minutes_total: int = 0
