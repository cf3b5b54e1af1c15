from __future__ import annotations

from datetime import datetime

import pytest

from attendance_tracker.container import build_container
from attendance_tracker.settings.model import AttendanceConfiguration


class FixedClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, hour: int, minute: int, second: int = 0) -> datetime:
        self.current = self.current.replace(hour=hour, minute=minute, second=second, microsecond=0)
        return self.current


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 2, 2, 7, 0, 0)


@pytest.fixture
def clock(fixed_now) -> FixedClock:
    return FixedClock(fixed_now)


@pytest.fixture
def container(clock):
    c = build_container(
        storage_backend="memory",
        defaults=AttendanceConfiguration.parse("07:00", 15),
        lock_timeout=1.0,
        clock=clock,
    )
    directory = c.student_directory
    directory.add_student(student_id="S1", name="Ahmed Ali", grade="Grade 10", class_name="A", guardian_phone="0501234567")
    directory.add_student(student_id="S2", name="Fatima Saleh", grade="Grade 10", class_name="B")
    directory.add_student(student_id="S3", name="Omar Khaled", grade="Grade 11", class_name="A")
    return c


@pytest.fixture
def service(container):
    return container.attendance_service
