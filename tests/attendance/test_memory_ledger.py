from __future__ import annotations

import threading
from datetime import date, datetime

import pytest

from attendance_tracker.attendance.memory_attendance_repository import (
    InMemoryAttendanceLedger,
    InMemoryCorrectionRepository,
)
from attendance_tracker.attendance.strategies.base import StatusDecision
from attendance_tracker.common.keyed_lock import KeyedLock
from attendance_tracker.core.enums import AttendanceStatus
from attendance_tracker.core.exceptions import DuplicateRecordConflict, RecordNotFound, StorageUnavailable

DAY = date(2026, 2, 2)
PRESENT = StatusDecision(AttendanceStatus.PRESENT, 0)


def late(minutes: int) -> StatusDecision:
    return StatusDecision(AttendanceStatus.LATE, minutes)


def at(hour: int, minute: int, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
def ledger():
    return InMemoryAttendanceLedger(lock_timeout=0.2)


def test_first_upsert_inserts(ledger):
    record = ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 5), decision=PRESENT)

    assert record.is_repeat_check_in is False
    assert ledger.find_by_student_and_date("S1", DAY) == record
    assert ledger.get_by_id(record.attendance_id) == record


def test_upsert_merges_late_and_max_minutes(ledger):
    ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 30), decision=late(30))
    merged = ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 40), decision=PRESENT)

    assert merged.is_repeat_check_in is True
    assert merged.status == AttendanceStatus.LATE
    assert merged.late_minutes == 30
    assert merged.check_in_time == at(7, 40)


def test_check_in_replaces_absent_mark(ledger):
    ledger.insert_absent(student_id="S1", calendar_date=DAY, marked_at=at(6, 0), reason="sick")
    merged = ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 5), decision=PRESENT)

    assert merged.status == AttendanceStatus.PRESENT
    assert merged.late_minutes == 0
    assert merged.is_repeat_check_in is False
    assert merged.is_manual is False
    assert merged.reason == "sick"


def test_late_arrival_on_absent_day_counts_its_lateness(ledger):
    ledger.insert_absent(student_id="S1", calendar_date=DAY, marked_at=at(6, 0))
    merged = ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 40), decision=late(40))

    assert merged.status == AttendanceStatus.LATE
    assert merged.counted_late_minutes == 40


def test_repeat_keeps_counted_minutes_of_first_check_in(ledger):
    ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 20), decision=late(20))
    merged = ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 35), decision=late(35))

    assert merged.late_minutes == 35
    assert merged.counted_late_minutes == 20


def test_insert_absent_conflicts_with_existing_record(ledger):
    ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 5), decision=PRESENT)

    with pytest.raises(DuplicateRecordConflict):
        ledger.insert_absent(student_id="S1", calendar_date=DAY, marked_at=at(9, 0))


def test_get_by_unknown_id_raises(ledger):
    with pytest.raises(RecordNotFound):
        ledger.get_by_id(404)


def test_list_queries_return_empty_sequences(ledger):
    assert list(ledger.list_by_date(DAY)) == []
    assert list(ledger.list_by_student("S1", 10)) == []
    assert list(ledger.list_by_date_range(DAY, DAY)) == []
    assert ledger.find_by_student_and_date("S1", DAY) is None


def test_list_by_student_most_recent_first_with_limit(ledger):
    for day_no in (1, 3, 2):
        d = date(2026, 2, day_no)
        ledger.upsert_for_checkin(student_id="S1", calendar_date=d, check_in_time=at(7, 0, d), decision=PRESENT)

    records = ledger.list_by_student("S1", 2)

    assert [r.calendar_date.day for r in records] == [3, 2]
    assert len(ledger.list_by_student("S1")) == 3


def test_list_by_date_is_chronological(ledger):
    ledger.upsert_for_checkin(student_id="S2", calendar_date=DAY, check_in_time=at(7, 20), decision=late(20))
    ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(6, 50), decision=PRESENT)

    assert [r.student_id for r in ledger.list_by_date(DAY)] == ["S1", "S2"]


def test_delete_frees_the_day(ledger):
    record = ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 5), decision=PRESENT)

    assert ledger.delete(record.attendance_id) == record
    assert ledger.delete(record.attendance_id) is None
    assert ledger.find_by_student_and_date("S1", DAY) is None


def test_reassign_student_moves_records(ledger):
    ledger.upsert_for_checkin(student_id="OLD", calendar_date=DAY, check_in_time=at(7, 5), decision=PRESENT)

    assert ledger.reassign_student("OLD", "NEW") == 1
    assert ledger.find_by_student_and_date("OLD", DAY) is None
    assert ledger.find_by_student_and_date("NEW", DAY).student_id == "NEW"


def test_apply_correction_flags_record(ledger):
    record = ledger.upsert_for_checkin(student_id="S1", calendar_date=DAY, check_in_time=at(7, 30), decision=late(30))

    before, corrected = ledger.apply_correction(
        attendance_id=record.attendance_id,
        status=AttendanceStatus.PRESENT,
        late_minutes=0,
        reason="bus delay",
        corrected_at=at(12, 0),
    )

    assert corrected.is_corrected is True
    assert corrected.status == AttendanceStatus.PRESENT
    assert corrected.correction_reason == "bus delay"
    assert before == record
    assert corrected.counted_late_minutes is None


def test_corrections_listed_most_recent_first():
    repo = InMemoryCorrectionRepository()
    for hour in (9, 11, 10):
        repo.add(
            attendance_id=1,
            original_status=AttendanceStatus.LATE,
            original_late_minutes=20,
            new_status=AttendanceStatus.PRESENT,
            new_late_minutes=0,
            reason=None,
            corrected_by="admin",
            corrected_at=at(hour, 0),
        )

    assert [c.corrected_at.hour for c in repo.list_for_record(1)] == [11, 10, 9]
    assert list(repo.list_for_record(2)) == []


def test_keyed_lock_times_out_instead_of_hanging():
    locks = KeyedLock(timeout=0.05)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold("S1"):
            held.set()
            release.wait(1)

    t = threading.Thread(target=holder)
    t.start()
    held.wait(1)
    try:
        with pytest.raises(StorageUnavailable):
            with locks.hold("S1"):
                pass
        # Another key is not blocked
        with locks.hold("S2"):
            pass
    finally:
        release.set()
        t.join()


def test_keyed_lock_drops_idle_keys():
    locks = KeyedLock(timeout=0.05)

    for n in range(100):
        with locks.hold(("S1", n)):
            assert len(locks) == 1

    assert len(locks) == 0


def test_keyed_lock_drops_key_after_timeout():
    locks = KeyedLock(timeout=0.05)

    with locks.hold("S1"):
        waiter_errors = []

        def waiter():
            try:
                with locks.hold("S1"):
                    pass
            except StorageUnavailable as exc:
                waiter_errors.append(exc)

        t = threading.Thread(target=waiter)
        t.start()
        t.join()
        assert len(waiter_errors) == 1
        assert len(locks) == 1

    assert len(locks) == 0
