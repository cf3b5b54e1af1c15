from __future__ import annotations

from datetime import date, datetime

import pytest

from attendance_tracker.core.enums import AttendanceStatus
from attendance_tracker.core.exceptions import (
    DuplicateRecordConflict,
    RecordNotFound,
    StudentNotFound,
    ValidationError,
)

DAY = date(2026, 2, 2)


def test_daily_stats_on_empty_ledger(service):
    stats = service.get_daily_stats(DAY)

    assert stats.present_count == 0
    assert stats.late_count == 0
    assert stats.absent_count == 3
    assert stats.total_students == 3
    assert stats.ratio == 0
    assert stats.first_record is None
    assert stats.last_record is None


def test_daily_stats_with_empty_directory_has_zero_ratio(container, service):
    for s in list(container.student_directory.list_students()):
        container.student_directory.delete_student(s.student_id)

    stats = service.get_daily_stats(DAY)

    assert stats.ratio == 0.0
    assert stats.percentage == 0
    assert stats.absent_count == 0


def test_single_check_in_is_both_first_and_last(service, clock):
    service.record_check_in("S1", now=clock.set(7, 5))

    stats = service.get_daily_stats(DAY)

    assert stats.first_record is not None
    assert stats.first_record == stats.last_record


def test_daily_stats_counts_and_order(service, clock):
    service.record_check_in("S2", now=clock.set(7, 20))
    service.record_check_in("S1", now=clock.set(6, 55))

    stats = service.get_daily_stats()

    assert stats.present_count == 1
    assert stats.late_count == 1
    assert stats.absent_count == 1
    assert stats.ratio == pytest.approx(2 / 3)
    assert stats.percentage == 67
    assert stats.first_record.student_id == "S1"
    assert stats.last_record.student_id == "S2"


def test_marked_absent_is_not_first_or_last(service, clock):
    clock.set(6, 0)
    service.mark_absent("S3", DAY, reason="sick")
    service.record_check_in("S1", now=clock.set(7, 5))

    stats = service.get_daily_stats(DAY)

    assert stats.absent_count == 2
    assert stats.first_record.student_id == "S1"
    assert stats.last_record.student_id == "S1"


def test_mark_absent_then_duplicate_conflict(service):
    record = service.mark_absent("S3", DAY)

    assert record.status == AttendanceStatus.ABSENT
    assert record.late_minutes == 0
    assert record.is_manual is True
    with pytest.raises(DuplicateRecordConflict):
        service.mark_absent("S3", DAY)


def test_mark_absent_after_check_in_conflicts(service, clock):
    service.record_check_in("S1", now=clock.set(7, 0))

    with pytest.raises(DuplicateRecordConflict):
        service.mark_absent("S1", DAY)


def test_mark_absent_unknown_student(service):
    with pytest.raises(StudentNotFound):
        service.mark_absent("NOPE", DAY)


def test_bulk_mark_absent_reports_per_student(service, clock):
    service.record_check_in("S1", now=clock.set(7, 0))

    results = {r.student_id: r for r in service.bulk_mark_absent(["S1", "S2", "NOPE"], DAY, reason="trip")}

    assert results["S1"].success is False
    assert results["S2"].success is True
    assert results["S2"].record.reason == "trip"
    assert results["NOPE"].success is False


def test_history_is_most_recent_first_and_limited(service, clock):
    for day_no in (2, 3, 4):
        clock.current = datetime(2026, 2, day_no, 7, 5)
        service.record_check_in("S1")

    history = service.get_history("S1", limit=2)

    assert [r.calendar_date.day for r in history] == [4, 3]
    assert service.get_history("S2") == []


def test_history_rejects_non_positive_limit(service):
    with pytest.raises(ValidationError):
        service.get_history("S1", limit=0)


def test_correction_is_logged_and_record_updated(service, container, clock):
    record = service.record_check_in("S2", now=clock.set(7, 30)).record
    clock.set(12, 0)

    updated, correction = service.correct_attendance(
        record.attendance_id, status="present", late_minutes=30, reason="bus delay"
    )

    assert updated.status == AttendanceStatus.PRESENT
    assert updated.late_minutes == 0
    assert updated.is_corrected is True
    assert correction.original_status == AttendanceStatus.LATE
    assert correction.original_late_minutes == 30
    assert correction.new_status == AttendanceStatus.PRESENT
    assert service.get_corrections(record.attendance_id) == [correction]


def test_correction_shifts_late_stats_by_that_record_only(service, container, clock):
    record = service.record_check_in("S2", now=clock.set(7, 30)).record
    clock.current = datetime(2026, 2, 3, 7, 20)
    service.record_check_in("S2")

    service.correct_attendance(record.attendance_id, status="present")
    student = container.student_directory.get("S2")
    assert student.late_days_count == 1
    assert student.late_minutes_total == 20

    other = service.record_check_in("S1", now=clock.set(7, 0)).record
    service.correct_attendance(other.attendance_id, status="late", late_minutes=12)
    assert container.student_directory.get("S1").late_minutes_total == 12


def test_correction_rejects_bad_input(service, clock):
    record = service.record_check_in("S1", now=clock.set(7, 0)).record

    with pytest.raises(ValidationError):
        service.correct_attendance(record.attendance_id, status="excused")
    with pytest.raises(ValidationError):
        service.correct_attendance(record.attendance_id, status="late", late_minutes=-3)
    with pytest.raises(RecordNotFound):
        service.correct_attendance(999, status="present")


def test_delete_record_removes_its_late_day(service, container, clock):
    record = service.record_check_in("S2", now=clock.set(7, 30)).record

    service.delete_record(record.attendance_id, reason="duplicate badge")

    assert container.student_directory.get("S2").late_days_count == 0
    with pytest.raises(RecordNotFound):
        service.get_record(record.attendance_id)


def test_date_range_filters(service, clock):
    service.record_check_in("S1", now=clock.set(7, 0))
    service.record_check_in("S2", now=clock.set(7, 30))
    service.record_check_in("S3", now=clock.set(7, 1), session_id="bus")

    assert {r.student_id for r in service.get_records_by_date_range(DAY, DAY, grade="Grade 10")} == {"S1", "S2"}
    assert [r.student_id for r in service.get_records_by_date_range(DAY, DAY, status="late")] == ["S2"]
    assert [r.student_id for r in service.get_records_by_date_range(DAY, DAY, class_name="A", grade="Grade 11")] == ["S3"]
    assert [r.student_id for r in service.get_records_by_date_range(DAY, DAY, session_id="bus")] == ["S3"]
    with pytest.raises(ValidationError):
        service.get_records_by_date_range(DAY, date(2026, 2, 1))


def test_summary_by_student_counts_missing_days_as_absent(service, clock):
    service.record_check_in("S2", now=clock.set(7, 30))
    clock.current = datetime(2026, 2, 3, 7, 0)
    service.record_check_in("S2")
    service.mark_absent("S1", date(2026, 2, 3))

    summary = service.get_summary(DAY, date(2026, 2, 3))

    assert summary["S2"].total == 2
    assert summary["S2"].late == 1
    assert summary["S2"].present == 1
    assert summary["S2"].total_late_minutes == 30
    assert summary["S2"].absent == 0
    assert summary["S1"].absent == 2
    assert summary["S3"].absent == 2
    assert summary["S3"].total == 0


def test_summary_by_date_and_session(service, clock):
    service.record_check_in("S1", now=clock.set(7, 0), session_id="am")
    service.record_check_in("S2", now=clock.set(7, 40))

    by_date = service.get_summary(DAY, DAY, group_by="date")
    by_session = service.get_summary(DAY, DAY, group_by="session")

    assert by_date["2026-02-02"].total == 2
    assert set(by_session) == {"am", "no-session"}
    with pytest.raises(ValidationError):
        service.get_summary(DAY, DAY, group_by="weekday")


def test_correcting_another_day_keeps_first_check_in_minutes(service, container, clock):
    service.record_check_in("S2", now=clock.set(7, 20))
    service.record_check_in("S2", now=clock.set(7, 35))
    clock.current = datetime(2026, 2, 3, 7, 0)
    other_day = service.record_check_in("S2").record

    service.correct_attendance(other_day.attendance_id, status="present", reason="re-scan")

    student = container.student_directory.get("S2")
    assert student.late_days_count == 1
    assert student.late_minutes_total == 20


def test_deleting_another_day_keeps_first_check_in_minutes(service, container, clock):
    service.record_check_in("S2", now=clock.set(7, 20))
    service.record_check_in("S2", now=clock.set(7, 35))
    clock.current = datetime(2026, 2, 3, 7, 30)
    other_day = service.record_check_in("S2").record

    service.delete_record(other_day.attendance_id)

    student = container.student_directory.get("S2")
    assert student.late_days_count == 1
    assert student.late_minutes_total == 20


def test_correcting_a_merged_day_removes_what_it_counted(service, container, clock):
    record = service.record_check_in("S2", now=clock.set(7, 20)).record
    service.record_check_in("S2", now=clock.set(7, 35))

    service.correct_attendance(record.attendance_id, status="present")

    student = container.student_directory.get("S2")
    assert (student.late_days_count, student.late_minutes_total) == (0, 0)


def test_late_arrival_after_absent_mark_counts_as_late_day(service, container, clock):
    clock.set(6, 0)
    service.mark_absent("S3", DAY, reason="phoned in sick")

    result = service.record_check_in("S3", now=clock.set(7, 40))

    assert result.is_repeat_check_in is False
    assert result.record.status == AttendanceStatus.LATE
    student = container.student_directory.get("S3")
    assert (student.late_days_count, student.late_minutes_total) == (1, 40)

    service.correct_attendance(result.record.attendance_id, status="absent")
    student = container.student_directory.get("S3")
    assert (student.late_days_count, student.late_minutes_total) == (0, 0)


def test_recalculate_matches_incremental_counters(service, container, clock):
    service.record_check_in("S2", now=clock.set(7, 20))
    service.record_check_in("S2", now=clock.set(7, 35))
    clock.current = datetime(2026, 2, 3, 7, 50)
    service.record_check_in("S2")
    container.student_directory.set_late_stats("S2", days=9, minutes=999)

    student = service.recalculate_late_stats("S2")

    assert (student.late_days_count, student.late_minutes_total) == (2, 70)
    with pytest.raises(StudentNotFound):
        service.recalculate_late_stats("NOPE")


def test_bulk_correct_reports_per_item(service, container, clock):
    late_record = service.record_check_in("S2", now=clock.set(7, 30)).record
    present_record = service.record_check_in("S1", now=clock.set(7, 0)).record

    results = service.bulk_correct_attendance(
        [
            {"attendance_id": late_record.attendance_id, "status": "present"},
            {"attendance_id": present_record.attendance_id, "status": "late", "late_minutes": 5, "reason": "gate log"},
            {"attendance_id": 999, "status": "present"},
            {"attendance_id": present_record.attendance_id, "status": "excused"},
        ]
    )

    assert [r.success for r in results] == [True, True, False, False]
    assert results[0].correction.reason == "bulk correction"
    assert results[1].record.late_minutes == 5
    assert container.student_directory.get("S2").late_days_count == 0
    assert container.student_directory.get("S1").late_minutes_total == 5


def test_daily_stats_for_one_class(service, clock):
    service.record_check_in("S1", now=clock.set(7, 0))
    service.record_check_in("S2", now=clock.set(7, 30))

    grade_10 = service.get_daily_stats(DAY, grade="Grade 10")
    class_a = service.get_daily_stats(DAY, class_name="A")
    grade_11_a = service.get_daily_stats(DAY, grade="Grade 11", class_name="A")

    assert (grade_10.total_students, grade_10.present_count, grade_10.late_count) == (2, 1, 1)
    assert (class_a.total_students, class_a.present_count, class_a.absent_count) == (2, 1, 1)
    assert (grade_11_a.total_students, grade_11_a.absent_count, grade_11_a.ratio) == (1, 1, 0.0)
    assert grade_11_a.first_record is None
