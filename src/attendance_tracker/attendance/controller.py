from __future__ import annotations

import csv
import io
from typing import Optional

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import date_arg, int_arg, json_body
from ..container import Container
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.exceptions import ValidationError
from .model import AttendanceRecord

CSV_FIELDS = [
    "date",
    "student_id",
    "name",
    "grade",
    "class_name",
    "check_in_time",
    "status",
    "late_minutes",
    "session_id",
    "reason",
]


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service
    directory = container.student_directory

    def _record_with_name(record: Optional[AttendanceRecord]) -> Optional[dict]:
        if record is None:
            return None
        student = directory.find(record.student_id)
        data = record.to_dict()
        data["name"] = student.name if student else None
        return data

    @app.route("/api/checkin", methods=["POST"], endpoint="api_checkin")
    def api_checkin():
        data = json_body()
        code = data.get("code") or data.get("student_id")
        if not code or not str(code).strip():
            raise ValidationError("Student code is required")

        result = service.record_check_in(str(code), session_id=data.get("session_id"))
        return jsonify(
            {
                "success": True,
                "is_repeat_check_in": result.is_repeat_check_in,
                "record": result.record.to_dict(),
                "student": {
                    "student_id": result.student.student_id,
                    "name": result.student.name,
                    "grade": result.student.grade,
                    "class_name": result.student.class_name,
                    "late_days_count": result.student.late_days_count,
                    "late_minutes_total": result.student.late_minutes_total,
                },
            }
        ), (200 if result.is_repeat_check_in else 201)

    @app.route("/api/stats/daily", methods=["GET"], endpoint="api_daily_stats")
    def api_daily_stats():
        stats = service.get_daily_stats(
            date_arg("date"),
            grade=request.args.get("grade") or None,
            class_name=request.args.get("class_name") or None,
        )
        return jsonify(
            {
                "date": stats.calendar_date.isoformat(),
                "present_count": stats.present_count,
                "late_count": stats.late_count,
                "absent_count": stats.absent_count,
                "total_students": stats.total_students,
                "ratio": stats.ratio,
                "percentage": stats.percentage,
                "first_record": _record_with_name(stats.first_record),
                "last_record": _record_with_name(stats.last_record),
            }
        )

    @app.route("/api/students/<student_id>/history", methods=["GET"], endpoint="api_student_history")
    def api_student_history(student_id: str):
        directory.get(student_id)
        records = service.get_history(student_id, int_arg("limit", DEFAULT_HISTORY_LIMIT))
        return jsonify([r.to_dict() for r in records])

    @app.route("/api/attendance/absent", methods=["POST"], endpoint="api_mark_absent")
    def api_mark_absent():
        data = json_body()
        day = parse_iso_date(data["date"]) if data.get("date") else service.today()
        student_ids = data.get("student_ids")

        if student_ids is not None:
            if not isinstance(student_ids, list):
                raise ValidationError("student_ids must be a list")
            results = service.bulk_mark_absent([str(s) for s in student_ids], day, reason=data.get("reason"))
            return jsonify(
                [
                    {
                        "student_id": r.student_id,
                        "success": r.success,
                        "record": r.record.to_dict() if r.record else None,
                        "error": r.error,
                    }
                    for r in results
                ]
            )

        record = service.mark_absent(
            str(data.get("student_id") or ""),
            day,
            reason=data.get("reason"),
            session_id=data.get("session_id"),
        )
        return jsonify(record.to_dict()), 201

    @app.route("/api/attendance/<int:attendance_id>/correction", methods=["POST"], endpoint="api_correct_attendance")
    def api_correct_attendance(attendance_id: int):
        data = json_body()
        record, correction = service.correct_attendance(
            attendance_id,
            status=data.get("status"),
            late_minutes=data.get("late_minutes", 0),
            reason=data.get("reason"),
        )
        return jsonify({"record": record.to_dict(), "correction": correction.to_dict()})

    @app.route("/api/attendance/corrections", methods=["POST"], endpoint="api_bulk_correct_attendance")
    def api_bulk_correct_attendance():
        data = request.get_json(silent=True)
        if not isinstance(data, list):
            raise ValidationError("Request body must be a JSON list of corrections")
        results = service.bulk_correct_attendance([item if isinstance(item, dict) else {} for item in data])
        return jsonify(
            {
                "success_count": sum(1 for r in results if r.success),
                "results": [
                    {
                        "attendance_id": r.attendance_id,
                        "success": r.success,
                        "record": r.record.to_dict() if r.record else None,
                        "error": r.error,
                    }
                    for r in results
                ],
            }
        )

    @app.route("/api/students/<student_id>/late-stats/recalculate", methods=["POST"], endpoint="api_recalculate_late_stats")
    def api_recalculate_late_stats(student_id: str):
        student = service.recalculate_late_stats(student_id)
        return jsonify(
            {
                "student_id": student.student_id,
                "late_days_count": student.late_days_count,
                "late_minutes_total": student.late_minutes_total,
            }
        )

    @app.route("/api/attendance/<int:attendance_id>/corrections", methods=["GET"], endpoint="api_list_corrections")
    def api_list_corrections(attendance_id: int):
        return jsonify([c.to_dict() for c in service.get_corrections(attendance_id)])

    @app.route("/api/attendance/<int:attendance_id>", methods=["DELETE"], endpoint="api_delete_attendance")
    def api_delete_attendance(attendance_id: int):
        service.delete_record(attendance_id, reason=request.args.get("reason"))
        return "", 204

    def _write_records_csv(records, *, filename: str):
        """Project ledger rows to CSV (Excel-friendly BOM)."""

        students = {s.student_id: s for s in directory.list_students()}
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for r in records:
            student = students.get(r.student_id)
            writer.writerow(
                {
                    "date": r.calendar_date.isoformat(),
                    "student_id": r.student_id,
                    "name": student.name if student else "",
                    "grade": student.grade if student else "",
                    "class_name": student.class_name if student else "",
                    "check_in_time": r.check_in_time.strftime("%H:%M:%S"),
                    "status": r.status.value,
                    "late_minutes": r.late_minutes,
                    "session_id": r.session_id or "",
                    "reason": r.reason or "",
                }
            )

        csv_bytes = out.getvalue().encode("utf-8-sig")
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/attendance", methods=["GET"], endpoint="api_attendance_range")
    def api_attendance_range():
        today = service.today()
        start = date_arg("start", today)
        end = date_arg("end", start)
        records = service.get_records_by_date_range(
            start,
            end,
            student_id=request.args.get("student_id") or None,
            grade=request.args.get("grade") or None,
            class_name=request.args.get("class_name") or None,
            status=request.args.get("status") or None,
            session_id=request.args.get("session_id") or None,
        )
        if request.args.get("format") == "csv":
            return _write_records_csv(records, filename=f"attendance_{start.isoformat()}_{end.isoformat()}.csv")
        return jsonify([r.to_dict() for r in records])

    @app.route("/api/reports/summary", methods=["GET"], endpoint="api_attendance_summary")
    def api_attendance_summary():
        today = service.today()
        start = date_arg("start", today)
        end = date_arg("end", start)
        summary = service.get_summary(start, end, group_by=request.args.get("group_by", "student"))
        return jsonify(
            {
                key: {
                    "total": t.total,
                    "present": t.present,
                    "late": t.late,
                    "absent": t.absent,
                    "total_late_minutes": t.total_late_minutes,
                }
                for key, t in summary.items()
            }
        )
