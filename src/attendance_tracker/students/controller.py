from __future__ import annotations

import io

from flask import Flask, jsonify, request, send_file

from ..common.http import int_arg, json_body
from ..container import Container
from ..core.exceptions import ValidationError
from .model import Student
from .qr import barcode_payload, qr_payload, render_qr_png


def _to_dict(s: Student) -> dict:
    return {
        "student_id": s.student_id,
        "name": s.name,
        "grade": s.grade,
        "class_name": s.class_name,
        "guardian_phone": s.guardian_phone,
        "late_days_count": s.late_days_count,
        "late_minutes_total": s.late_minutes_total,
        "qr_payload": qr_payload(s.student_id),
        "barcode": barcode_payload(s.student_id),
    }


def register(app: Flask, container: Container) -> None:
    directory = container.student_directory

    @app.route("/api/students", methods=["GET"], endpoint="api_list_students")
    def api_list_students():
        min_late = request.args.get("min_late_days")
        max_late = request.args.get("max_late_days")
        students = directory.search_students(
            request.args.get("q"),
            grade=request.args.get("grade") or None,
            class_name=request.args.get("class_name") or None,
            min_late_days=int_arg("min_late_days", 0) if min_late else None,
            max_late_days=int_arg("max_late_days", 0) if max_late else None,
        )
        return jsonify([_to_dict(s) for s in students])

    @app.route("/api/students", methods=["POST"], endpoint="api_add_student")
    def api_add_student():
        data = request.get_json(silent=True)
        if isinstance(data, list):
            results = directory.bulk_add_students(data)
            return jsonify(
                {
                    "success_count": sum(1 for r in results if r.success),
                    "results": [
                        {"index": r.index, "student_id": r.student_id, "success": r.success, "error": r.error}
                        for r in results
                    ],
                }
            )
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object or list")

        student = directory.add_student(
            student_id=data.get("student_id"),
            name=data.get("name"),
            grade=data.get("grade"),
            class_name=data.get("class_name"),
            guardian_phone=data.get("guardian_phone"),
        )
        return jsonify(_to_dict(student)), 201

    @app.route("/api/students/<student_id>", methods=["GET"], endpoint="api_get_student")
    def api_get_student(student_id: str):
        return jsonify(_to_dict(directory.get(student_id)))

    @app.route("/api/students/<student_id>", methods=["PUT"], endpoint="api_update_student")
    def api_update_student(student_id: str):
        return jsonify(_to_dict(directory.update_student(student_id, json_body())))

    @app.route("/api/students/<student_id>", methods=["DELETE"], endpoint="api_delete_student")
    def api_delete_student(student_id: str):
        directory.delete_student(student_id)
        return "", 204

    @app.route("/api/students/<student_id>/qr.png", methods=["GET"], endpoint="api_student_qr")
    def api_student_qr(student_id: str):
        student = directory.get(student_id)
        buf = io.BytesIO(render_qr_png(student.student_id))
        return send_file(buf, mimetype="image/png")
