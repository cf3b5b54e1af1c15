from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from flask import Flask, jsonify, request

from ..core.exceptions import (
    DomainError,
    DuplicateRecordConflict,
    DuplicateStudentError,
    InvalidConfiguration,
    RecordNotFound,
    StatisticsUpdateFailed,
    StorageUnavailable,
    StudentNotFound,
    ValidationError,
)
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Attendance could not be saved right now, please try again"


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, (StudentNotFound, RecordNotFound)):
        return 404
    if isinstance(exc, (DuplicateRecordConflict, DuplicateStudentError)):
        return 409
    if isinstance(exc, (ValidationError, InvalidConfiguration)):
        return 400
    if isinstance(exc, (StorageUnavailable, StatisticsUpdateFailed)):
        return 503
    return 400


def register_error_handlers(app: Flask) -> None:
    def handle_domain_error(exc: DomainError):
        status = _status_for(exc)
        body: dict[str, Any] = {"success": False, "error": type(exc).__name__, "message": str(exc)}
        if isinstance(exc, StudentNotFound):
            body["message"] = "Student is not registered"
        elif status == 503:
            logger.error("Request %s %s failed: %s", request.method, request.path, exc)
            body["message"] = RETRY_MESSAGE
            if isinstance(exc, StatisticsUpdateFailed):
                body["record"] = exc.record.to_dict()
        return jsonify(body), status

    app.register_error_handler(DomainError, handle_domain_error)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def date_arg(name: str, default: Optional[date] = None) -> Optional[date]:
    value = request.args.get(name)
    if not value:
        return default
    return parse_iso_date(value)


def int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValidationError(f"Query parameter {name!r} must be an integer") from exc
