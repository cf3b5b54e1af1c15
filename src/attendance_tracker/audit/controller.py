from __future__ import annotations

import json

from flask import Flask, jsonify, request

from ..common.http import int_arg
from ..container import Container
from ..core.exceptions import ValidationError
from .model import AuditEntry


def _to_dict(e: AuditEntry) -> dict:
    return {
        "audit_id": e.audit_id,
        "actor": e.actor,
        "action": e.action,
        "entity": e.entity,
        "before": json.loads(e.before) if e.before else None,
        "after": json.loads(e.after) if e.after else None,
        "ts": e.ts.isoformat(timespec="seconds"),
    }


def register(app: Flask, container: Container) -> None:
    audit = container.audit_trail

    @app.route("/api/audit", methods=["GET"], endpoint="api_audit_log")
    def api_audit_log():
        limit = int_arg("limit", 50)
        if limit <= 0:
            raise ValidationError("Query parameter 'limit' must be positive")
        entries = audit.recent(limit, action=request.args.get("action") or None)
        return jsonify([_to_dict(e) for e in entries])
