from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import json_body
from ..container import Container


def register(app: Flask, container: Container) -> None:
    settings = container.settings_service

    @app.route("/api/settings", methods=["GET"], endpoint="api_get_settings")
    def api_get_settings():
        return jsonify(settings.current().to_dict())

    @app.route("/api/settings", methods=["PUT"], endpoint="api_update_settings")
    def api_update_settings():
        data = json_body()
        updated = settings.update(
            work_start_time=data.get("work_start_time"),
            late_threshold_minutes=data.get("late_threshold_minutes"),
        )
        return jsonify(updated.to_dict())
