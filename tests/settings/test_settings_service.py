from __future__ import annotations

import json
from datetime import time

import pytest

from attendance_tracker.core.enums import AuditAction
from attendance_tracker.core.exceptions import InvalidConfiguration
from attendance_tracker.settings.model import AttendanceConfiguration


@pytest.fixture
def settings_service(container):
    return container.settings_service


def test_defaults_apply_until_updated(settings_service):
    config = settings_service.current()

    assert config.work_start_time == time(7, 0)
    assert config.late_threshold_minutes == 15


def test_update_is_partial_and_persisted(settings_service, container):
    settings_service.update(work_start_time="07:30")

    config = settings_service.current()
    assert config.work_start_time == time(7, 30)
    assert config.late_threshold_minutes == 15
    assert container.settings_repo.get_all()["work_start_time"] == "07:30"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"work_start_time": "7:3"},
        {"work_start_time": "25:00"},
        {"work_start_time": "noon"},
        {"late_threshold_minutes": -1},
        {"late_threshold_minutes": "soon"},
    ],
)
def test_update_rejects_invalid_values(settings_service, kwargs):
    with pytest.raises(InvalidConfiguration):
        settings_service.update(**kwargs)
    assert settings_service.current() == AttendanceConfiguration.parse("07:00", 15)


def test_update_writes_audit_entry(settings_service, container):
    settings_service.update(late_threshold_minutes=10, actor="principal")

    entry = container.audit_trail.recent(1, action=AuditAction.UPDATE_SETTINGS.value)[0]
    assert entry.actor == "principal"
    assert json.loads(entry.before)["late_threshold_minutes"] == 15
    assert json.loads(entry.after)["late_threshold_minutes"] == 10


def test_configuration_round_trips_to_dict():
    config = AttendanceConfiguration.parse("08:05", "0")

    assert config.to_dict() == {"work_start_time": "08:05", "late_threshold_minutes": 0}
