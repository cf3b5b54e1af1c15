from __future__ import annotations

import logging
from typing import Optional

from ..audit.service import AuditTrail
from ..core.enums import AuditAction
from .model import AttendanceConfiguration
from .repository import SettingsRepository

logger = logging.getLogger(__name__)

WORK_START_KEY = "work_start_time"
LATE_THRESHOLD_KEY = "late_threshold_minutes"


class SettingsService:
    """Configuration provider for the attendance engine.

    ``current()`` always reads the store, so an update is visible to the very next
    check-in. Stored values override the process defaults key by key.
    """

    def __init__(
        self,
        settings: SettingsRepository,
        *,
        defaults: AttendanceConfiguration,
        audit: Optional[AuditTrail] = None,
    ):
        self._settings = settings
        self._defaults = defaults
        self._audit = audit

    def current(self) -> AttendanceConfiguration:
        stored = self._settings.get_all()
        return AttendanceConfiguration.parse(
            stored.get(WORK_START_KEY, self._defaults.work_start_time),
            stored.get(LATE_THRESHOLD_KEY, self._defaults.late_threshold_minutes),
        )

    def update(
        self,
        *,
        work_start_time: Optional[str] = None,
        late_threshold_minutes: Optional[int] = None,
        actor: str = "admin",
    ) -> AttendanceConfiguration:
        before = self.current()
        updated = AttendanceConfiguration.parse(
            work_start_time if work_start_time is not None else before.work_start_time,
            late_threshold_minutes if late_threshold_minutes is not None else before.late_threshold_minutes,
        )

        values = updated.to_dict()
        self._settings.save({WORK_START_KEY: values[WORK_START_KEY], LATE_THRESHOLD_KEY: str(values[LATE_THRESHOLD_KEY])})
        logger.info("Attendance settings updated: %s", values)

        if self._audit:
            self._audit.record(
                actor=actor,
                action=AuditAction.UPDATE_SETTINGS,
                entity="settings",
                before=before.to_dict(),
                after=values,
            )
        return updated
