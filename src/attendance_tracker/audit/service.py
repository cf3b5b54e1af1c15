from __future__ import annotations

import dataclasses
import json
import logging
from enum import Enum
from typing import Any, Optional, Sequence

from ..common.datetime_utils import Clock, SystemClock
from .model import AuditEntry
from .repository import AuditRepository

logger = logging.getLogger(__name__)


def _to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    return json.dumps(value, default=str, ensure_ascii=False, sort_keys=True)


class AuditTrail:
    """Best-effort audit side channel.

    ``record`` never raises: a failing audit store is logged as a warning and the
    calling operation carries on.
    """

    def __init__(self, audit: AuditRepository, *, clock: Optional[Clock] = None):
        self._audit = audit
        self._clock = clock or SystemClock()

    def record(self, *, actor: str, action: Any, entity: str, before: Any = None, after: Any = None) -> None:
        action_name = action.value if isinstance(action, Enum) else str(action)
        try:
            self._audit.add(
                actor=actor,
                action=action_name,
                entity=entity,
                before=_to_json(before),
                after=_to_json(after),
                ts=self._clock.now(),
            )
        except Exception as exc:
            logger.warning("Failed to write audit entry %s on %s: %s", action_name, entity, exc)

    def recent(self, limit: int = 50, *, action: Optional[str] = None) -> Sequence[AuditEntry]:
        return self._audit.list_recent(limit, action=action)
