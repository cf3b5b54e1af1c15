from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional, Sequence

from .model import AuditEntry
from .repository import AuditRepository


class InMemoryAuditRepository(AuditRepository):
    def __init__(self):
        self._entries: list[AuditEntry] = []
        self._lock = threading.Lock()

    def add(
        self,
        *,
        actor: str,
        action: str,
        entity: str,
        before: Optional[str],
        after: Optional[str],
        ts: datetime,
    ) -> int:
        with self._lock:
            entry = AuditEntry(
                audit_id=len(self._entries) + 1,
                actor=actor,
                action=action,
                entity=entity,
                before=before,
                after=after,
                ts=ts,
            )
            self._entries.append(entry)
            return entry.audit_id

    def list_recent(self, limit: int, *, action: Optional[str] = None) -> Sequence[AuditEntry]:
        with self._lock:
            items = [e for e in self._entries if action is None or e.action == action]
        items.sort(key=lambda e: (e.ts, e.audit_id), reverse=True)
        return items[:limit]
