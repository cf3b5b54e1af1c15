from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import AuditEntry


class AuditRepository(Protocol):
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
        raise NotImplementedError

    def list_recent(self, limit: int, *, action: Optional[str] = None) -> Sequence[AuditEntry]:
        raise NotImplementedError
