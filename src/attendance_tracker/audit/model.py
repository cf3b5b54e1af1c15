from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class AuditEntry:
    audit_id: int
    actor: str
    action: str
    entity: str
    before: Optional[str]
    after: Optional[str]
    ts: datetime
