from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import AuditEntry
from .repository import AuditRepository


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_log(actor, action, entity, before_json, after_json, ts)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (actor, action, entity, before, after, ts),
            )
            return int(cur.lastrowid)

    def list_recent(self, limit: int, *, action: Optional[str] = None) -> Sequence[AuditEntry]:
        where = "WHERE action=%s" if action else ""
        params: tuple = (action, int(limit)) if action else (int(limit),)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT audit_id, actor, action, entity, before_json, after_json, ts
                FROM audit_log
                {where}
                ORDER BY ts DESC, audit_id DESC
                LIMIT %s
                """,
                params,
            )
            return [
                AuditEntry(
                    audit_id=int(r["audit_id"]),
                    actor=r["actor"],
                    action=r["action"],
                    entity=r["entity"],
                    before=r.get("before_json"),
                    after=r.get("after_json"),
                    ts=r["ts"],
                )
                for r in fetchall(cur)
            ]
