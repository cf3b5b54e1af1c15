from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import StorageUnavailable
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True, raise_deadlocks: bool = False):
    """Yield ``(conn, cursor)`` inside one transaction.

    Commits on success, rolls back on any error. Duplicate-key errors are re-raised
    untouched so repositories can turn them into domain conflicts, and so are
    deadlocks when ``raise_deadlocks`` is set. Every other driver error becomes
    StorageUnavailable.
    """

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        if is_duplicate_key(exc) or (raise_deadlocks and is_deadlock(exc)):
            conn.rollback()
            raise
        logger.error("Database operation failed: %s", exc)
        try:
            conn.rollback()
        except mysql.connector.Error:
            logger.debug("Rollback after failure also failed", exc_info=True)
        raise StorageUnavailable(f"Attendance database error: {exc}") from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def is_duplicate_key(exc: mysql.connector.Error) -> bool:
    return getattr(exc, "errno", None) == errorcode.ER_DUP_ENTRY


def is_deadlock(exc: mysql.connector.Error) -> bool:
    return getattr(exc, "errno", None) == errorcode.ER_LOCK_DEADLOCK


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
