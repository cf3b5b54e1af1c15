from __future__ import annotations

import mysql.connector
import pytest
from mysql.connector import errorcode

from attendance_tracker.core.exceptions import StorageUnavailable
from attendance_tracker.database.mysql_base import db_cursor


class FakeCursor:
    def __init__(self, error=None):
        self._error = error
        self.closed = False

    def execute(self, sql, params=None):
        if self._error is not None:
            raise self._error

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, error=None):
        self.cursor_obj = FakeCursor(error)
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, dictionary=True):
        return self.cursor_obj

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class FakeFactory:
    def __init__(self, conn):
        self.conn = conn

    def connect(self):
        return self.conn


def _run(conn, **kwargs):
    with db_cursor(FakeFactory(conn), **kwargs) as (_, cur):
        cur.execute("INSERT INTO attendance_records VALUES (%s)", (1,))


def test_success_commits_and_closes():
    conn = FakeConnection()

    _run(conn)

    assert conn.committed and conn.closed and conn.cursor_obj.closed
    assert not conn.rolled_back


def test_duplicate_key_is_reraised_for_repositories():
    conn = FakeConnection(mysql.connector.IntegrityError(msg="dup", errno=errorcode.ER_DUP_ENTRY))

    with pytest.raises(mysql.connector.IntegrityError):
        _run(conn)

    assert conn.rolled_back and conn.closed


def test_other_integrity_errors_become_storage_unavailable():
    conn = FakeConnection(mysql.connector.IntegrityError(msg="fk", errno=errorcode.ER_NO_REFERENCED_ROW_2))

    with pytest.raises(StorageUnavailable):
        _run(conn)

    assert conn.rolled_back and not conn.committed


def test_deadlock_passes_through_only_when_asked():
    deadlock = mysql.connector.DatabaseError(msg="deadlock", errno=errorcode.ER_LOCK_DEADLOCK)

    with pytest.raises(StorageUnavailable):
        _run(FakeConnection(deadlock))
    with pytest.raises(mysql.connector.DatabaseError) as info:
        _run(FakeConnection(deadlock), raise_deadlocks=True)
    assert not isinstance(info.value, StorageUnavailable)
