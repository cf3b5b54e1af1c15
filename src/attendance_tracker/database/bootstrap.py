from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

SAMPLE_STUDENTS = (
    ("1001", "Ahmed Mohammed Ali", "Grade 10", "A", "0501234567"),
    ("1002", "Fatima Abdullah", "Grade 10", "A", "0509876543"),
    ("1003", "Mohammed Ahmed", "Grade 10", "B", "0507654321"),
    ("2001", "Abdulrahman Khaled", "Grade 11", "A", "0502345678"),
    ("2002", "Maryam Mohammed", "Grade 11", "A", "0508765432"),
    ("3001", "Zainab Abdulrahman", "Grade 12", "A", "0504321098"),
)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema files (handles ';' inside quotes).
    buf: list[str] = []
    quote: str | None = None

    for ch in sql:
        if ch in ("'", '"'):
            if quote is None:
                quote = ch
            elif quote == ch:
                quote = None
        if ch == ";" and quote is None:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue
        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _connect(config: DBConfig, *, with_database: bool = True):
    kwargs = dict(
        host=config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        connection_timeout=config.connection_timeout,
        use_pure=True,
    )
    if with_database:
        kwargs["database"] = config.database
    return mysql.connector.connect(**kwargs)


def ensure_database_exists(config: DBConfig) -> None:
    conn = _connect(config, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(config: DBConfig, *, schema_path: str | Path = SCHEMA_PATH) -> None:
    ensure_database_exists(config)
    sql = _strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8"))

    conn = _connect(config)
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("Schema applied to %s@%s/%s", config.user, config.host, config.database)


def ensure_sample_students(config: DBConfig) -> int:
    """Insert the demo roster when the students table is empty. Returns rows added."""

    conn = _connect(config)
    try:
        cur = conn.cursor()
        cur.execute("SELECT COUNT(*) FROM students")
        (count,) = cur.fetchone()
        if count:
            return 0
        cur.executemany(
            """
            INSERT INTO students (student_id, name, grade, class_name, guardian_phone)
            VALUES (%s, %s, %s, %s, %s)
            """,
            SAMPLE_STUDENTS,
        )
        conn.commit()
        return len(SAMPLE_STUDENTS)
    finally:
        conn.close()


def list_tables(config: DBConfig) -> list[str]:
    conn = _connect(config)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
