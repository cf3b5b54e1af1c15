from __future__ import annotations

from dataclasses import dataclass

import mysql.connector
from mysql.connector.constants import ClientFlag

from ..core.constants import DEFAULT_CONNECTION_TIMEOUT_SECONDS
from ..core.exceptions import StorageUnavailable


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    connection_timeout: int = DEFAULT_CONNECTION_TIMEOUT_SECONDS

    @classmethod
    def from_dict(cls, db_config: dict) -> "DBConfig":
        return cls(
            host=str(db_config.get("host", "localhost")),
            port=int(db_config.get("port", 3306)),
            user=str(db_config.get("user", "root")),
            password=str(db_config.get("password", "")),
            database=str(db_config.get("database", "attendance_db")),
            connection_timeout=int(db_config.get("connection_timeout", DEFAULT_CONNECTION_TIMEOUT_SECONDS)),
        )


class DatabaseConnection:
    """DB connection factory.

    Note: We create short-lived connections per operation; a short connect timeout
    makes an unreachable server fail fast instead of hanging the kiosk.
    """

    def __init__(self, config: DBConfig):
        self._config = config

    @property
    def config(self) -> DBConfig:
        return self._config

    def connect(self):
        try:
            return mysql.connector.connect(
                host=self._config.host,
                port=int(self._config.port),
                user=self._config.user,
                password=self._config.password,
                database=self._config.database,
                connection_timeout=int(self._config.connection_timeout),
                client_flags=[ClientFlag.FOUND_ROWS],
            )
        except mysql.connector.Error as exc:
            raise StorageUnavailable(f"Cannot connect to attendance database: {exc}") from exc
