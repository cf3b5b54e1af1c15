from __future__ import annotations

import threading
from typing import Mapping

from .repository import SettingsRepository


class InMemorySettingsRepository(SettingsRepository):
    def __init__(self, initial: Mapping[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_all(self) -> Mapping[str, str]:
        with self._lock:
            return dict(self._values)

    def save(self, values: Mapping[str, str]) -> None:
        with self._lock:
            self._values.update({k: str(v) for k, v in values.items()})
