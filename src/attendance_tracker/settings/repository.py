from __future__ import annotations

from typing import Mapping, Protocol


class SettingsRepository(Protocol):
    """Key/value settings store. Values are kept as text."""

    def get_all(self) -> Mapping[str, str]:
        raise NotImplementedError

    def save(self, values: Mapping[str, str]) -> None:
        raise NotImplementedError
