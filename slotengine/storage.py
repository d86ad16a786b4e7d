"""Key-value storage for the two persisted collections."""

from __future__ import annotations

import copy
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

PROVIDERS_KEY = "providers"
APPOINTMENTS_KEY = "appointments"


class KeyValueStore(ABC):
    """Whole-collection load/save of the lists stored under each key."""

    @abstractmethod
    def load(self, key: str) -> list[dict[str, Any]]:
        """Every item stored under key, or an empty list."""

    @abstractmethod
    def save(self, key: str, items: list[dict[str, Any]]) -> None:
        """Replace everything stored under key with items."""


class MemoryStore(KeyValueStore):
    """In-process store; copies on the way in and out like a real backend would."""

    def __init__(self, initial: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self._data: dict[str, list[dict[str, Any]]] = copy.deepcopy(initial or {})

    def load(self, key: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._data.get(key, []))

    def save(self, key: str, items: list[dict[str, Any]]) -> None:
        self._data[key] = copy.deepcopy(items)


class JsonFileStore(KeyValueStore):
    """One <key>.json file per collection under directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> list[dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} does not contain a JSON list")
        return data

    def save(self, key: str, items: list[dict[str, Any]]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

        # Atomic write
        with tempfile.NamedTemporaryFile(
            "w", delete=False, encoding="utf-8", dir=self.directory, suffix=".tmp"
        ) as tf:
            json.dump(items, tf, ensure_ascii=False, indent=2)
            tmp_name = tf.name

        os.replace(tmp_name, self._path(key))
