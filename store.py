from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Protocol

from errors import PersistenceFailure


DATA_DIR = Path.home() / ".spelling-typer"
STORE_FILE = DATA_DIR / "errors.json"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class JsonFileStore:
    """Keeps every key in a single JSON object on disk."""

    def __init__(self, path: Path = STORE_FILE) -> None:
        self.path = path

    def get(self, key: str) -> Any:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceFailure(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceFailure(f"{self.path} does not hold a JSON object")
        return data

    def _save(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceFailure(f"Cannot write {self.path}: {exc}") from exc


class MemoryStore:
    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
