from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
import time
from typing import Any, Callable

from errors import PersistenceFailure
from store import KeyValueStore


logger = logging.getLogger(__name__)

ERRORS_KEY = "spellingErrors"
MAX_DETAILS = 5


@dataclass
class ErrorDetail:
    expected: str
    typed: str
    position: int
    timestamp: int


def _now_ms() -> int:
    return int(time.time() * 1000)


class ErrorLog:
    """Per-word misspelling history, persisted after every mistake.

    Recording is best-effort: a broken store is logged and otherwise
    ignored so that typing is never interrupted.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = ERRORS_KEY,
        max_details: int = MAX_DETAILS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.store = store
        self.key = key
        self.max_details = max_details
        self._clock = clock

    def record(self, word: str, expected: str, typed: str, position: int) -> None:
        logger.debug(
            "Error in word %r: expected %r, typed %r at index %d",
            word, expected, typed, position,
        )
        try:
            errors = self._load()
            entry = errors.setdefault(word, {"count": 0, "details": []})
            entry["count"] = int(entry.get("count", 0)) + 1
            details = list(entry.get("details") or [])
            details.append(asdict(ErrorDetail(expected, typed, position, self._clock())))
            entry["details"] = details[-self.max_details:]
            self.store.set(self.key, errors)
        except Exception:
            logger.warning("Failed to record error for %r", word, exc_info=True)

    def snapshot(self) -> dict[str, Any]:
        try:
            return self._load()
        except Exception:
            logger.warning("Failed to read error log", exc_info=True)
            return {}

    def most_missed(self, limit: int = 10) -> list[tuple[str, int]]:
        ranked = sorted(
            (
                (word, int(entry.get("count", 0)))
                for word, entry in self.snapshot().items()
                if isinstance(entry, dict)
            ),
            key=lambda item: (-item[1], item[0]),
        )
        return ranked[:limit]

    def _load(self) -> dict[str, Any]:
        errors = self.store.get(self.key)
        if errors is None:
            return {}
        if not isinstance(errors, dict):
            raise PersistenceFailure(f"Unexpected error log shape: {type(errors).__name__}")
        return errors
