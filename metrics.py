from __future__ import annotations

from dataclasses import dataclass
import math

CHARS_PER_WORD = 5.0


@dataclass(frozen=True)
class Metrics:
    elapsed: str
    wpm: int
    accuracy: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def elapsed_seconds(started_at: float | None, now: float) -> float:
    if started_at is None:
        return 0.0
    return max(now - started_at, 0.0)


def compute_wpm(chars_typed: int, elapsed_s: float) -> int:
    # Gross WPM: mistakes count towards speed.
    minutes = elapsed_s / 60.0
    if minutes <= 0:
        return 0
    return _round_half_up((chars_typed / CHARS_PER_WORD) / minutes)


def compute_accuracy(correct: int, incorrect: int) -> int:
    total = correct + incorrect
    if total <= 0:
        return 100
    return _round_half_up(correct / total * 100.0)


def format_elapsed(elapsed_s: float) -> str:
    total = int(math.floor(max(elapsed_s, 0.0)))
    minutes, seconds = divmod(total, 60)
    return f"{minutes}:{seconds:02d}"


def compute_metrics(correct: int, incorrect: int, elapsed_s: float) -> Metrics:
    return Metrics(
        elapsed=format_elapsed(elapsed_s),
        wpm=compute_wpm(correct + incorrect, elapsed_s),
        accuracy=compute_accuracy(correct, incorrect),
    )
