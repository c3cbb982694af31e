from __future__ import annotations

from dataclasses import dataclass, field
import enum
import logging
import time
from typing import Callable, Iterable, Protocol, Union

from errors import EmptyWordList
from metrics import Metrics, compute_metrics, elapsed_seconds


logger = logging.getLogger(__name__)

SPACE = " "
BACKSPACE = "backspace"


class Phase(str, enum.Enum):
    IDLE = "idle"
    READY = "ready"
    ACTIVE = "active"
    FINISHED = "finished"


class LetterStatus(str, enum.Enum):
    DEFAULT = "default"
    CORRECT = "correct"
    INCORRECT = "incorrect"


class KeyOutcome(str, enum.Enum):
    IGNORED = "ignored"
    CORRECT = "correct"
    INCORRECT = "incorrect"
    BACKSPACE = "backspace"
    ADVANCED = "advanced"
    FINISHED = "finished"


@dataclass(frozen=True)
class WordsLoaded:
    words: tuple[str, ...]


@dataclass(frozen=True)
class LetterStatusChanged:
    word_index: int
    letter_index: int
    status: LetterStatus


@dataclass(frozen=True)
class CaretMoved:
    word_index: int
    letter_index: int


@dataclass(frozen=True)
class MetricsUpdated:
    elapsed: str
    wpm: int
    accuracy: int


@dataclass(frozen=True)
class PhaseChanged:
    phase: Phase


SessionEvent = Union[WordsLoaded, LetterStatusChanged, CaretMoved, MetricsUpdated, PhaseChanged]
Listener = Callable[[SessionEvent], None]


class MistakeRecorder(Protocol):
    def record(self, word: str, expected: str, typed: str, position: int) -> None: ...


@dataclass
class Session:
    words: tuple[str, ...] = ()
    word_index: int = 0
    letter_index: int = 0
    letter_statuses: dict[tuple[int, int], LetterStatus] = field(default_factory=dict)
    phase: Phase = Phase.IDLE
    started_at: float | None = None
    ended_at: float | None = None
    correct_count: int = 0
    incorrect_count: int = 0

    @property
    def current_word(self) -> str | None:
        if self.word_index < len(self.words):
            return self.words[self.word_index]
        return None

    @property
    def active(self) -> bool:
        return self.phase is Phase.ACTIVE

    def status_at(self, word_index: int, letter_index: int) -> LetterStatus:
        return self.letter_statuses.get((word_index, letter_index), LetterStatus.DEFAULT)


def _clean_words(words: Iterable[str] | None) -> tuple[str, ...]:
    if not words:
        return ()
    # Space advances words, so multi-word entries become separate words.
    return tuple(part for w in words if isinstance(w, str) for part in w.split())


class SessionStateMachine:
    """Turns keystrokes into cursor moves, letter statuses and counters.

    Every change is announced to subscribed listeners so a renderer can
    redraw without reading the session directly.
    """

    def __init__(
        self,
        recorder: MistakeRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.recorder = recorder
        self._clock = clock
        self.session = Session()
        self._listeners: list[Listener] = []

    @property
    def phase(self) -> Phase:
        return self.session.phase

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def load(self, words: Iterable[str] | None) -> None:
        cleaned = _clean_words(words)
        if not cleaned:
            raise EmptyWordList("Cannot start a session without words.")
        self.session = Session(words=cleaned, phase=Phase.READY)
        logger.info("Loaded %d words", len(cleaned))
        self._emit(WordsLoaded(cleaned))
        self._emit(CaretMoved(0, 0))
        self._emit(PhaseChanged(Phase.READY))

    def reset(self) -> None:
        self.session = Session()
        self._emit(PhaseChanged(Phase.IDLE))

    def stop(self) -> None:
        if self.session.phase is Phase.ACTIVE:
            self._finish()

    def metrics(self, now: float | None = None) -> Metrics:
        s = self.session
        if now is None:
            now = s.ended_at if s.ended_at is not None else self._clock()
        return compute_metrics(
            s.correct_count, s.incorrect_count, elapsed_seconds(s.started_at, now)
        )

    def on_key(self, key: str) -> KeyOutcome:
        s = self.session
        if s.phase is Phase.READY:
            if not _is_character(key):
                return KeyOutcome.IGNORED
            self._activate()
        if s.phase is not Phase.ACTIVE:
            return KeyOutcome.IGNORED

        if _is_character(key):
            return self._type_character(key)
        if key == SPACE:
            return self._advance_word()
        if key == BACKSPACE:
            return self._backspace()
        return KeyOutcome.IGNORED

    def _activate(self) -> None:
        self.session.phase = Phase.ACTIVE
        self.session.started_at = self._clock()
        logger.info("Session started")
        self._emit(PhaseChanged(Phase.ACTIVE))

    def _finish(self) -> None:
        s = self.session
        s.phase = Phase.FINISHED
        s.ended_at = self._clock()
        m = self.metrics()
        logger.info(
            "Session finished: %s, %d wpm, %d%% accuracy", m.elapsed, m.wpm, m.accuracy
        )
        self._emit(PhaseChanged(Phase.FINISHED))

    def _type_character(self, key: str) -> KeyOutcome:
        s = self.session
        word = s.words[s.word_index]
        position = s.letter_index
        if position >= len(word):
            # Word fully attempted; only space or backspace move on from here.
            return KeyOutcome.IGNORED

        expected = word[position]
        if key == expected:
            status, outcome = LetterStatus.CORRECT, KeyOutcome.CORRECT
            s.correct_count += 1
        else:
            status, outcome = LetterStatus.INCORRECT, KeyOutcome.INCORRECT
            s.incorrect_count += 1

        s.letter_statuses[(s.word_index, position)] = status
        s.letter_index = position + 1
        if outcome is KeyOutcome.INCORRECT and self.recorder is not None:
            self.recorder.record(word, expected, key, position)
        self._emit(LetterStatusChanged(s.word_index, position, status))
        self._emit(CaretMoved(s.word_index, min(s.letter_index, len(word) - 1)))
        return outcome

    def _advance_word(self) -> KeyOutcome:
        s = self.session
        if s.letter_index < len(s.words[s.word_index]):
            return KeyOutcome.IGNORED
        s.word_index += 1
        s.letter_index = 0
        if s.word_index >= len(s.words):
            self._finish()
            return KeyOutcome.FINISHED
        self._emit(CaretMoved(s.word_index, 0))
        return KeyOutcome.ADVANCED

    def _backspace(self) -> KeyOutcome:
        s = self.session
        if s.letter_index == 0:
            return KeyOutcome.IGNORED
        s.letter_index -= 1
        s.letter_statuses.pop((s.word_index, s.letter_index), None)
        self._emit(LetterStatusChanged(s.word_index, s.letter_index, LetterStatus.DEFAULT))
        self._emit(CaretMoved(s.word_index, s.letter_index))
        return KeyOutcome.BACKSPACE

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


def _is_character(key: str) -> bool:
    return len(key) == 1 and key != SPACE and key.isprintable()
