from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable, Optional, Protocol, Union

from error_log import ErrorLog
from errors import EmptyWordList, SpellingTyperError
from session import (
    LetterStatus,
    LetterStatusChanged,
    MetricsUpdated,
    Phase,
    PhaseChanged,
    SessionEvent,
    SessionStateMachine,
)
from settings import DEFAULT_WORD_COUNT
from words import WordSource


logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0


@dataclass(frozen=True)
class Feedback:
    message: str
    level: str = "info"


@dataclass(frozen=True)
class SuggestionsReady:
    words: tuple[str, ...]


Notification = Union[SessionEvent, Feedback, SuggestionsReady]
Renderer = Callable[[Notification], None]


class TimerHandle(Protocol):
    def stop(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]
Done = Callable[[Any, Optional[BaseException]], None]
Runner = Callable[[Callable[[], Any], Done], None]


def run_inline(job: Callable[[], Any], on_done: Done) -> None:
    try:
        result = job()
    except Exception as exc:
        on_done(None, exc)
    else:
        on_done(result, None)


class Orchestrator:
    """Fetches words, drives one session at a time and owns its tick timer.

    Each start bumps a generation counter; fetch results that come back for
    an older generation are dropped.
    """

    def __init__(
        self,
        source: WordSource,
        error_log: ErrorLog,
        renderer: Renderer,
        scheduler: Scheduler,
        runner: Runner = run_inline,
        word_count: int = DEFAULT_WORD_COUNT,
        suggest_on_finish: bool = True,
        machine: SessionStateMachine | None = None,
    ) -> None:
        self.source = source
        self.error_log = error_log
        self.renderer = renderer
        self.scheduler = scheduler
        self.runner = runner
        self.word_count = word_count
        self.suggest_on_finish = suggest_on_finish
        self.machine = machine or SessionStateMachine(recorder=error_log)
        self.machine.subscribe(self._on_session_event)
        self.generation = 0
        self._tick: TimerHandle | None = None

    @property
    def phase(self) -> Phase:
        return self.machine.phase

    def start(self) -> None:
        self.generation += 1
        generation = self.generation
        self._cancel_tick()
        self.machine.reset()
        self.renderer(Feedback("Fetching words..."))
        logger.info("Starting session (generation %d)", generation)
        count = self.word_count
        self.runner(
            lambda: self.source.fetch_words(count),
            lambda words, error: self._words_fetched(generation, words, error),
        )

    def restart(self) -> None:
        self.start()

    def close(self) -> None:
        # Invalidate in-flight fetches and silence the timer.
        self.generation += 1
        self._cancel_tick()

    def on_key(self, key: str) -> None:
        self.machine.on_key(key)

    def stop(self) -> None:
        self.machine.stop()

    def _words_fetched(self, generation: int, words: Any, error: BaseException | None) -> None:
        if generation != self.generation:
            logger.debug("Dropping stale word fetch (generation %d)", generation)
            return
        if error is None:
            try:
                self.machine.load(words)
            except EmptyWordList as exc:
                error = exc
        if error is not None:
            logger.error("Initialization failed: %s", error)
            message = str(error)
            if not isinstance(error, SpellingTyperError):
                message = f"Failed to fetch words: {message}"
            self.renderer(Feedback(f"Error: {message}", level="error"))
            return
        self.renderer(Feedback(""))

    def _on_session_event(self, event: SessionEvent) -> None:
        self.renderer(event)
        if isinstance(event, LetterStatusChanged) and event.status is not LetterStatus.DEFAULT:
            self._emit_metrics()
        if not isinstance(event, PhaseChanged):
            return
        if event.phase is Phase.ACTIVE:
            self._start_tick()
        elif event.phase is Phase.FINISHED:
            self._cancel_tick()
            self._emit_metrics()
            self.renderer(Feedback("Test Complete! Press Restart."))
            if self.suggest_on_finish:
                self._request_suggestions()
        elif event.phase is Phase.IDLE:
            self._cancel_tick()

    def _start_tick(self) -> None:
        self._cancel_tick()
        self._tick = self.scheduler(TICK_INTERVAL, self._emit_metrics)
        self._emit_metrics()

    def _cancel_tick(self) -> None:
        if self._tick is not None:
            self._tick.stop()
            self._tick = None

    def _emit_metrics(self) -> None:
        m = self.machine.metrics()
        self.renderer(MetricsUpdated(m.elapsed, m.wpm, m.accuracy))

    def _request_suggestions(self) -> None:
        errors = self.error_log.snapshot()
        if not errors:
            return
        generation = self.generation
        self.runner(
            lambda: self.source.fetch_suggestions(errors),
            lambda suggestions, error: self._suggestions_fetched(generation, suggestions, error),
        )

    def _suggestions_fetched(self, generation: int, suggestions: Any, error: BaseException | None) -> None:
        if generation != self.generation:
            return
        if error is not None:
            logger.warning("Failed to get suggestions: %s", error)
            return
        if suggestions:
            self.renderer(SuggestionsReady(tuple(suggestions)))
