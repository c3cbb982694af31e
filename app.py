from __future__ import annotations

import datetime as dt
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from textual import events
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Static
from rich.markup import escape
from rich.console import Group
from rich.table import Table

from error_log import ErrorLog
from orchestrator import Feedback, Notification, Orchestrator, SuggestionsReady
from session import (
    BACKSPACE,
    SPACE,
    CaretMoved,
    LetterStatus,
    LetterStatusChanged,
    MetricsUpdated,
    Phase,
    PhaseChanged,
    WordsLoaded,
)
from settings import Settings
from store import JsonFileStore
from words import WordSource, build_source


logger = logging.getLogger(__name__)

LETTER_STYLES = {
    LetterStatus.CORRECT: "on #2f4f2f",
    LetterStatus.INCORRECT: "on #4f2f2f",
}
CARET_STYLE = "reverse"


def setup_logging(path: Path, level: str = "INFO") -> None:
    # The terminal belongs to Textual, so log lines go to a file.
    path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.FileHandler(path, encoding="utf-8")],
    )


def key_from_event(event: events.Key) -> str | None:
    if event.key == "backspace":
        return BACKSPACE
    if event.key == "space":
        return SPACE
    if event.is_printable and event.character and len(event.character) == 1:
        return event.character
    return None


class HomeScreen(Screen):
    BINDINGS = [("q", "quit", "Quit")]

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="home"):
            yield Static("Spelling Typer", id="title")
            yield Static("Type through a fresh word list and track your mistakes.", id="subtitle")
            with Horizontal(id="home-buttons"):
                yield Button("Start Session", id="start", variant="success")
                yield Button("Error Log", id="errors")
                yield Button("Quit", id="quit", variant="error")
        yield Footer()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "start":
            self.app.push_screen(SessionScreen())
        elif event.button.id == "errors":
            self.app.push_screen(ErrorsScreen())
        elif event.button.id == "quit":
            self.app.exit()


class SessionScreen(Screen):
    BINDINGS = [
        ("escape", "back", "Back"),
        ("ctrl+r", "restart", "Restart"),
        ("ctrl+e", "finish", "Finish"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.words: tuple[str, ...] = ()
        self.statuses: dict[tuple[int, int], LetterStatus] = {}
        self.caret: tuple[int, int] | None = None
        self.orchestrator: Orchestrator | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="session"):
            yield Static("", id="feedback")
            yield Static("", id="lesson-text")
            with Horizontal(id="metrics"):
                yield Static("Time: 0:00", id="time")
                yield Static("WPM: 0", id="wpm")
                yield Static("Accuracy: 100%", id="accuracy")
            yield Static("", id="suggestions")
        yield Footer()

    def on_mount(self) -> None:
        app: SpellingTyperApp = self.app  # type: ignore[assignment]
        self.orchestrator = Orchestrator(
            source=app.source,
            error_log=app.error_log,
            renderer=self.render_notification,
            scheduler=self.set_interval,
            runner=self._run_in_thread,
            word_count=app.settings.word_count,
            suggest_on_finish=app.settings.suggest_on_finish,
        )
        self.orchestrator.start()

    def on_unmount(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.close()

    def on_key(self, event: events.Key) -> None:
        key = key_from_event(event)
        if key is None or self.orchestrator is None:
            return
        event.stop()
        event.prevent_default()
        self.orchestrator.on_key(key)

    def action_back(self) -> None:
        self.app.pop_screen()

    def action_restart(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.restart()

    def action_finish(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.stop()

    def _run_in_thread(
        self,
        job: Callable[[], Any],
        on_done: Callable[[Any, Optional[BaseException]], None],
    ) -> None:
        def work() -> None:
            try:
                result = job()
            except Exception as exc:
                self.app.call_from_thread(on_done, None, exc)
            else:
                self.app.call_from_thread(on_done, result, None)

        self.run_worker(work, thread=True, exit_on_error=False)

    def render_notification(self, event: Notification) -> None:
        if isinstance(event, WordsLoaded):
            self.words = event.words
            self.statuses = {}
            self.caret = None
            self._clear_suggestions()
        elif isinstance(event, LetterStatusChanged):
            if event.status is LetterStatus.DEFAULT:
                self.statuses.pop((event.word_index, event.letter_index), None)
            else:
                self.statuses[(event.word_index, event.letter_index)] = event.status
        elif isinstance(event, CaretMoved):
            self.caret = (event.word_index, event.letter_index)
        elif isinstance(event, MetricsUpdated):
            self.query_one("#time", Static).update(f"Time: {event.elapsed}")
            self.query_one("#wpm", Static).update(f"WPM: {event.wpm}")
            self.query_one("#accuracy", Static).update(f"Accuracy: {event.accuracy}%")
            return
        elif isinstance(event, PhaseChanged):
            if event.phase is Phase.IDLE:
                self.words = ()
                self.statuses = {}
                self.caret = None
                self._reset_metrics()
                self._clear_suggestions()
            elif event.phase is Phase.FINISHED:
                self.caret = None
        elif isinstance(event, Feedback):
            text = escape(event.message)
            if event.level == "error":
                text = f"[bold red]{text}[/]"
            self.query_one("#feedback", Static).update(text)
            return
        elif isinstance(event, SuggestionsReady):
            listed = ", ".join(escape(w) for w in event.words)
            self.query_one("#suggestions", Static).update(
                f"Practice suggestions based on errors: {listed}"
            )
            return
        self._update_lesson_text()

    def _reset_metrics(self) -> None:
        self.query_one("#time", Static).update("Time: 0:00")
        self.query_one("#wpm", Static).update("WPM: 0")
        self.query_one("#accuracy", Static).update("Accuracy: 100%")

    def _clear_suggestions(self) -> None:
        self.query_one("#suggestions", Static).update("")

    def _update_lesson_text(self) -> None:
        rendered = []
        for w, word in enumerate(self.words):
            letters = []
            for i, ch in enumerate(word):
                styles = []
                status = self.statuses.get((w, i))
                if status in LETTER_STYLES:
                    styles.append(LETTER_STYLES[status])
                if self.caret == (w, i):
                    styles.append(CARET_STYLE)
                if styles:
                    letters.append(f"[{' '.join(styles)}]{escape(ch)}[/]")
                else:
                    letters.append(escape(ch))
            rendered.append("".join(letters))
        self.query_one("#lesson-text", Static).update(" ".join(rendered))


class ErrorsScreen(Screen):
    BINDINGS = [("escape", "back", "Back")]

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="errors"):
            yield Static("Most Missed Words", id="errors-title")
            yield Static("", id="errors-body")
            yield Button("Back", id="back")
        yield Footer()

    def on_mount(self) -> None:
        app: SpellingTyperApp = self.app  # type: ignore[assignment]
        errors = app.error_log.snapshot()
        ranked = app.error_log.most_missed(limit=20)

        total = sum(
            int(entry.get("count", 0)) for entry in errors.values() if isinstance(entry, dict)
        )
        summary = f"Words Missed: {len(errors)}\nTotal Mistakes: {total}\n"

        def _last_mistake(word: str) -> str:
            details = errors.get(word, {}).get("details") or []
            if not details:
                return ""
            last = details[-1]
            when = dt.datetime.fromtimestamp(last.get("timestamp", 0) / 1000.0)
            return (
                f"{last.get('expected', '?')!s} -> {last.get('typed', '?')!s} "
                f"at {last.get('position', '?')} ({when:%Y-%m-%d %H:%M})"
            )

        table = Table(show_header=True, box=None, show_edge=False, pad_edge=False)
        table.add_column("Word", width=18, no_wrap=True)
        table.add_column("Misses", justify="right", width=8, no_wrap=True)
        table.add_column("Last Mistake", no_wrap=True)

        for word, count in ranked:
            table.add_row(escape(word), str(count), escape(_last_mistake(word)))

        self.query_one("#errors-body", Static).update(Group(summary, table))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "back":
            self.app.pop_screen()

    def action_back(self) -> None:
        self.app.pop_screen()


class SpellingTyperApp(App):
    CSS = """
    #home, #session, #errors {
        padding: 1 2;
    }

    #title {
        content-align: center middle;
        text-style: bold;
    }

    #subtitle {
        content-align: center middle;
        color: $text-muted;
        margin-bottom: 1;
    }

    #home-buttons {
        height: auto;
        margin-top: 1;
    }

    #feedback {
        height: auto;
        margin-bottom: 1;
    }

    #lesson-text {
        height: 12;
        border: solid $primary;
        padding: 1;
        overflow: auto;
    }

    #metrics {
        height: auto;
        margin: 1 0;
    }

    #metrics Static {
        width: 1fr;
    }

    #suggestions {
        color: $text-muted;
    }

    #errors-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    TITLE = "Spelling Typer"

    def __init__(self, settings: Settings, source: WordSource, error_log: ErrorLog) -> None:
        super().__init__()
        self.settings = settings
        self.source = source
        self.error_log = error_log

    def on_mount(self) -> None:
        self.push_screen(HomeScreen())


def main() -> int:
    settings = Settings.from_env()
    setup_logging(settings.log_path, settings.log_level)
    logger.info("Using %s word source", settings.source_kind())
    error_log = ErrorLog(JsonFileStore(settings.store_path))
    SpellingTyperApp(settings, build_source(settings), error_log).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
