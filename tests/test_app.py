import pytest
from textual import events

from app import SessionScreen, SpellingTyperApp, key_from_event
from error_log import ErrorLog
from session import BACKSPACE, SPACE, Phase
from settings import Settings
from store import MemoryStore
from words import SampleWordSource


@pytest.mark.parametrize(
    "key, character, expected",
    [
        ("a", "a", "a"),
        ("A", "A", "A"),
        ("space", " ", SPACE),
        ("backspace", None, BACKSPACE),
        ("shift", None, None),
        ("left", None, None),
        ("ctrl+r", "\x12", None),
    ],
)
def test_key_from_event(key, character, expected):
    assert key_from_event(events.Key(key, character)) == expected


def make_app(tmp_path):
    settings = Settings(data_dir=tmp_path, word_count=1)
    error_log = ErrorLog(MemoryStore())
    return SpellingTyperApp(settings, SampleWordSource(["cat"]), error_log)


@pytest.mark.asyncio
async def test_typing_a_session_end_to_end(tmp_path):
    app = make_app(tmp_path)
    async with app.run_test() as pilot:
        await pilot.click("#start")
        await pilot.pause()
        await app.workers.wait_for_complete()
        await pilot.pause()

        screen = app.screen
        assert isinstance(screen, SessionScreen)
        assert screen.orchestrator.phase is Phase.READY
        assert screen.words == ("cat",)

        await pilot.press("c", "u", "t", "space")
        await pilot.pause()

        assert screen.orchestrator.phase is Phase.FINISHED
        assert app.error_log.snapshot()["cat"]["count"] == 1
