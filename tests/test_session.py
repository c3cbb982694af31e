"""Tests for the typing session state machine."""

import sqlite3

import pytest

from error_log import ErrorLog
from errors import EmptyWordList
from session import (
    BACKSPACE,
    SPACE,
    CaretMoved,
    KeyOutcome,
    LetterStatus,
    LetterStatusChanged,
    Phase,
    PhaseChanged,
    SessionStateMachine,
    WordsLoaded,
)


class LockedDbStore:
    def get(self, key):
        raise sqlite3.OperationalError("database is locked")

    def set(self, key, value):
        raise sqlite3.OperationalError("database is locked")


def type_keys(machine, keys):
    return [machine.on_key(key) for key in keys]


class TestLoad:
    def test_load_moves_to_ready_with_cursor_at_origin(self, machine, events):
        machine.load(["cat", "dog"])

        s = machine.session
        assert machine.phase is Phase.READY
        assert s.words == ("cat", "dog")
        assert (s.word_index, s.letter_index) == (0, 0)
        assert s.started_at is None
        assert events == [
            WordsLoaded(("cat", "dog")),
            CaretMoved(0, 0),
            PhaseChanged(Phase.READY),
        ]

    @pytest.mark.parametrize("words", [[], None, ["", "  "]])
    def test_empty_word_list_is_rejected_without_state_change(self, machine, events, words):
        with pytest.raises(EmptyWordList):
            machine.load(words)
        assert machine.phase is Phase.IDLE
        assert machine.session.words == ()
        assert events == []

    def test_failed_load_keeps_previous_session(self, machine):
        machine.load(["cat"])
        with pytest.raises(EmptyWordList):
            machine.load([])
        assert machine.phase is Phase.READY
        assert machine.session.words == ("cat",)

    def test_load_after_finish_starts_fresh(self, machine):
        machine.load(["a"])
        type_keys(machine, ["a", SPACE])
        assert machine.phase is Phase.FINISHED

        machine.load(["dog"])
        s = machine.session
        assert machine.phase is Phase.READY
        assert s.correct_count == 0
        assert s.letter_statuses == {}


class TestStart:
    def test_first_character_starts_timer(self, machine, clock):
        machine.load(["cat"])
        clock.advance(3)
        assert machine.on_key("c") is KeyOutcome.CORRECT
        assert machine.phase is Phase.ACTIVE
        assert machine.session.started_at == clock.now

    def test_started_at_is_set_once(self, machine, clock):
        machine.load(["cat"])
        machine.on_key("c")
        started = machine.session.started_at
        clock.advance(5)
        machine.on_key("a")
        assert machine.session.started_at == started

    @pytest.mark.parametrize("key", [BACKSPACE, SPACE, "shift", "ArrowLeft", "\t"])
    def test_non_characters_do_not_start(self, machine, events, key):
        machine.load(["cat"])
        events.clear()
        assert machine.on_key(key) is KeyOutcome.IGNORED
        assert machine.phase is Phase.READY
        assert machine.session.started_at is None
        assert events == []

    def test_keys_ignored_while_idle(self, machine):
        assert machine.on_key("a") is KeyOutcome.IGNORED
        assert machine.phase is Phase.IDLE


class TestTyping:
    def test_completes_two_words(self, machine):
        machine.load(["cat", "dog"])
        type_keys(machine, ["c", "a", "t", SPACE, "d", "o", "g", SPACE])

        s = machine.session
        assert machine.phase is Phase.FINISHED
        assert s.correct_count == 6
        assert s.incorrect_count == 0
        assert machine.metrics().accuracy == 100

    def test_last_word_waits_for_space(self, machine):
        machine.load(["cat", "dog"])
        type_keys(machine, ["c", "a", "t", SPACE, "d", "o", "g"])
        assert machine.phase is Phase.ACTIVE

        assert machine.on_key(SPACE) is KeyOutcome.FINISHED
        assert machine.phase is Phase.FINISHED

    def test_mismatch_marks_letter_and_records_error(self, machine, error_log):
        machine.load(["cat"])
        outcomes = type_keys(machine, ["c", "x", "t"])

        assert outcomes == [KeyOutcome.CORRECT, KeyOutcome.INCORRECT, KeyOutcome.CORRECT]
        s = machine.session
        assert s.status_at(0, 1) is LetterStatus.INCORRECT
        assert s.incorrect_count == 1

        entry = error_log.snapshot()["cat"]
        assert entry["count"] == 1
        assert len(entry["details"]) == 1
        detail = entry["details"][0]
        assert detail["expected"] == "a"
        assert detail["typed"] == "x"
        assert detail["position"] == 1

    def test_caret_stays_on_last_letter_when_word_done(self, machine, events):
        machine.load(["cat", "dog"])
        type_keys(machine, ["c", "a"])
        events.clear()

        machine.on_key("t")
        assert machine.session.letter_index == 3
        assert events == [
            LetterStatusChanged(0, 2, LetterStatus.CORRECT),
            CaretMoved(0, 2),
        ]

    def test_extra_characters_past_word_end_are_ignored(self, machine):
        machine.load(["at", "dog"])
        type_keys(machine, ["a", "t"])
        assert machine.on_key("s") is KeyOutcome.IGNORED
        s = machine.session
        assert (s.correct_count, s.incorrect_count) == (2, 0)
        assert s.letter_index == 2

    def test_case_mismatch_is_an_error(self, machine):
        machine.load(["Cat"])
        assert machine.on_key("c") is KeyOutcome.INCORRECT


class TestSpace:
    def test_space_mid_word_is_a_no_op(self, machine, events):
        machine.load(["cat", "dog"])
        machine.on_key("c")
        events.clear()

        assert machine.on_key(SPACE) is KeyOutcome.IGNORED
        s = machine.session
        assert (s.word_index, s.letter_index) == (0, 1)
        assert (s.correct_count, s.incorrect_count) == (1, 0)
        assert events == []

    def test_space_advances_after_full_word(self, machine, events):
        machine.load(["cat", "dog"])
        type_keys(machine, ["c", "a", "t"])
        events.clear()

        assert machine.on_key(SPACE) is KeyOutcome.ADVANCED
        s = machine.session
        assert (s.word_index, s.letter_index) == (1, 0)
        assert events == [CaretMoved(1, 0)]

    def test_advance_allowed_with_mistakes(self, machine):
        machine.load(["cat", "dog"])
        type_keys(machine, ["x", "y", "z"])
        assert machine.on_key(SPACE) is KeyOutcome.ADVANCED


class TestBackspace:
    def test_backspace_resets_status_but_not_counters(self, machine, events):
        machine.load(["cat"])
        type_keys(machine, ["c", "x"])
        events.clear()

        assert machine.on_key(BACKSPACE) is KeyOutcome.BACKSPACE
        s = machine.session
        assert s.letter_index == 1
        assert s.status_at(0, 1) is LetterStatus.DEFAULT
        assert (s.correct_count, s.incorrect_count) == (1, 1)
        assert events == [
            LetterStatusChanged(0, 1, LetterStatus.DEFAULT),
            CaretMoved(0, 1),
        ]

    def test_backspace_at_word_start_stays_in_word(self, machine):
        machine.load(["cat", "dog"])
        type_keys(machine, ["c", "a", "t", SPACE])

        assert machine.on_key(BACKSPACE) is KeyOutcome.IGNORED
        s = machine.session
        assert (s.word_index, s.letter_index) == (1, 0)
        assert s.status_at(0, 2) is LetterStatus.CORRECT

    def test_backspace_from_completed_word_reopens_last_letter(self, machine):
        machine.load(["cat", "dog"])
        type_keys(machine, ["c", "a", "x", BACKSPACE, "t", SPACE])
        s = machine.session
        assert s.word_index == 1
        assert (s.correct_count, s.incorrect_count) == (3, 1)

    def test_corrected_mistake_still_hurts_accuracy(self, machine):
        machine.load(["cat"])
        type_keys(machine, ["x", BACKSPACE, "c", "a", "t"])
        assert machine.metrics().accuracy == 75


class TestFinish:
    def test_finished_ignores_input(self, machine):
        machine.load(["a"])
        type_keys(machine, ["a", SPACE])
        for key in ["b", SPACE, BACKSPACE]:
            assert machine.on_key(key) is KeyOutcome.IGNORED
        assert machine.session.correct_count == 1

    def test_stop_finishes_active_session(self, machine, events):
        machine.load(["cat"])
        machine.on_key("c")
        machine.stop()
        assert machine.phase is Phase.FINISHED
        assert events[-1] == PhaseChanged(Phase.FINISHED)

        events.clear()
        machine.stop()
        assert events == []

    def test_stop_is_ignored_before_start(self, machine):
        machine.load(["cat"])
        machine.stop()
        assert machine.phase is Phase.READY

    def test_metrics_freeze_when_finished(self, machine, clock):
        machine.load(["ab"])
        machine.on_key("a")
        clock.advance(30)
        machine.on_key("b")
        machine.on_key(SPACE)
        clock.advance(100)
        snapshot = machine.metrics()
        assert snapshot.elapsed == "0:30"
        assert snapshot.wpm == 1

    def test_reset_discards_everything(self, machine, events):
        machine.load(["cat"])
        machine.on_key("c")
        machine.reset()
        s = machine.session
        assert machine.phase is Phase.IDLE
        assert s.words == ()
        assert s.correct_count == 0
        assert s.started_at is None
        assert events[-1] == PhaseChanged(Phase.IDLE)


def test_counters_match_accepted_characters(machine):
    machine.load(["spell", "check"])
    keys = list("spxll") + [BACKSPACE, BACKSPACE, "l", "l", SPACE, "shift"] + list("chEck") + [SPACE]
    outcomes = type_keys(machine, keys)

    counted = [o for o in outcomes if o in (KeyOutcome.CORRECT, KeyOutcome.INCORRECT)]
    s = machine.session
    assert s.correct_count + s.incorrect_count == len(counted)
    assert machine.phase is Phase.FINISHED


def test_metrics_before_start(machine):
    machine.load(["cat"])
    snapshot = machine.metrics()
    assert (snapshot.elapsed, snapshot.wpm, snapshot.accuracy) == ("0:00", 0, 100)


def test_unsubscribe_stops_notifications(error_log):
    machine = SessionStateMachine(recorder=error_log)
    received = []
    unsubscribe = machine.subscribe(received.append)
    unsubscribe()
    machine.load(["cat"])
    assert received == []


def test_locked_error_store_does_not_interrupt_typing(clock):
    machine = SessionStateMachine(recorder=ErrorLog(LockedDbStore()), clock=clock)
    machine.load(["cat"])
    outcomes = type_keys(machine, ["c", "x", "t", SPACE])

    assert outcomes[1] is KeyOutcome.INCORRECT
    s = machine.session
    assert s.status_at(0, 1) is LetterStatus.INCORRECT
    assert (s.correct_count, s.incorrect_count) == (2, 1)
    assert machine.phase is Phase.FINISHED


def test_mistake_is_marked_before_it_is_recorded(clock):
    seen = []

    class Recorder:
        def record(self, word, expected, typed, position):
            s = machine.session
            seen.append((s.letter_index, s.status_at(0, position)))

    machine = SessionStateMachine(recorder=Recorder(), clock=clock)
    machine.load(["cat"])
    type_keys(machine, ["x"])
    assert seen == [(1, LetterStatus.INCORRECT)]


def test_multi_word_entries_are_split_and_finishable(machine):
    machine.load(["ice cream", "  dog "])
    assert machine.session.words == ("ice", "cream", "dog")

    type_keys(machine, list("ice cream dog "))
    s = machine.session
    assert machine.phase is Phase.FINISHED
    assert (s.correct_count, s.incorrect_count) == (11, 0)
