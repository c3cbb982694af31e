from __future__ import annotations

import pytest

from error_log import ErrorLog
from session import SessionStateMachine
from store import MemoryStore


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def error_log() -> ErrorLog:
    return ErrorLog(MemoryStore(), clock=lambda: 1700000000000)


@pytest.fixture
def machine(error_log: ErrorLog, clock: FakeClock) -> SessionStateMachine:
    return SessionStateMachine(recorder=error_log, clock=clock)


@pytest.fixture
def events(machine: SessionStateMachine) -> list:
    received: list = []
    machine.subscribe(received.append)
    return received
