"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from concurrent.futures import Executor, Future

import pytest

from deskpulse.bus import NotificationBus
from deskpulse.commands import CommandRunner
from deskpulse.runloop import RunQueue


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "darwin: mark test as exercising macOS tool output"
    )
    config.addinivalue_line(
        "markers", "integration: run the engine on a live run queue and worker pool"
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ImmediateExecutor(Executor):
    """Runs submitted work inline and returns an already completed future."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Holds submitted work until :meth:`complete_all` is called."""

    def __init__(self) -> None:
        self.pending: list[tuple[Future, object, tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def complete_all(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def run_queue(clock):
    return RunQueue(clock=clock)


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def executor():
    return ImmediateExecutor()


@pytest.fixture
def runner(run_queue, executor):
    return CommandRunner(run_queue, executor=executor)


@pytest.fixture
def deferred_executor():
    return DeferredExecutor()


@pytest.fixture
def deferred_runner(run_queue, deferred_executor):
    return CommandRunner(run_queue, executor=deferred_executor)
