"""Tests for the run queue."""
from __future__ import annotations

import threading

from deskpulse.runloop import RunQueue


class TestRunQueue:
    def test_call_soon_runs_on_next_pass(self, run_queue):
        calls = []
        run_queue.call_soon(calls.append, "a")

        assert calls == []
        assert run_queue.run_pending() == 1
        assert calls == ["a"]

    def test_callbacks_queued_during_a_pass_wait_for_the_next(self, run_queue):
        calls = []

        def first():
            calls.append("first")
            run_queue.call_soon(calls.append, "second")

        run_queue.call_soon(first)
        run_queue.run_pending()
        assert calls == ["first"]
        run_queue.run_pending()
        assert calls == ["first", "second"]

    def test_timers_fire_when_due(self, run_queue, clock):
        calls = []
        run_queue.call_later(5, calls.append, "late")
        run_queue.call_later(2, calls.append, "early")

        clock.advance(1)
        run_queue.run_pending()
        assert calls == []

        clock.advance(4)
        run_queue.run_pending()
        assert calls == ["early", "late"]

    def test_cancelled_timer_does_not_fire(self, run_queue, clock):
        calls = []
        handle = run_queue.call_later(1, calls.append, "x")
        handle.cancel()

        clock.advance(1)
        run_queue.run_pending()

        assert calls == []
        assert run_queue.next_deadline() is None

    def test_failing_callback_is_logged(self, run_queue, caplog):
        calls = []

        def broken():
            raise ValueError("bad")

        run_queue.call_soon(broken)
        run_queue.call_soon(calls.append, "after")
        run_queue.run_pending()

        assert calls == ["after"]
        assert "Unhandled error" in caplog.text

    def test_stop_from_another_thread(self):
        run_queue = RunQueue()
        calls = []
        run_queue.call_later(0.01, calls.append, "tick")
        stopper = threading.Timer(0.05, run_queue.stop)
        stopper.start()

        run_queue.run_forever()
        stopper.join()

        assert calls == ["tick"]
