"""Single-threaded run queue owning scheduling, state and bus dispatch.

Work submitted from other threads goes through :meth:`RunQueue.call_soon`;
everything else (timers, sampler state, bus publication) runs on the thread
that drives :meth:`RunQueue.run_forever` or :meth:`RunQueue.run_pending`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import heapq
import itertools
import logging
import queue
import threading
import time
from typing import Any, Callable


@dataclass(order=True)
class TimerHandle:
    when: float
    seq: int
    callback: Callable[..., Any] = field(compare=False)
    args: tuple[Any, ...] = field(default=(), compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class RunQueue:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)
        self._ready: queue.SimpleQueue[tuple[Callable[..., Any], tuple[Any, ...]]] = (
            queue.SimpleQueue()
        )
        self._timers: list[TimerHandle] = []
        self._seq = itertools.count()
        self._wakeup = threading.Event()
        self._stopped = False

    def time(self) -> float:
        return self.clock()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Queue ``callback`` for the run queue thread. Safe from any thread."""
        self._ready.put((callback, args))
        self._wakeup.set()

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle:
        handle = TimerHandle(
            when=self.clock() + max(0.0, delay),
            seq=next(self._seq),
            callback=callback,
            args=args,
        )
        heapq.heappush(self._timers, handle)
        self._wakeup.set()
        return handle

    def run_pending(self) -> int:
        """Run queued callbacks and every timer that is due. Returns the count run."""
        ran = 0
        # Only drain what is queued now; callbacks queued meanwhile wait a pass.
        for _ in range(self._ready.qsize()):
            try:
                callback, args = self._ready.get_nowait()
            except queue.Empty:
                break
            self._invoke(callback, args)
            ran += 1

        now = self.clock()
        due: list[TimerHandle] = []
        while self._timers and self._timers[0].when <= now:
            due.append(heapq.heappop(self._timers))
        for handle in due:
            if handle.cancelled:
                continue
            self._invoke(handle.callback, handle.args)
            ran += 1
        return ran

    def next_deadline(self) -> float | None:
        while self._timers and self._timers[0].cancelled:
            heapq.heappop(self._timers)
        if not self._timers:
            return None
        return self._timers[0].when

    def run_forever(self) -> None:
        self._stopped = False
        self.logger.debug("Run queue started.")
        while not self._stopped:
            self.run_pending()
            if self._stopped:
                break
            if not self._ready.empty():
                continue
            deadline = self.next_deadline()
            timeout = None if deadline is None else max(0.0, deadline - self.clock())
            self._wakeup.wait(timeout)
            self._wakeup.clear()
        self.logger.debug("Run queue stopped.")

    def stop(self) -> None:
        """Stop :meth:`run_forever` after the current pass. Safe from any thread."""
        self._stopped = True
        self._wakeup.set()

    def _invoke(self, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            callback(*args)
        except Exception:
            self.logger.exception("Unhandled error in run queue callback %r", callback)
