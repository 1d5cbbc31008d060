from __future__ import annotations

import logging
from typing import Callable, Iterable

from deskpulse.bus import NotificationBus
from deskpulse.events import TIMED_REFRESH_KINDS, Event, EventKind, RefreshEvent
from deskpulse.runloop import RunQueue, TimerHandle


class Scheduler:
    """One self-re-arming refresh timer per metric kind, gated on sleep.

    Each firing publishes a :class:`RefreshEvent` and re-arms after the
    interval returned by ``interval_for(kind)``, read again on every re-arm.
    While sleeping, a firing stops its cadence instead; :meth:`on_wake`
    restarts every cadence from zero.
    """

    def __init__(
        self,
        bus: NotificationBus,
        run_queue: RunQueue,
        interval_for: Callable[[EventKind], float],
        kinds: Iterable[EventKind] = TIMED_REFRESH_KINDS,
    ) -> None:
        self.bus = bus
        self.run_queue = run_queue
        self.interval_for = interval_for
        self.kinds = tuple(kinds)
        self.sleeping = False
        self.logger = logging.getLogger(self.__class__.__name__)
        self._timers: dict[EventKind, TimerHandle | None] = {}

    def is_running(self, kind: EventKind) -> bool:
        return kind in self._timers

    def start(self, kind: EventKind) -> None:
        if self.is_running(kind):
            self.logger.debug("%s cadence already running.", kind)
            return
        self._timers[kind] = None
        self._fire(kind)

    def start_all(self) -> None:
        for kind in self.kinds:
            self.start(kind)

    def stop(self) -> None:
        for handle in self._timers.values():
            if handle is not None:
                handle.cancel()
        self._timers.clear()

    def on_sleep(self) -> None:
        self.logger.info("Going to sleep; refresh cadences paused.")
        self.sleeping = True
        self.bus.publish(Event(EventKind.SLEEP_STATE_CHANGED, True))

    def on_wake(self) -> None:
        self.logger.info("Woke up; restarting refresh cadences.")
        self.sleeping = False
        # Stale countdowns from before sleep are discarded, not resumed.
        self.stop()
        self.bus.publish(Event(EventKind.SLEEP_STATE_CHANGED, False))
        self.start_all()

    def refresh_all(self) -> None:
        """Request an immediate refresh from every sampler, outside the cadences."""
        self.bus.publish(RefreshEvent(EventKind.STORE_SHOULD_REFRESH))

    def _fire(self, kind: EventKind) -> None:
        if self.sleeping:
            self.logger.debug("Sleeping; %s cadence stopped.", kind)
            self._timers.pop(kind, None)
            return
        current = self._timers.get(kind)
        self.bus.publish(RefreshEvent(kind))
        # A handler may have stopped or restarted this cadence during publication.
        if kind not in self._timers or self._timers[kind] is not current:
            return
        interval = self.interval_for(kind)
        self._timers[kind] = self.run_queue.call_later(interval, self._fire, kind)
