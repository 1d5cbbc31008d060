"""Process-wide publish/subscribe register keyed by event kind."""
from __future__ import annotations

import logging
from typing import Any, Callable, Generic, TypeVar

from deskpulse.events import Event
from deskpulse.logging_utils import TRACE_LEVEL

Handler = Callable[[Event], Any]
T = TypeVar("T")


class Subscription:
    def __init__(self, bus: NotificationBus, kind: str, handler: Handler) -> None:
        self.bus = bus
        self.kind = kind
        self.handler = handler
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.bus._remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<Subscription {self.kind} {self.handler!r} {state}>"


class NotificationBus:
    """Dispatches events synchronously, in subscription order.

    The bus is owned by the run queue thread; publishing from another thread
    must go through ``RunQueue.call_soon``.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, kind: str, handler: Handler) -> Subscription:
        subscription = Subscription(self, str(kind), handler)
        self._subscriptions.setdefault(subscription.kind, []).append(subscription)
        self.logger.log(TRACE_LEVEL, "Subscribed %r to %s", handler, subscription.kind)
        return subscription

    def unsubscribe(self, kind: str, handler: Handler) -> bool:
        for subscription in self._subscriptions.get(str(kind), []):
            if subscription.handler == handler:
                subscription.cancel()
                return True
        return False

    def publish(self, event: Event) -> int:
        """Deliver ``event`` to every handler of its kind. Returns the number invoked."""
        kind = str(event.kind)
        subscriptions = list(self._subscriptions.get(kind, ()))
        if not subscriptions:
            return 0
        delivered = 0
        for subscription in subscriptions:
            # Cancelled by an earlier handler during this dispatch.
            if not subscription.active:
                continue
            try:
                subscription.handler(event)
            except Exception:
                self.logger.exception("Handler %r failed for %s", subscription.handler, kind)
            delivered += 1
        return delivered

    def subscriber_count(self, kind: str) -> int:
        return len(self._subscriptions.get(str(kind), ()))

    def _remove(self, subscription: Subscription) -> None:
        subscription.active = False
        subscriptions = self._subscriptions.get(subscription.kind, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.kind, None)


class State(Generic[T]):
    """Explicit state holder; observers subscribe to ``kind`` on the bus."""

    def __init__(self, bus: NotificationBus, kind: str, initial: T) -> None:
        self.bus = bus
        self.kind = str(kind)
        self._value = initial

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        if value == self._value:
            return False
        self._value = value
        self.bus.publish(Event(self.kind, value))
        return True
