from __future__ import annotations

from typing import Protocol

from deskpulse.bus import NotificationBus, Subscription
from deskpulse.events import Event, EventKind


class Refreshable(Protocol):
    def refresh(self) -> None:
        ...


def subscribe_refreshable(
    bus: NotificationBus, kind: EventKind, refreshable: Refreshable
) -> list[Subscription]:
    """Refresh on ticks of ``kind`` and on the on-demand broadcast."""

    def on_refresh(event: Event) -> None:
        refreshable.refresh()

    return [
        bus.subscribe(kind, on_refresh),
        bus.subscribe(EventKind.STORE_SHOULD_REFRESH, on_refresh),
    ]
