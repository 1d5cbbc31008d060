from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import time
from typing import Any


class EventKind(str, Enum):
    POWER_REFRESH = "powerRefresh"
    MEMORY_REFRESH = "memoryRefresh"
    NETWORK_REFRESH = "networkRefresh"
    STORE_SHOULD_REFRESH = "storeShouldRefresh"

    POWER_UPDATED = "powerUpdated"
    MEMORY_UPDATED = "memoryUpdated"
    NETWORK_UPDATED = "networkUpdated"
    SLEEP_STATE_CHANGED = "sleepStateChanged"

    def __str__(self) -> str:
        return self.value


# Kinds driven by a scheduler cadence.
TIMED_REFRESH_KINDS = (
    EventKind.POWER_REFRESH,
    EventKind.MEMORY_REFRESH,
    EventKind.NETWORK_REFRESH,
)


@dataclass(frozen=True)
class Event:
    kind: str
    payload: Any = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class RefreshEvent(Event):
    """Request for the samplers of ``kind`` to re-query their subsystem."""
