from __future__ import annotations

from collections import deque
import dataclasses
import logging
import platform
from typing import Callable, Iterator

import psutil

from deskpulse.bus import NotificationBus, State, Subscription
from deskpulse.commands import CommandRunner
from deskpulse.config import DEFAULT_HISTORY_SIZE
from deskpulse.events import Event, EventKind
from deskpulse.parsers import parse_vm_stat
from deskpulse.readings import MemoryReading
from deskpulse.samplers.base import subscribe_refreshable

_MEMORY_LABELS = ("mem", "dimm", "ram")


class HistoryBuffer:
    """Fixed-capacity, insertion-ordered buffer; the oldest value is evicted first."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._values: deque[float] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._values.maxlen or 0

    def append(self, value: float) -> None:
        self._values.append(value)

    def values(self) -> list[float]:
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(list(self._values))


def vm_stat_reading(output: str | None) -> MemoryReading:
    page_size, pages = parse_vm_stat(output)

    def count(name: str) -> float:
        return float(pages.get(name, 0) * page_size)

    purgeable = count("pages purgeable")
    return MemoryReading(
        # vm_stat already excludes speculative pages from "Pages free".
        free=count("pages free"),
        active=count("pages active"),
        inactive=count("pages inactive"),
        wired=count("pages wired down"),
        compressed=count("pages occupied by compressor"),
        app_memory=max(0.0, count("anonymous pages") - purgeable),
        cached_files=count("file-backed pages") + purgeable,
    )


def psutil_memory_reading() -> MemoryReading:
    vm = psutil.virtual_memory()
    wired = float(getattr(vm, "wired", 0) or 0)
    return MemoryReading(
        free=float(vm.free),
        active=float(getattr(vm, "active", 0) or 0),
        inactive=float(getattr(vm, "inactive", 0) or 0),
        wired=wired,
        app_memory=max(0.0, float(vm.used) - wired),
        cached_files=float(getattr(vm, "cached", 0) or 0),
    )


def psutil_memory_temperature() -> float | None:
    """Temperature of the first sensor whose label names memory, if any."""
    if not hasattr(psutil, "sensors_temperatures"):
        return None
    try:
        sensors = psutil.sensors_temperatures()
    except Exception:
        logging.getLogger("MemoryTemperature").debug(
            "Failed to read temperature sensors.", exc_info=True
        )
        return None
    for chip, entries in sensors.items():
        for entry in entries:
            label = (entry.label or chip).lower()
            if any(name in label for name in _MEMORY_LABELS):
                return float(entry.current)
    return None


class MemorySampler:
    def __init__(
        self,
        bus: NotificationBus,
        runner: CommandRunner,
        counters: Callable[[], MemoryReading] | None = None,
        temperature: Callable[[], float | None] | None = psutil_memory_temperature,
        history_size: int = DEFAULT_HISTORY_SIZE,
        vm_stat_path: str = "vm_stat",
    ) -> None:
        self.bus = bus
        self.runner = runner
        self.vm_stat_path = vm_stat_path
        self.counters = counters or self._default_counters()
        self.temperature = temperature
        self.history = HistoryBuffer(history_size)
        self.memory: State[MemoryReading] = State(bus, EventKind.MEMORY_UPDATED, MemoryReading())
        self.logger = logging.getLogger(self.__class__.__name__)
        self._subscriptions: list[Subscription] = []

    def _default_counters(self) -> Callable[[], MemoryReading]:
        if platform.system().lower() == "darwin":
            return self._vm_stat_counters
        return psutil_memory_reading

    def _vm_stat_counters(self) -> MemoryReading:
        return vm_stat_reading(self.runner.run([self.vm_stat_path]))

    def start(self) -> None:
        if not self._subscriptions:
            self._subscriptions = subscribe_refreshable(self.bus, EventKind.MEMORY_REFRESH, self)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def read(self) -> MemoryReading:
        """Query the counters without touching the history."""
        try:
            reading = self.counters()
        except Exception:
            self.logger.debug("Memory counter query failed.", exc_info=True)
            reading = MemoryReading()
        if self.temperature is not None:
            temperature = self.temperature()
            if temperature is not None:
                reading = dataclasses.replace(reading, temperature=temperature)
        return reading

    def record(self, reading: MemoryReading) -> None:
        self.history.append(reading.used_percentage)
        self.logger.debug(
            "Memory used %.1f%% (%d samples in history)",
            reading.used_percentage,
            len(self.history),
        )
        # The history grew even when the reading itself is unchanged.
        if not self.memory.set(reading):
            self.bus.publish(Event(EventKind.MEMORY_UPDATED, reading))

    def sample(self) -> MemoryReading:
        reading = self.read()
        self.record(reading)
        return reading

    def refresh(self) -> None:
        self.runner.dispatch(str(EventKind.MEMORY_REFRESH), self.read, self.record)
