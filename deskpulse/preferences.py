from __future__ import annotations

import logging

from deskpulse.bus import NotificationBus, State
from deskpulse.config import AppConfig
from deskpulse.events import EventKind


class Preferences:
    """Live, reloadable settings read by the scheduler and samplers."""

    def __init__(self, bus: NotificationBus, config: AppConfig) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.power_refresh_interval_s: State[int] = State(
            bus, "preference.powerRefreshIntervalSeconds", config.refresh.power_interval_s
        )
        self.memory_refresh_interval_s: State[int] = State(
            bus, "preference.memoryRefreshIntervalSeconds", config.refresh.memory_interval_s
        )
        self.network_refresh_interval_s: State[int] = State(
            bus, "preference.networkRefreshIntervalSeconds", config.refresh.network_interval_s
        )
        self.network_device: State[str | None] = State(
            bus, "preference.networkDevice", config.network.device
        )

    def interval_for(self, kind: EventKind | str) -> int:
        kind = EventKind(kind)
        if kind is EventKind.POWER_REFRESH:
            return self.power_refresh_interval_s.get()
        if kind is EventKind.MEMORY_REFRESH:
            return self.memory_refresh_interval_s.get()
        if kind is EventKind.NETWORK_REFRESH:
            return self.network_refresh_interval_s.get()
        raise ValueError(f"No refresh interval for {kind}")

    def apply(self, config: AppConfig) -> None:
        changed = [
            self.power_refresh_interval_s.set(config.refresh.power_interval_s),
            self.memory_refresh_interval_s.set(config.refresh.memory_interval_s),
            self.network_refresh_interval_s.set(config.refresh.network_interval_s),
            self.network_device.set(config.network.device),
        ]
        self.logger.info(
            "Preferences applied (%s changed): power=%ss memory=%ss network=%ss device=%s",
            sum(changed),
            self.power_refresh_interval_s.get(),
            self.memory_refresh_interval_s.get(),
            self.network_refresh_interval_s.get(),
            self.network_device.get() or "auto",
        )
