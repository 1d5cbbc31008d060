"""Active interface resolution and throughput sampling."""
from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Callable

from deskpulse.bus import NotificationBus, State, Subscription
from deskpulse.commands import CommandRunner
from deskpulse.config import DEFAULT_FALLBACK_DEVICE, CommandsConfig
from deskpulse.events import EventKind
from deskpulse.parsers import (
    active_interfaces,
    find_active_port,
    parse_byte_counters,
    parse_service_order,
)
from deskpulse.readings import InterfacePort, NetworkReading, NetworkUsage
from deskpulse.samplers.base import subscribe_refreshable


@dataclass(frozen=True)
class NetworkQuery:
    usage: NetworkUsage
    device: str
    ports: tuple[InterfacePort, ...]
    active_port: InterfacePort | None
    timestamp: float


@dataclass(frozen=True)
class _Counters:
    device: str
    usage: NetworkUsage
    timestamp: float


def throughput(previous: int, current: int, elapsed: float) -> float:
    """Bytes per second between two counter values; never negative."""
    if elapsed <= 0:
        return 0.0
    return max(0, current - previous) / elapsed


class NetworkSampler:
    def __init__(
        self,
        bus: NotificationBus,
        runner: CommandRunner,
        commands: CommandsConfig | None = None,
        fallback_device: str = DEFAULT_FALLBACK_DEVICE,
        device_override: Callable[[], str | None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bus = bus
        self.runner = runner
        self.commands = commands or CommandsConfig()
        self.fallback_device = fallback_device
        self.device_override = device_override
        self.clock = clock
        self.network: State[NetworkReading] = State(
            bus, EventKind.NETWORK_UPDATED, NetworkReading()
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        self._last: _Counters | None = None
        self._subscriptions: list[Subscription] = []

    def start(self) -> None:
        if not self._subscriptions:
            self._subscriptions = subscribe_refreshable(self.bus, EventKind.NETWORK_REFRESH, self)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def ports(self) -> list[InterfacePort]:
        output = self.runner.run([self.commands.networksetup_path, "-listnetworkserviceorder"])
        return parse_service_order(output)

    def active_interfaces(self) -> list[str]:
        return active_interfaces(self.runner.run([self.commands.ifconfig_path]))

    def byte_counters(self, device: str) -> NetworkUsage:
        return parse_byte_counters(self.runner.run([self.commands.netstat_path, "-bI", device]))

    def query(self, device_override: str | None = None) -> NetworkQuery:
        """Run the interface and counter commands; safe to call off the run queue."""
        ports = self.ports()
        active = self.active_interfaces()
        active_port = find_active_port(ports, active)
        self.logger.debug("Network service order: %s", [port.description for port in ports])
        self.logger.debug("Network active interfaces: %s", active)
        self.logger.debug(
            "Network current active port: %s",
            active_port.description if active_port else "N/A",
        )

        device = device_override or (active_port.device if active_port else self.fallback_device)
        usage = self.byte_counters(device)
        return NetworkQuery(
            usage=usage,
            device=device,
            ports=tuple(ports),
            active_port=active_port,
            timestamp=self.clock(),
        )

    def record(self, query: NetworkQuery) -> NetworkReading:
        in_rate = out_rate = 0.0
        previous = self._last
        # Counters of another device are not comparable.
        if previous is not None and previous.device == query.device:
            elapsed = query.timestamp - previous.timestamp
            in_rate = throughput(previous.usage.in_bytes, query.usage.in_bytes, elapsed)
            out_rate = throughput(previous.usage.out_bytes, query.usage.out_bytes, elapsed)
        self._last = _Counters(query.device, query.usage, query.timestamp)

        reading = NetworkReading(
            usage=query.usage,
            in_rate=in_rate,
            out_rate=out_rate,
            device=query.device,
            ports=query.ports,
            active_port=query.active_port,
        )
        self.logger.debug(
            "Network %s in=%.0f B/s out=%.0f B/s", query.device, in_rate, out_rate
        )
        self.network.set(reading)
        return reading

    def sample(self, device_override: str | None = None) -> NetworkReading:
        return self.record(self.query(device_override))

    def refresh(self) -> None:
        override = self.device_override() if self.device_override else None
        self.runner.dispatch(str(EventKind.NETWORK_REFRESH), self.query, self.record, override)
