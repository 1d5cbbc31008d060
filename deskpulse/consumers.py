"""Consumers of published readings: JSON snapshots, log lines and MQTT."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from deskpulse.bus import NotificationBus, Subscription
from deskpulse.events import Event, EventKind
from deskpulse.mqtt_client import MqttPublisher
from deskpulse.payload import build_payload
from deskpulse.samplers import MemorySampler, NetworkSampler, PowerSampler
from deskpulse.schema import validate_payload

UPDATE_KINDS = (
    EventKind.POWER_UPDATED,
    EventKind.MEMORY_UPDATED,
    EventKind.NETWORK_UPDATED,
)


class SnapshotConsumer:
    """Rebuilds the readings payload whenever a sampler publishes an update.

    The payload is validated, optionally written to ``dump_path`` and
    optionally handed to an MQTT publisher.  Sleep transitions are mirrored
    to the publisher's availability topic.
    """

    def __init__(
        self,
        bus: NotificationBus,
        power: PowerSampler,
        memory: MemorySampler,
        network: NetworkSampler,
        publisher: MqttPublisher | None = None,
        dump_path: str | Path | None = None,
        pretty: bool = False,
    ) -> None:
        self.bus = bus
        self.power = power
        self.memory = memory
        self.network = network
        self.publisher = publisher
        self.dump_path = Path(dump_path) if dump_path else None
        self.pretty = pretty
        self.sleeping = False
        self.logger = logging.getLogger(self.__class__.__name__)
        self._subscriptions: list[Subscription] = []
        self._schema_ok: bool | None = None

    def start(self) -> None:
        if self._subscriptions:
            return
        for kind in UPDATE_KINDS:
            self._subscriptions.append(self.bus.subscribe(kind, self._on_update))
        self._subscriptions.append(
            self.bus.subscribe(EventKind.SLEEP_STATE_CHANGED, self._on_sleep_state)
        )

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def snapshot(self) -> dict[str, Any]:
        return build_payload(
            power=self.power.power.get(),
            memory=self.memory.memory.get(),
            history=self.memory.history.values(),
            network=self.network.network.get(),
            health=self.power.battery_health,
            sleeping=self.sleeping,
        )

    def emit(self) -> str:
        payload = self.snapshot()
        schema_errors = validate_payload(payload)
        if schema_errors:
            self.logger.warning("Schema validation failed with %s errors.", len(schema_errors))
            self.logger.debug("Schema errors: %s", schema_errors)
            self._schema_ok = False
        elif self._schema_ok is not True:
            self.logger.info("Schema validation passed.")
            self._schema_ok = True

        payload_json = json.dumps(payload, indent=2) if self.pretty else json.dumps(payload)
        if self.dump_path is not None:
            with open(self.dump_path, "w", encoding="utf-8") as handle:
                handle.write(payload_json)
        if self.publisher is not None:
            self.publisher.publish(payload_json)
        else:
            self.logger.debug("Payload: %s", payload_json)
        return payload_json

    def _on_update(self, event: Event) -> None:
        self.emit()

    def _on_sleep_state(self, event: Event) -> None:
        self.sleeping = bool(event.payload)
        if self.publisher is not None:
            self.publisher.publish_status("sleeping" if self.sleeping else "online")


class LogConsumer:
    """One INFO line per update; the console view of a headless daemon."""

    def __init__(self, bus: NotificationBus) -> None:
        self.bus = bus
        self.logger = logging.getLogger(self.__class__.__name__)
        self._subscriptions: list[Subscription] = []

    def start(self) -> None:
        if not self._subscriptions:
            self._subscriptions = [
                self.bus.subscribe(EventKind.POWER_UPDATED, self._on_power),
                self.bus.subscribe(EventKind.MEMORY_UPDATED, self._on_memory),
                self.bus.subscribe(EventKind.NETWORK_UPDATED, self._on_network),
            ]

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def _on_power(self, event: Event) -> None:
        reading = event.payload
        if not reading.valid:
            self.logger.info("Power: no battery")
            return
        self.logger.info(
            "Power: %.0f%% %s (%s), remaining %s",
            reading.charge * 100,
            reading.power_source.value,
            reading.condition.value,
            reading.time_remaining,
        )

    def _on_memory(self, event: Event) -> None:
        reading = event.payload
        self.logger.info(
            "Memory: %.1f%% used (%.2f / %.2f GiB)",
            reading.used_percentage,
            reading.used / 2**30,
            reading.total / 2**30,
        )

    def _on_network(self, event: Event) -> None:
        reading = event.payload
        port = reading.active_port.description if reading.active_port else reading.device
        self.logger.info(
            "Network: %s in %.1f KiB/s out %.1f KiB/s",
            port,
            reading.in_rate / 1024,
            reading.out_rate / 1024,
        )
