from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from deskpulse.readings import (
    BatteryHealth,
    InterfacePort,
    MemoryReading,
    NetworkReading,
    PowerReading,
)

SCHEMA_NAME = "deskpulse-readings"
SCHEMA_VERSION = 1


def power_payload(reading: PowerReading, health: BatteryHealth | None = None) -> dict[str, Any]:
    if not reading.valid:
        return {"valid": False}
    power: dict[str, Any] = {
        "valid": True,
        "current_capacity": reading.current_capacity,
        "max_capacity": reading.max_capacity,
        "charge_pct": reading.charge * 100,
        "condition": reading.condition.value,
        "power_source": reading.power_source.value,
        "time_to_full_charge_min": reading.time_to_full_charge,
        "time_to_empty_min": reading.time_to_empty,
        "time_remaining": reading.time_remaining,
        "is_charged": reading.is_charged,
        "is_charging": reading.is_charging,
    }
    if health is not None:
        power["health"] = {
            "cycle_count": health.cycle_count,
            "design_capacity": health.design_capacity,
            "max_capacity": health.max_capacity,
            "health_pct": health.health * 100,
            "external_connected": health.external_connected,
        }
    return power


def memory_payload(reading: MemoryReading, history: list[float]) -> dict[str, Any]:
    memory: dict[str, Any] = {
        "free_b": reading.free,
        "active_b": reading.active,
        "inactive_b": reading.inactive,
        "wired_b": reading.wired,
        "compressed_b": reading.compressed,
        "app_b": reading.app_memory,
        "cached_files_b": reading.cached_files,
        "used_b": reading.used,
        "total_b": reading.total,
        "used_pct": reading.used_percentage,
        "history_pct": list(history),
    }
    if reading.temperature is not None:
        memory["temperature_c"] = reading.temperature
    return memory


def _port(port: InterfacePort) -> dict[str, Any]:
    return {"device": port.device, "port": port.port, "description": port.description}


def network_payload(reading: NetworkReading) -> dict[str, Any]:
    network: dict[str, Any] = {
        "device": reading.device,
        "in_b": reading.in_bytes,
        "out_b": reading.out_bytes,
        "in_rate_bps": reading.in_rate,
        "out_rate_bps": reading.out_rate,
        "ports": [_port(port) for port in reading.ports],
    }
    if reading.active_port is not None:
        network["active_port"] = _port(reading.active_port)
    return network


def build_payload(
    power: PowerReading,
    memory: MemoryReading,
    history: list[float],
    network: NetworkReading,
    health: BatteryHealth | None = None,
    sleeping: bool = False,
) -> dict[str, Any]:
    return {
        "schema": {"name": SCHEMA_NAME, "version": SCHEMA_VERSION},
        "ts": datetime.now(timezone.utc).isoformat(),
        "sleeping": sleeping,
        "power": power_payload(power, health),
        "memory": memory_payload(memory, history),
        "network": network_payload(network),
    }
