"""Value snapshots produced by the samplers."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class BatteryCondition(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class PowerSourceState(str, Enum):
    BATTERY = "battery"
    AC_POWER = "acPower"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PowerReading:
    current_capacity: int = 0
    max_capacity: int = 0
    condition: BatteryCondition = BatteryCondition.GOOD
    power_source: PowerSourceState = PowerSourceState.UNKNOWN
    # Minutes, as reported by the power-source list; 0 or negative when unknown.
    time_to_full_charge: int = 0
    time_to_empty: int = 0
    is_charged: bool = False
    is_charging: bool = False
    valid: bool = False

    @property
    def charge(self) -> float:
        if self.max_capacity <= 0:
            return 0.0
        return self.current_capacity / self.max_capacity

    @property
    def ac_powered(self) -> bool:
        return self.power_source is PowerSourceState.AC_POWER

    @property
    def time_remaining(self) -> str:
        if self.power_source is not PowerSourceState.BATTERY or self.time_to_empty <= 0:
            return "∞"
        hours, minutes = divmod(self.time_to_empty, 60)
        return f"{hours}:{minutes:02d}"


@dataclass(frozen=True)
class BatteryHealth:
    cycle_count: int = 0
    design_capacity: int = 0
    max_capacity: int = 0
    external_connected: bool = False

    @property
    def health(self) -> float:
        if self.design_capacity <= 0:
            return 0.0
        return self.max_capacity / self.design_capacity


@dataclass(frozen=True)
class MemoryReading:
    free: float = 0.0
    active: float = 0.0
    inactive: float = 0.0
    wired: float = 0.0
    compressed: float = 0.0
    app_memory: float = 0.0
    cached_files: float = 0.0
    temperature: float | None = None

    @property
    def used(self) -> float:
        return self.app_memory + self.wired + self.compressed

    @property
    def total(self) -> float:
        return self.free + self.active + self.inactive + self.wired + self.compressed

    @property
    def used_percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.used / self.total * 100

    @property
    def all_free(self) -> float:
        return self.total - self.used

    @property
    def all_free_percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.all_free / self.total * 100


@dataclass(frozen=True)
class InterfacePort:
    device: str
    port: str | None = None

    @property
    def id(self) -> str:
        return self.device

    @property
    def description(self) -> str:
        if self.port is None:
            return self.device
        return f"{self.port} ({self.device})"


@dataclass
class InterfaceStatus:
    name: str
    status: str | None = None


@dataclass(frozen=True)
class NetworkUsage:
    in_bytes: int = 0
    out_bytes: int = 0


@dataclass(frozen=True)
class NetworkReading:
    usage: NetworkUsage = field(default_factory=NetworkUsage)
    in_rate: float = 0.0
    out_rate: float = 0.0
    device: str = ""
    ports: tuple[InterfacePort, ...] = ()
    active_port: InterfacePort | None = None

    @property
    def in_bytes(self) -> int:
        return self.usage.in_bytes

    @property
    def out_bytes(self) -> int:
        return self.usage.out_bytes
