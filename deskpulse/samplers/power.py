"""Battery and power-source sampling.

The power-source list mirrors the macOS IOPowerSources description: one
mapping per source, keyed by the ``kIOPS*`` key names below.  The default
provider builds that list from :func:`psutil.sensors_battery`.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import psutil

from deskpulse.bus import NotificationBus, State, Subscription
from deskpulse.commands import CommandRunner
from deskpulse.events import EventKind
from deskpulse.parsers import parse_ioreg_properties
from deskpulse.readings import (
    BatteryCondition,
    BatteryHealth,
    PowerReading,
    PowerSourceState,
)
from deskpulse.samplers.base import subscribe_refreshable

CURRENT_CAPACITY_KEY = "Current Capacity"
MAX_CAPACITY_KEY = "Max Capacity"
TIME_TO_FULL_CHARGE_KEY = "Time to Full Charge"
TIME_TO_EMPTY_KEY = "Time to Empty"
IS_CHARGED_KEY = "Is Charged"
IS_CHARGING_KEY = "Is Charging"
HEALTH_CONDITION_KEY = "BatteryHealthCondition"
POWER_SOURCE_STATE_KEY = "Power Source State"

POOR_VALUE = "Poor"
FAIR_VALUE = "Fair"
AC_POWER_VALUE = "AC Power"
BATTERY_POWER_VALUE = "Battery Power"

PowerSourceList = list[Any]


def classify_condition(value: Any) -> BatteryCondition:
    if value == POOR_VALUE:
        return BatteryCondition.POOR
    if value == FAIR_VALUE:
        return BatteryCondition.FAIR
    return BatteryCondition.GOOD


def classify_power_source(value: Any) -> PowerSourceState:
    if value == AC_POWER_VALUE:
        return PowerSourceState.AC_POWER
    if value == BATTERY_POWER_VALUE:
        return PowerSourceState.BATTERY
    return PowerSourceState.UNKNOWN


def _int(source: Mapping[str, Any], key: str) -> int:
    value = source.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _bool(source: Mapping[str, Any], key: str) -> bool:
    value = source.get(key)
    return value if isinstance(value, bool) else False


def psutil_power_sources() -> PowerSourceList:
    logger = logging.getLogger("PowerSources")
    if not hasattr(psutil, "sensors_battery"):
        logger.debug("Battery sensors not supported on this platform.")
        return []
    try:
        battery = psutil.sensors_battery()
    except Exception:
        logger.debug("Failed to read battery sensors.", exc_info=True)
        return []
    if battery is None:
        logger.debug("No battery data available from psutil.")
        return []

    percent = int(round(battery.percent))
    plugged = battery.power_plugged
    source: dict[str, Any] = {
        CURRENT_CAPACITY_KEY: percent,
        MAX_CAPACITY_KEY: 100,
        IS_CHARGED_KEY: plugged is True and percent >= 100,
        IS_CHARGING_KEY: plugged is True and percent < 100,
    }
    if plugged is True:
        source[POWER_SOURCE_STATE_KEY] = AC_POWER_VALUE
    elif plugged is False:
        source[POWER_SOURCE_STATE_KEY] = BATTERY_POWER_VALUE

    secsleft = battery.secsleft
    if plugged is False and secsleft not in (
        psutil.POWER_TIME_UNKNOWN,
        psutil.POWER_TIME_UNLIMITED,
    ) and secsleft >= 0:
        source[TIME_TO_EMPTY_KEY] = int(secsleft // 60)
    else:
        # IOKit reports -1 while the estimate is still being calculated.
        source[TIME_TO_EMPTY_KEY] = -1
    return [source]


def parse_power_sources(sources: PowerSourceList) -> PowerReading:
    if not sources or not isinstance(sources[0], Mapping):
        return PowerReading(valid=False)
    first = sources[0]
    return PowerReading(
        current_capacity=_int(first, CURRENT_CAPACITY_KEY),
        max_capacity=_int(first, MAX_CAPACITY_KEY),
        condition=classify_condition(first.get(HEALTH_CONDITION_KEY)),
        power_source=classify_power_source(first.get(POWER_SOURCE_STATE_KEY)),
        time_to_full_charge=_int(first, TIME_TO_FULL_CHARGE_KEY),
        time_to_empty=_int(first, TIME_TO_EMPTY_KEY),
        is_charged=_bool(first, IS_CHARGED_KEY),
        is_charging=_bool(first, IS_CHARGING_KEY),
        valid=True,
    )


def parse_battery_health(properties: Mapping[str, Any]) -> BatteryHealth | None:
    """Health details from the ``AppleSmartBattery`` registry entry."""
    if not properties:
        return None
    max_capacity = _int(properties, "AppleRawMaxCapacity") or _int(properties, "MaxCapacity")
    return BatteryHealth(
        cycle_count=_int(properties, "CycleCount"),
        design_capacity=_int(properties, "DesignCapacity"),
        max_capacity=max_capacity,
        external_connected=_bool(properties, "ExternalConnected"),
    )


class PowerSampler:
    def __init__(
        self,
        bus: NotificationBus,
        runner: CommandRunner,
        source: Callable[[], PowerSourceList] = psutil_power_sources,
        ioreg_path: str = "ioreg",
    ) -> None:
        self.bus = bus
        self.runner = runner
        self.source = source
        self.ioreg_path = ioreg_path
        self.power: State[PowerReading] = State(bus, EventKind.POWER_UPDATED, PowerReading())
        self.battery_health: BatteryHealth | None = None
        self.logger = logging.getLogger(self.__class__.__name__)
        self._subscriptions: list[Subscription] = []

    def start(self) -> None:
        if not self._subscriptions:
            self._subscriptions = subscribe_refreshable(self.bus, EventKind.POWER_REFRESH, self)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def sample(self) -> PowerReading:
        try:
            sources = self.source()
        except Exception:
            self.logger.debug("Power source query failed.", exc_info=True)
            sources = []
        reading = parse_power_sources(sources)
        if reading.valid:
            self.logger.debug(
                "Battery %s/%s %s on %s, charging=%s charged=%s",
                reading.current_capacity,
                reading.max_capacity,
                reading.condition.value,
                reading.power_source.value,
                reading.is_charging,
                reading.is_charged,
            )
        else:
            self.logger.debug("No power source available.")
        return reading

    def health(self) -> BatteryHealth | None:
        output = self.runner.run([self.ioreg_path, "-rn", "AppleSmartBattery"])
        return parse_battery_health(parse_ioreg_properties(output))

    def update(self) -> PowerReading:
        """Sample and store the reading and battery health on the calling thread."""
        result = self._query()
        self._apply(result)
        return result[0]

    def refresh(self) -> None:
        self.runner.dispatch(str(EventKind.POWER_REFRESH), self._query, self._apply)

    def _query(self) -> tuple[PowerReading, BatteryHealth | None]:
        reading = self.sample()
        return reading, self.health() if reading.valid else None

    def _apply(self, result: tuple[PowerReading, BatteryHealth | None]) -> None:
        reading, health = result
        self.battery_health = health
        self.power.set(reading)
