from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import configparser

DEFAULT_REFRESH_INTERVAL_S = 3
DEFAULT_HISTORY_SIZE = 50
DEFAULT_FALLBACK_DEVICE = "en0"


@dataclass(frozen=True)
class RefreshConfig:
    power_interval_s: int = DEFAULT_REFRESH_INTERVAL_S
    memory_interval_s: int = DEFAULT_REFRESH_INTERVAL_S
    network_interval_s: int = DEFAULT_REFRESH_INTERVAL_S


@dataclass(frozen=True)
class CommandsConfig:
    ifconfig_path: str = "ifconfig"
    networksetup_path: str = "networksetup"
    netstat_path: str = "netstat"
    ps_path: str = "ps"
    vm_stat_path: str = "vm_stat"
    ioreg_path: str = "ioreg"
    max_workers: int = 4


@dataclass(frozen=True)
class NetworkConfig:
    fallback_device: str = DEFAULT_FALLBACK_DEVICE
    # Pinned device; None follows the active service.
    device: str | None = None


@dataclass(frozen=True)
class MemoryConfig:
    history_size: int = DEFAULT_HISTORY_SIZE


@dataclass(frozen=True)
class MqttConfig:
    enabled: bool = False
    host: str = "localhost"
    port: int = 1883
    base_topic: str = "deskpulse"
    discovery_topic: str = "homeassistant"
    client_id: str = "deskpulse"
    username: str | None = None
    password: str | None = None
    qos: int = 0
    retain: bool = False
    keepalive: int = 60
    tls_enabled: bool = False
    ca_cert: str | None = None


@dataclass(frozen=True)
class OutputConfig:
    dump_json: str | None = None


@dataclass(frozen=True)
class AppConfig:
    refresh: RefreshConfig
    commands: CommandsConfig
    network: NetworkConfig
    memory: MemoryConfig
    mqtt: MqttConfig
    output: OutputConfig


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _get_interval(parser: configparser.ConfigParser, option: str) -> int:
    value = parser.getint("refresh", option, fallback=DEFAULT_REFRESH_INTERVAL_S)
    if value <= 0:
        raise ValueError(f"[refresh] {option} must be positive, got {value}")
    return value


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load the INI configuration at ``path``.

    Every section is optional; ``path=None`` yields the built-in defaults.
    """
    parser = configparser.ConfigParser()
    if path is not None:
        read_files = parser.read(path)
        if not read_files:
            raise FileNotFoundError(f"Config file not found: {path}")

    refresh = RefreshConfig(
        power_interval_s=_get_interval(parser, "power_interval_s"),
        memory_interval_s=_get_interval(parser, "memory_interval_s"),
        network_interval_s=_get_interval(parser, "network_interval_s"),
    )

    commands = CommandsConfig(
        ifconfig_path=parser.get("commands", "ifconfig_path", fallback="ifconfig"),
        networksetup_path=parser.get("commands", "networksetup_path", fallback="networksetup"),
        netstat_path=parser.get("commands", "netstat_path", fallback="netstat"),
        ps_path=parser.get("commands", "ps_path", fallback="ps"),
        vm_stat_path=parser.get("commands", "vm_stat_path", fallback="vm_stat"),
        ioreg_path=parser.get("commands", "ioreg_path", fallback="ioreg"),
        max_workers=max(1, parser.getint("commands", "max_workers", fallback=4)),
    )

    network = NetworkConfig(
        fallback_device=parser.get("network", "fallback_device", fallback=DEFAULT_FALLBACK_DEVICE),
        device=_get_optional(parser.get("network", "device", fallback=None)),
    )

    history_size = parser.getint("memory", "history_size", fallback=DEFAULT_HISTORY_SIZE)
    if history_size <= 0:
        raise ValueError(f"[memory] history_size must be positive, got {history_size}")
    memory = MemoryConfig(history_size=history_size)

    mqtt = MqttConfig(
        enabled=parser.getboolean("mqtt", "enabled", fallback=False),
        host=parser.get("mqtt", "host", fallback="localhost"),
        port=parser.getint("mqtt", "port", fallback=1883),
        base_topic=parser.get("mqtt", "base_topic", fallback="deskpulse"),
        discovery_topic=parser.get("mqtt", "discovery_topic", fallback="homeassistant"),
        client_id=parser.get("mqtt", "client_id", fallback="deskpulse"),
        username=_get_optional(parser.get("mqtt", "username", fallback=None)),
        password=_get_optional(parser.get("mqtt", "password", fallback=None)),
        qos=parser.getint("mqtt", "qos", fallback=0),
        retain=parser.getboolean("mqtt", "retain", fallback=False),
        keepalive=parser.getint("mqtt", "keepalive", fallback=60),
        tls_enabled=parser.getboolean("mqtt", "tls", fallback=False),
        ca_cert=_get_optional(parser.get("mqtt", "ca_cert", fallback=None)),
    )

    output = OutputConfig(
        dump_json=_get_optional(parser.get("output", "dump_json", fallback=None)),
    )

    return AppConfig(
        refresh=refresh,
        commands=commands,
        network=network,
        memory=memory,
        mqtt=mqtt,
        output=output,
    )
