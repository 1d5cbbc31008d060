"""Parsers for the text output of the macOS diagnostic tools.

Every parser accepts ``None`` (a failed command) and degrades to an empty
or zeroed result; malformed lines are skipped rather than raising.
"""
from __future__ import annotations

import re
from typing import Any

from deskpulse.readings import InterfacePort, InterfaceStatus, NetworkUsage

_DEVICE_RE = re.compile(r"Device: ([^,]+)")
_PORT_RE = re.compile(r"Port: ([^,]+)")
_PAGE_SIZE_RE = re.compile(r"page size of (\d+) bytes")
_IOREG_RE = re.compile(r'^[\s|]*"([^"]+)"\s*=\s*(.+?)\s*$')

DEFAULT_PAGE_SIZE = 4096


def _lines(output: str | None) -> list[str]:
    if not output:
        return []
    return output.splitlines()


def parse_port_line(line: str) -> InterfacePort | None:
    """Parse ``(Hardware Port: Wi-Fi, Device: en0)`` into an InterfacePort."""
    line = line.strip()
    if not (line.startswith("(") and line.endswith(")")):
        return None
    trimmed = line[1:-1]

    device_match = _DEVICE_RE.search(trimmed)
    if not device_match:
        return None
    device = device_match.group(1).strip()
    if not device:
        return None

    port = None
    port_match = _PORT_RE.search(trimmed)
    if port_match:
        port = port_match.group(1).strip() or None
    return InterfacePort(device=device, port=port)


def parse_service_order(output: str | None) -> list[InterfacePort]:
    """Ports from ``networksetup -listnetworkserviceorder``, in service order."""
    ports: list[InterfacePort] = []
    seen: set[str] = set()
    for line in _lines(output):
        port = parse_port_line(line)
        if port is None or port.device in seen:
            continue
        seen.add(port.device)
        ports.append(port)
    return ports


def parse_interface_statuses(output: str | None) -> list[InterfaceStatus]:
    """Interfaces from ``ifconfig`` with the ``status:`` of each, if any."""
    interfaces: list[InterfaceStatus] = []
    for line in _lines(output):
        if not line.strip():
            continue
        # An unindented line starts a new interface block.
        if not line[0].isspace():
            name, colon, _ = line.partition(":")
            if not colon:
                continue
            interfaces.append(InterfaceStatus(name=name))
            continue

        parts = [part.strip(" \t") for part in line.split(":")]
        if len(parts) != 2 or parts[0] != "status" or not interfaces:
            continue
        interfaces[-1].status = parts[1]
    return interfaces


def active_interfaces(output: str | None) -> list[str]:
    return [
        interface.name
        for interface in parse_interface_statuses(output)
        if interface.status == "active"
    ]


def find_active_port(
    ports: list[InterfacePort], active: list[str] | set[str]
) -> InterfacePort | None:
    """First port in service order whose device is active."""
    active = set(active)
    return next((port for port in ports if port.device in active), None)


def _column_value(name: str, headers: list[str], values: list[str]) -> int:
    try:
        index = headers.index(name)
    except ValueError:
        return 0
    if index >= len(values):
        return 0
    try:
        return max(0, int(values[index]))
    except ValueError:
        return 0


def parse_byte_counters(output: str | None) -> NetworkUsage:
    """Cumulative byte counters from ``netstat -bI <device>``.

    The first data row is matched against the header row by column name.
    """
    rows = [line for line in _lines(output) if line.strip()]
    if len(rows) < 2:
        return NetworkUsage()
    headers = [header.lower() for header in rows[0].split()]
    values = rows[1].split()
    return NetworkUsage(
        in_bytes=_column_value("ibytes", headers, values),
        out_bytes=_column_value("obytes", headers, values),
    )


def parse_process_name(output: str | None) -> str | None:
    if output is None:
        return None
    name = output.strip()
    return name or None


def parse_vm_stat(output: str | None) -> tuple[int, dict[str, int]]:
    """Return ``(page_size, {counter name: page count})`` from ``vm_stat``.

    Counter names are lower-cased with quotes removed, e.g. ``pages free``.
    """
    page_size = DEFAULT_PAGE_SIZE
    counters: dict[str, int] = {}
    for line in _lines(output):
        if match := _PAGE_SIZE_RE.search(line):
            page_size = int(match.group(1))
            continue
        key, colon, value = line.rpartition(":")
        if not colon:
            continue
        value = value.strip().rstrip(".")
        try:
            counters[key.strip().strip('"').lower()] = int(value)
        except ValueError:
            continue
    return page_size, counters


def _ioreg_scalar(raw: str) -> Any:
    if raw in ("Yes", "No"):
        return raw == "Yes"
    if raw.startswith('"') and raw.endswith('"') and len(raw) >= 2:
        return raw[1:-1]
    try:
        return int(raw)
    except ValueError:
        return None


def parse_ioreg_properties(output: str | None) -> dict[str, Any]:
    """Scalar ``"Key" = value`` properties of the first registry entry.

    Nested dictionaries and arrays are skipped.
    """
    properties: dict[str, Any] = {}
    for line in _lines(output):
        match = _IOREG_RE.match(line)
        if not match:
            continue
        key, raw = match.groups()
        if key in properties:
            continue
        value = _ioreg_scalar(raw)
        if value is not None:
            properties[key] = value
    return properties
