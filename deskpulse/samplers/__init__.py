"""Samplers turning subsystem queries into readings."""

from deskpulse.samplers.base import Refreshable
from deskpulse.samplers.memory import HistoryBuffer, MemorySampler
from deskpulse.samplers.network import NetworkSampler
from deskpulse.samplers.power import PowerSampler

__all__ = [
    "HistoryBuffer",
    "MemorySampler",
    "NetworkSampler",
    "PowerSampler",
    "Refreshable",
]
