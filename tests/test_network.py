"""Tests for active-interface resolution and throughput sampling."""
from __future__ import annotations

import pytest

from deskpulse.events import EventKind, RefreshEvent
from deskpulse.readings import InterfacePort, NetworkUsage
from deskpulse.samplers.network import NetworkQuery, NetworkSampler, throughput

SERVICE_ORDER = """An asterisk (*) denotes that a network service is disabled.
(1) Ethernet
(Hardware Port: Ethernet, Device: en7)

(2) Wi-Fi
(Hardware Port: Wi-Fi, Device: en0)
"""

IFCONFIG = """en0: flags=8863<UP,BROADCAST,SMART,RUNNING,SIMPLEX,MULTICAST> mtu 1500
\tstatus: active
en7: flags=8863<UP,BROADCAST,SMART,RUNNING,SIMPLEX,MULTICAST> mtu 1500
\tstatus: inactive
"""


def netstat(in_bytes, out_bytes):
    return (
        "Name  Mtu   Network     Address           Ipkts Ierrs  Ibytes  Opkts Oerrs  Obytes  Coll\n"
        f"en0   1500  <Link#6>    a4:83:e7:12:34:56 100   0      {in_bytes} 50    0      {out_bytes} 0\n"
    )


class FakeCommands:
    """Serves canned tool output keyed by executable name."""

    def __init__(self, service_order=SERVICE_ORDER, ifconfig=IFCONFIG, counters=None):
        self.outputs = {"networksetup": service_order, "ifconfig": ifconfig}
        self.counters = list(counters or [(1000, 500)])
        self.calls = []

    def __call__(self, command, stderr=None):
        self.calls.append(command)
        if command[0] == "netstat":
            in_bytes, out_bytes = self.counters.pop(0) if len(self.counters) > 1 else self.counters[0]
            return netstat(in_bytes, out_bytes)
        return self.outputs.get(command[0])


@pytest.fixture
def commands(runner, monkeypatch):
    fake = FakeCommands()
    monkeypatch.setattr(runner, "run", fake)
    return fake


@pytest.fixture
def sampler(bus, runner, clock, commands):
    return NetworkSampler(bus, runner, clock=clock)


class TestThroughput:
    def test_rate(self):
        assert throughput(1000, 1800, 10) == 80
        assert throughput(500, 900, 10) == 40

    def test_decreasing_counter_is_zero(self):
        assert throughput(1800, 1000, 10) == 0

    def test_non_positive_elapsed_is_zero(self):
        assert throughput(0, 1000, 0) == 0
        assert throughput(0, 1000, -1) == 0


class TestQuery:
    def test_active_port_follows_service_order(self, sampler):
        query = sampler.query()

        assert query.ports == (
            InterfacePort(device="en7", port="Ethernet"),
            InterfacePort(device="en0", port="Wi-Fi"),
        )
        assert query.active_port == InterfacePort(device="en0", port="Wi-Fi")
        assert query.device == "en0"
        assert query.usage == NetworkUsage(in_bytes=1000, out_bytes=500)

    def test_device_override(self, sampler, commands):
        query = sampler.query("en7")

        assert query.device == "en7"
        assert commands.calls[-1] == ["netstat", "-bI", "en7"]
        assert query.active_port == InterfacePort(device="en0", port="Wi-Fi")

    def test_fallback_device_without_active_port(self, sampler, commands):
        commands.outputs["ifconfig"] = "en0: flags=0\n\tstatus: inactive\n"

        query = sampler.query()

        assert query.active_port is None
        assert query.device == "en0"

    def test_configured_fallback_device(self, bus, runner, clock, commands):
        commands.outputs["networksetup"] = None
        sampler = NetworkSampler(bus, runner, fallback_device="en1", clock=clock)

        query = sampler.query()

        assert query.ports == ()
        assert query.device == "en1"

    def test_failed_counter_command_reads_zero(self, sampler, commands, monkeypatch):
        def run(command, stderr=None):
            return None if command[0] == "netstat" else commands(command)

        monkeypatch.setattr(sampler.runner, "run", run)

        assert sampler.query().usage == NetworkUsage()


class TestSample:
    def test_first_sample_reports_zero_throughput(self, sampler):
        reading = sampler.sample()

        assert reading.in_rate == 0
        assert reading.out_rate == 0
        assert reading.in_bytes == 1000

    def test_throughput_between_samples(self, sampler, commands, clock):
        commands.counters = [(1000, 500), (1800, 900)]

        sampler.sample()
        clock.advance(10)
        reading = sampler.sample()

        assert reading.in_rate == pytest.approx(80)
        assert reading.out_rate == pytest.approx(40)

    def test_counter_reset_is_clamped(self, sampler, commands, clock):
        commands.counters = [(5000, 5000), (100, 6000)]

        sampler.sample()
        clock.advance(10)
        reading = sampler.sample()

        assert reading.in_rate == 0
        assert reading.out_rate == pytest.approx(100)

    def test_device_change_restarts_deltas(self, sampler, clock):
        sampler.record(NetworkQuery(NetworkUsage(1000, 500), "en0", (), None, 0.0))
        reading = sampler.record(NetworkQuery(NetworkUsage(9000, 900), "en7", (), None, 10.0))

        assert reading.in_rate == 0
        assert reading.device == "en7"

    def test_state_is_published(self, sampler, bus):
        updates = []
        bus.subscribe(EventKind.NETWORK_UPDATED, updates.append)

        sampler.sample()

        assert len(updates) == 1
        assert updates[0].payload.active_port.description == "Wi-Fi (en0)"


class TestRefresh:
    def test_refresh_uses_device_preference(self, bus, runner, run_queue, clock, commands):
        sampler = NetworkSampler(bus, runner, clock=clock, device_override=lambda: "en7")
        sampler.start()

        bus.publish(RefreshEvent(EventKind.NETWORK_REFRESH))
        run_queue.run_pending()

        assert sampler.network.get().device == "en7"

    def test_overlapping_ticks_are_coalesced(
        self, bus, deferred_runner, deferred_executor, run_queue, clock, monkeypatch
    ):
        fake = FakeCommands(counters=[(1000, 500), (1800, 900)])
        monkeypatch.setattr(deferred_runner, "run", fake)
        sampler = NetworkSampler(bus, deferred_runner, clock=clock)
        sampler.start()

        bus.publish(RefreshEvent(EventKind.NETWORK_REFRESH))
        bus.publish(RefreshEvent(EventKind.NETWORK_REFRESH))
        assert len(deferred_executor.pending) == 1

        deferred_executor.complete_all()
        run_queue.run_pending()
        assert sampler.network.get().in_bytes == 1000

        clock.advance(10)
        bus.publish(RefreshEvent(EventKind.NETWORK_REFRESH))
        deferred_executor.complete_all()
        run_queue.run_pending()

        reading = sampler.network.get()
        assert reading.in_rate == pytest.approx(80)
        assert reading.out_rate == pytest.approx(40)
