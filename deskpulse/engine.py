from __future__ import annotations

import logging

from deskpulse.bus import NotificationBus
from deskpulse.commands import CommandRunner, process_name
from deskpulse.config import AppConfig
from deskpulse.consumers import LogConsumer, SnapshotConsumer
from deskpulse.mqtt_client import MqttPublisher
from deskpulse.preferences import Preferences
from deskpulse.runloop import RunQueue
from deskpulse.samplers import MemorySampler, NetworkSampler, PowerSampler
from deskpulse.scheduler import Scheduler


class Engine:
    """Constructs every service once and owns their start/teardown order."""

    def __init__(
        self,
        config: AppConfig,
        run_queue: RunQueue | None = None,
        runner: CommandRunner | None = None,
        publisher: MqttPublisher | None = None,
        dump_path: str | None = None,
        pretty: bool = False,
    ) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.run_queue = run_queue or RunQueue()
        self.bus = NotificationBus()
        self.preferences = Preferences(self.bus, config)
        self.runner = runner or CommandRunner(
            self.run_queue, max_workers=config.commands.max_workers
        )
        self.power = PowerSampler(
            self.bus, self.runner, ioreg_path=config.commands.ioreg_path
        )
        self.memory = MemorySampler(
            self.bus,
            self.runner,
            history_size=config.memory.history_size,
            vm_stat_path=config.commands.vm_stat_path,
        )
        self.network = NetworkSampler(
            self.bus,
            self.runner,
            commands=config.commands,
            fallback_device=config.network.fallback_device,
            device_override=self.preferences.network_device.get,
            clock=self.run_queue.time,
        )
        self.scheduler = Scheduler(self.bus, self.run_queue, self.preferences.interval_for)
        self.publisher = publisher
        self.snapshots = SnapshotConsumer(
            self.bus,
            self.power,
            self.memory,
            self.network,
            publisher=publisher,
            dump_path=dump_path or config.output.dump_json,
            pretty=pretty,
        )
        self.log_consumer = LogConsumer(self.bus)

    def start(self) -> None:
        if self.publisher is not None:
            self.publisher.connect()
            self.publisher.publish_discovery()
        self.log_consumer.start()
        self.snapshots.start()
        for sampler in (self.power, self.memory, self.network):
            sampler.start()
        self.scheduler.start_all()
        self.logger.info(
            "deskpulse started (power every %ss, memory every %ss, network every %ss).",
            self.preferences.power_refresh_interval_s.get(),
            self.preferences.memory_refresh_interval_s.get(),
            self.preferences.network_refresh_interval_s.get(),
        )

    def close(self) -> None:
        self.scheduler.stop()
        for sampler in (self.power, self.memory, self.network):
            sampler.close()
        self.snapshots.close()
        self.log_consumer.close()
        self.runner.shutdown()
        if self.publisher is not None:
            self.publisher.disconnect()
        self.logger.info("deskpulse stopped.")

    def sample_once(self) -> str:
        """Sample every subsystem synchronously and return the JSON payload."""
        self.power.update()
        self.memory.sample()
        self.network.sample(self.preferences.network_device.get())
        return self.snapshots.emit()

    def process_name(self, pid: int) -> str | None:
        return process_name(self.runner, pid, self.config.commands.ps_path)

    def reload(self, config: AppConfig) -> None:
        self.config = config
        self.preferences.apply(config)

    # Thread- and signal-safe entry points.

    def request_sleep(self) -> None:
        self.run_queue.call_soon(self.scheduler.on_sleep)

    def request_wake(self) -> None:
        self.run_queue.call_soon(self.scheduler.on_wake)

    def request_refresh(self) -> None:
        self.run_queue.call_soon(self.scheduler.refresh_all)
