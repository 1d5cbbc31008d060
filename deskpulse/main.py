from __future__ import annotations

import argparse
import logging
import signal
from typing import Any

from deskpulse.config import load_config
from deskpulse.engine import Engine
from deskpulse.logging_utils import configure_logging, resolve_log_level
from deskpulse.mqtt_client import MqttPublisher


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="deskpulse desktop telemetry engine")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to CFG configuration file (built-in defaults when omitted)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Never publish to MQTT, even when enabled in the config",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Sample every subsystem once, print the JSON payload and exit",
    )
    parser.add_argument(
        "--dump-json",
        help="Write the JSON payload to a file (overwritten on each update)",
    )
    parser.add_argument(
        "--device",
        help="Network device to sample instead of the active service's device",
    )
    parser.add_argument(
        "--pid",
        type=int,
        help="Print the command name of a process and exit",
    )
    return parser


def install_signal_handlers(engine: Engine, config_path: str | None) -> None:
    """Map OS lifecycle signals onto the run queue.

    SIGUSR1/SIGUSR2 carry sleep/wake from a sleepwatcher-style hook, SIGHUP
    reloads the configuration and SIGINT/SIGTERM stop the daemon.
    """
    logger = logging.getLogger("deskpulse")

    def on_sleep(signum: int, frame: Any) -> None:
        engine.request_sleep()

    def on_wake(signum: int, frame: Any) -> None:
        engine.request_wake()

    def on_reload(signum: int, frame: Any) -> None:
        engine.run_queue.call_soon(reload)

    def on_stop(signum: int, frame: Any) -> None:
        engine.run_queue.stop()

    def reload() -> None:
        if config_path is None:
            logger.info("No configuration file to reload.")
            return
        try:
            engine.reload(load_config(config_path))
        except (OSError, ValueError) as exc:
            logger.error("Configuration reload failed, keeping previous values: %s", exc)

    signal.signal(signal.SIGUSR1, on_sleep)
    signal.signal(signal.SIGUSR2, on_wake)
    signal.signal(signal.SIGHUP, on_reload)
    signal.signal(signal.SIGINT, on_stop)
    signal.signal(signal.SIGTERM, on_stop)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("deskpulse")
    config = load_config(args.config)
    pretty_print = level <= logging.DEBUG

    publisher = None
    if config.mqtt.enabled and not args.dry_run and not args.once and args.pid is None:
        publisher = MqttPublisher(config.mqtt)
    elif config.mqtt.enabled:
        logger.info("Dry run enabled; skipping MQTT publish.")

    engine = Engine(
        config,
        publisher=publisher,
        dump_path=args.dump_json,
        pretty=pretty_print or args.once,
    )
    if args.device:
        engine.preferences.network_device.set(args.device)

    if args.pid is not None:
        print(engine.process_name(args.pid) or "")
        engine.close()
        return

    if args.once:
        print(engine.sample_once())
        engine.close()
        return

    install_signal_handlers(engine, args.config)
    engine.start()
    try:
        engine.run_queue.run_forever()
    finally:
        engine.close()


if __name__ == "__main__":
    main()
