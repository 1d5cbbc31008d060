"""deskpulse desktop telemetry engine."""

from deskpulse.bus import NotificationBus, State, Subscription
from deskpulse.config import AppConfig, load_config
from deskpulse.engine import Engine
from deskpulse.runloop import RunQueue
from deskpulse.scheduler import Scheduler

__all__ = [
    "AppConfig",
    "Engine",
    "NotificationBus",
    "RunQueue",
    "Scheduler",
    "State",
    "Subscription",
    "load_config",
]
