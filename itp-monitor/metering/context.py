import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from interfaces import Clock, Notifier, SystemClock, TelemetryStore
from .parameters import TelemetryParameters

logger = logging.getLogger("TelemetryContext")


class LogNotifier(Notifier):
    """Default broadcast hook: just records the event in the log."""

    def notify(self, event: Dict[str, Any]) -> None:
        logger.debug(f"Broadcast: {event}")


@dataclass
class TelemetryContext:
    """
    Process-wide collaborators, built once at start-up and handed to the
    analyzer, the generator and the backfill (DIP).
    """
    store: TelemetryStore
    parameters: TelemetryParameters = field(default_factory=TelemetryParameters)
    notifier: Notifier = field(default_factory=LogNotifier)
    clock: Clock = field(default_factory=SystemClock)

    @classmethod
    def create(cls, store: TelemetryStore,
               parameters: Optional[TelemetryParameters] = None,
               notifier: Optional[Notifier] = None,
               clock: Optional[Clock] = None,
               config_path: Optional[str] = None) -> 'TelemetryContext':
        """Build the context, loading parameters from env and an optional YAML file."""
        if parameters is None:
            parameters = TelemetryParameters.from_env()
        if config_path:
            parameters.load_yaml(config_path)
        context = cls(
            store=store,
            parameters=parameters,
            notifier=notifier or LogNotifier(),
            clock=clock or SystemClock(),
        )
        logger.info(f"Telemetry context ready (store: {type(store).__name__})")
        return context
