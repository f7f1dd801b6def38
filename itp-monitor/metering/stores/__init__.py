from .memory import InMemoryTelemetryStore
from .sqlite import SqliteTelemetryStore

__all__ = ['InMemoryTelemetryStore', 'SqliteTelemetryStore']
