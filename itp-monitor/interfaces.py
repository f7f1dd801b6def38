"""
Abstract interfaces following Interface Segregation Principle (ISP) and
Dependency Inversion Principle (DIP).

The analyzer only depends on the read side of the telemetry store, the
generator only on the write side. Concrete stores implement both.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional


class TelemetryReader(ABC):
    """Read interface of the time-series store (range queries)."""

    @abstractmethod
    def list_buildings(self) -> List[Any]:
        """Return all known buildings."""
        pass

    @abstractmethod
    def query_aggregate(self, building_id: str, start: datetime, end: datetime) -> Any:
        """Return cold/hot flow totals and record counts for the window."""
        pass

    @abstractmethod
    def query_temperature_stats(self, building_id: str, start: datetime, end: datetime) -> Any:
        """Return supply/return/delta statistics for the window."""
        pass

    @abstractmethod
    def query_latest_pump_readings(self, building_id: str, start: datetime, end: datetime) -> List[Any]:
        """Return the most recent reading per distinct pump label in the window."""
        pass

    @abstractmethod
    def query_latest_readings(self, building_id: str) -> Any:
        """Return the newest hot, cold and temperature reading of a building."""
        pass


class TelemetryWriter(ABC):
    """Write interface of the time-series store (append only)."""

    @abstractmethod
    def add_building(self, building: Any) -> None:
        """Register a building."""
        pass

    @abstractmethod
    def ensure_substation(self, building_id: str) -> str:
        """Return the building's substation id, creating it if missing."""
        pass

    @abstractmethod
    def insert_cold_water_reading(self, reading: Any) -> None:
        pass

    @abstractmethod
    def insert_hot_water_reading(self, reading: Any) -> None:
        pass

    @abstractmethod
    def insert_temperature_reading(self, reading: Any) -> None:
        pass

    @abstractmethod
    def insert_pump_reading(self, reading: Any) -> None:
        pass


class TelemetryStore(TelemetryReader, TelemetryWriter):
    """
    Complete store used by the process (SRP - storage only).
    """

    @abstractmethod
    def count_readings(self) -> Dict[str, Dict[str, Any]]:
        """Return record count and latest timestamp per reading table."""
        pass


class Notifier(ABC):
    """Hook invoked by the broadcast task when new data is available."""

    @abstractmethod
    def notify(self, event: Dict[str, Any]) -> None:
        pass


class Clock(ABC):
    """Source of the current time, injectable for tests."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current UTC-aware time."""
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant (used by tests)."""

    def __init__(self, instant: Optional[datetime] = None):
        self._instant = instant or datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._instant

    def advance(self, **kwargs) -> None:
        self._instant = self._instant + timedelta(**kwargs)
