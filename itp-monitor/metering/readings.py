"""
Entity and aggregate shapes exchanged with the telemetry store.

Readings are append-only values; the store owns them once inserted.
"""
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Any, Optional

PUMP_STATUSES = ("normal", "warning", "critical")


def new_id() -> str:
    return str(uuid.uuid4())


def _serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


@dataclass
class Building:
    """Apartment building (MKD) served by at most one substation."""
    id: str
    address: str
    created_at: datetime
    fias_id: str = ""
    unom_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class Substation:
    """Individual thermal substation (ITP), the join key for cold water."""
    id: str
    building_id: str
    itp_number: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class ColdWaterReading:
    substation_id: str
    flow_rate: float  # m³/h
    timestamp: datetime
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if self.flow_rate < 0:
            raise ValueError(f"Cold water flow must be >= 0, got {self.flow_rate}")

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class HotWaterReading:
    building_id: str
    flow_rate_ch1: float  # m³/h
    flow_rate_ch2: float  # m³/h
    timestamp: datetime
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if self.flow_rate_ch1 < 0 or self.flow_rate_ch2 < 0:
            raise ValueError("Hot water channel flows must be >= 0")

    @property
    def total_flow(self) -> float:
        return self.flow_rate_ch1 + self.flow_rate_ch2

    def to_dict(self) -> Dict[str, Any]:
        data = _serialize(asdict(self))
        data['total_flow'] = self.total_flow
        return data


@dataclass
class TemperatureReading:
    """
    Heating circuit temperatures. delta_temp is always supply - return;
    when omitted it is derived, when given it must match.
    """
    building_id: str
    supply_temp: float  # °C
    return_temp: float  # °C
    timestamp: datetime
    delta_temp: Optional[float] = None
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        expected = self.supply_temp - self.return_temp
        if self.delta_temp is None:
            self.delta_temp = expected
        elif self.delta_temp != expected:
            raise ValueError(
                f"delta_temp {self.delta_temp} does not equal supply - return ({expected})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class PumpReading:
    building_id: str
    pump_label: str
    status: str
    operating_hours: float
    pressure_in: float  # bar
    pressure_out: float  # bar
    vibration_level: float
    timestamp: datetime
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if self.status not in PUMP_STATUSES:
            raise ValueError(f"Unknown pump status: {self.status}")
        if self.operating_hours < 0:
            raise ValueError("Operating hours must be >= 0")
        if self.vibration_level < 0:
            raise ValueError("Vibration level must be >= 0")

    @property
    def pressure_rise(self) -> float:
        return self.pressure_out - self.pressure_in

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


# --- Aggregates returned by range queries ---

@dataclass
class WaterAggregate:
    cold_total: float = 0.0
    hot_total: float = 0.0
    cold_count: int = 0
    hot_count: int = 0


@dataclass
class TemperatureStats:
    avg_supply: float = 0.0
    avg_return: float = 0.0
    avg_delta: float = 0.0
    min_delta: float = 0.0
    max_delta: float = 0.0
    count: int = 0


@dataclass
class PumpSnapshot:
    """Most recent reading of one pump label within a window."""
    label: str
    status: str
    operating_hours: float
    pressure_in: float
    pressure_out: float
    vibration: float

    @classmethod
    def from_reading(cls, reading: PumpReading) -> 'PumpSnapshot':
        return cls(
            label=reading.pump_label,
            status=reading.status,
            operating_hours=reading.operating_hours,
            pressure_in=reading.pressure_in,
            pressure_out=reading.pressure_out,
            vibration=reading.vibration_level,
        )


@dataclass
class LatestReadings:
    hot_water: Optional[HotWaterReading] = None
    cold_water: Optional[ColdWaterReading] = None
    temperature: Optional[TemperatureReading] = None

    @property
    def empty(self) -> bool:
        return self.hot_water is None and self.cold_water is None and self.temperature is None
