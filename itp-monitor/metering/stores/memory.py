import logging
import threading
from datetime import datetime
from typing import Any, Dict, List

from interfaces import TelemetryStore
from ..errors import BootstrapError, TelemetryStoreError
from ..readings import (
    Building, ColdWaterReading, HotWaterReading, LatestReadings, PumpReading,
    PumpSnapshot, Substation, TemperatureReading, TemperatureStats, WaterAggregate,
    new_id,
)

logger = logging.getLogger("TelemetryStore")


class InMemoryTelemetryStore(TelemetryStore):
    """
    Process-local store. Lists are append-only and guarded by one lock,
    so the generator threads and analyzer calls can share it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._buildings: Dict[str, Building] = {}
        self._substations: Dict[str, Substation] = {}  # building id -> substation
        self._cold: List[ColdWaterReading] = []
        self._hot: List[HotWaterReading] = []
        self._temperature: List[TemperatureReading] = []
        self._pumps: List[PumpReading] = []

    # --- Writes ---

    def add_building(self, building: Building) -> None:
        with self._lock:
            if building.id in self._buildings:
                raise TelemetryStoreError(f"Building {building.id} already exists")
            self._buildings[building.id] = building

    def ensure_substation(self, building_id: str) -> str:
        with self._lock:
            if building_id not in self._buildings:
                raise BootstrapError(building_id, TelemetryStoreError("unknown building"))
            substation = self._substations.get(building_id)
            if substation is None:
                created = self._buildings[building_id].created_at
                substation = Substation(
                    id=new_id(),
                    building_id=building_id,
                    itp_number=f"ITP-{building_id[:8]}",
                    created_at=created,
                )
                self._substations[building_id] = substation
                logger.info(f"Created substation {substation.itp_number} for building {building_id}")
            return substation.id

    def insert_cold_water_reading(self, reading: ColdWaterReading) -> None:
        with self._lock:
            if not any(s.id == reading.substation_id for s in self._substations.values()):
                raise TelemetryStoreError(f"Unknown substation {reading.substation_id}")
            self._cold.append(reading)

    def insert_hot_water_reading(self, reading: HotWaterReading) -> None:
        with self._lock:
            self._hot.append(reading)

    def insert_temperature_reading(self, reading: TemperatureReading) -> None:
        with self._lock:
            self._temperature.append(reading)

    def insert_pump_reading(self, reading: PumpReading) -> None:
        with self._lock:
            self._pumps.append(reading)

    # --- Reads ---

    def list_buildings(self) -> List[Building]:
        with self._lock:
            return sorted(self._buildings.values(), key=lambda b: b.address)

    def _cold_for(self, building_id: str) -> List[ColdWaterReading]:
        substation = self._substations.get(building_id)
        if substation is None:
            return []
        return [r for r in self._cold if r.substation_id == substation.id]

    @staticmethod
    def _in_window(timestamp: datetime, start: datetime, end: datetime) -> bool:
        return start <= timestamp <= end

    def query_aggregate(self, building_id: str, start: datetime, end: datetime) -> WaterAggregate:
        with self._lock:
            cold = [r for r in self._cold_for(building_id) if self._in_window(r.timestamp, start, end)]
            hot = [r for r in self._hot
                   if r.building_id == building_id and self._in_window(r.timestamp, start, end)]
        return WaterAggregate(
            cold_total=sum(r.flow_rate for r in cold),
            hot_total=sum(r.total_flow for r in hot),
            cold_count=len(cold),
            hot_count=len(hot),
        )

    def query_temperature_stats(self, building_id: str, start: datetime, end: datetime) -> TemperatureStats:
        with self._lock:
            rows = [r for r in self._temperature
                    if r.building_id == building_id and self._in_window(r.timestamp, start, end)]
        if not rows:
            return TemperatureStats()
        deltas = [r.delta_temp for r in rows]
        return TemperatureStats(
            avg_supply=sum(r.supply_temp for r in rows) / len(rows),
            avg_return=sum(r.return_temp for r in rows) / len(rows),
            avg_delta=sum(deltas) / len(deltas),
            min_delta=min(deltas),
            max_delta=max(deltas),
            count=len(rows),
        )

    def query_latest_pump_readings(self, building_id: str, start: datetime, end: datetime) -> List[PumpSnapshot]:
        latest: Dict[str, PumpReading] = {}
        with self._lock:
            for reading in self._pumps:
                if reading.building_id != building_id or not self._in_window(reading.timestamp, start, end):
                    continue
                current = latest.get(reading.pump_label)
                if current is None or reading.timestamp >= current.timestamp:
                    latest[reading.pump_label] = reading
        return [PumpSnapshot.from_reading(latest[label]) for label in sorted(latest)]

    def query_latest_readings(self, building_id: str) -> LatestReadings:
        with self._lock:
            hot = [r for r in self._hot if r.building_id == building_id]
            cold = self._cold_for(building_id)
            temperature = [r for r in self._temperature if r.building_id == building_id]
        return LatestReadings(
            hot_water=max(hot, key=lambda r: r.timestamp, default=None),
            cold_water=max(cold, key=lambda r: r.timestamp, default=None),
            temperature=max(temperature, key=lambda r: r.timestamp, default=None),
        )

    def count_readings(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            tables = {
                'cold_water_meters': self._cold,
                'hot_water_meters': self._hot,
                'temperature_readings': self._temperature,
                'pump_data': self._pumps,
            }
            result = {}
            for name, rows in tables.items():
                last = max((r.timestamp for r in rows), default=None)
                result[name] = {
                    'count': len(rows),
                    'last_timestamp': last.isoformat() if last else None,
                }
        return result
