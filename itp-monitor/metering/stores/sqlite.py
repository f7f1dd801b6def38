"""
SQLite-backed telemetry store.

Tables mirror the metering schema: buildings, itp, cold_water_meters,
hot_water_meters, temperature_readings, pump_data. Timestamps are stored as
fixed-width UTC text so range predicates compare lexicographically.
"""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

from interfaces import TelemetryStore
from ..errors import BootstrapError, TelemetryStoreError
from ..readings import (
    Building, ColdWaterReading, HotWaterReading, LatestReadings, PumpReading,
    PumpSnapshot, TemperatureReading, TemperatureStats, WaterAggregate, new_id,
)

logger = logging.getLogger("TelemetryStore")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

SCHEMA = """
CREATE TABLE IF NOT EXISTS buildings (
    id TEXT PRIMARY KEY,
    address TEXT NOT NULL,
    fias_id TEXT,
    unom_id TEXT,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS itp (
    id TEXT PRIMARY KEY,
    itp_number TEXT NOT NULL,
    building_id TEXT NOT NULL UNIQUE REFERENCES buildings(id),
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS cold_water_meters (
    id TEXT PRIMARY KEY,
    itp_id TEXT NOT NULL REFERENCES itp(id),
    flow_rate REAL NOT NULL CHECK (flow_rate >= 0),
    timestamp TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS hot_water_meters (
    id TEXT PRIMARY KEY,
    building_id TEXT NOT NULL,
    flow_rate_ch1 REAL NOT NULL CHECK (flow_rate_ch1 >= 0),
    flow_rate_ch2 REAL NOT NULL CHECK (flow_rate_ch2 >= 0),
    timestamp TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS temperature_readings (
    id TEXT PRIMARY KEY,
    building_id TEXT NOT NULL,
    supply_temp REAL NOT NULL,
    return_temp REAL NOT NULL,
    delta_temp REAL NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS pump_data (
    id TEXT PRIMARY KEY,
    building_id TEXT NOT NULL,
    pump_number TEXT NOT NULL,
    status TEXT NOT NULL,
    operating_hours REAL NOT NULL,
    pressure_input REAL NOT NULL,
    pressure_output REAL NOT NULL,
    vibration_level REAL NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cold_itp_ts ON cold_water_meters (itp_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_hot_building_ts ON hot_water_meters (building_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_temp_building_ts ON temperature_readings (building_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_pump_building_ts ON pump_data (building_id, pump_number, timestamp);
"""


def to_db_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def from_db_time(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class SqliteTelemetryStore(TelemetryStore):
    """
    One connection shared by every thread of the process, serialized by a
    lock. Driver errors surface as TelemetryStoreError.
    """

    def __init__(self, path: str = ":memory:", timeout: int = 30):
        self._path = path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(path, timeout=timeout, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise TelemetryStoreError(f"Could not open telemetry database {path}: {e}") from e
        logger.info(f"Connected to SQLite telemetry store: {path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("Closed SQLite telemetry store")

    @contextmanager
    def _cursor(self, commit: bool = False):
        with self._lock:
            cursor = self._conn.cursor()
            try:
                yield cursor
                if commit:
                    self._conn.commit()
            except sqlite3.Error as e:
                if commit:
                    self._conn.rollback()
                raise TelemetryStoreError(str(e)) from e
            finally:
                cursor.close()

    # --- Writes ---

    def add_building(self, building: Building) -> None:
        with self._cursor(commit=True) as cur:
            cur.execute(
                "INSERT INTO buildings (id, address, fias_id, unom_id, created_at) VALUES (?, ?, ?, ?, ?)",
                (building.id, building.address, building.fias_id, building.unom_id,
                 to_db_time(building.created_at)),
            )

    def ensure_substation(self, building_id: str) -> str:
        try:
            with self._cursor(commit=True) as cur:
                cur.execute("SELECT id FROM itp WHERE building_id = ? LIMIT 1", (building_id,))
                row = cur.fetchone()
                if row is not None:
                    return row['id']
                substation_id = new_id()
                cur.execute(
                    "INSERT INTO itp (id, itp_number, building_id, created_at) "
                    "SELECT ?, ?, id, created_at FROM buildings WHERE id = ?",
                    (substation_id, f"ITP-{building_id[:8]}", building_id),
                )
                if cur.rowcount == 0:
                    raise TelemetryStoreError("unknown building")
        except TelemetryStoreError as e:
            raise BootstrapError(building_id, e) from e
        logger.info(f"Created substation for building {building_id}")
        return substation_id

    def insert_cold_water_reading(self, reading: ColdWaterReading) -> None:
        with self._cursor(commit=True) as cur:
            cur.execute(
                "INSERT INTO cold_water_meters (id, itp_id, flow_rate, timestamp) VALUES (?, ?, ?, ?)",
                (reading.id, reading.substation_id, reading.flow_rate, to_db_time(reading.timestamp)),
            )

    def insert_hot_water_reading(self, reading: HotWaterReading) -> None:
        with self._cursor(commit=True) as cur:
            cur.execute(
                "INSERT INTO hot_water_meters (id, building_id, flow_rate_ch1, flow_rate_ch2, timestamp) "
                "VALUES (?, ?, ?, ?, ?)",
                (reading.id, reading.building_id, reading.flow_rate_ch1, reading.flow_rate_ch2,
                 to_db_time(reading.timestamp)),
            )

    def insert_temperature_reading(self, reading: TemperatureReading) -> None:
        with self._cursor(commit=True) as cur:
            cur.execute(
                "INSERT INTO temperature_readings (id, building_id, supply_temp, return_temp, delta_temp, timestamp) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (reading.id, reading.building_id, reading.supply_temp, reading.return_temp,
                 reading.delta_temp, to_db_time(reading.timestamp)),
            )

    def insert_pump_reading(self, reading: PumpReading) -> None:
        with self._cursor(commit=True) as cur:
            cur.execute(
                """INSERT INTO pump_data (id, building_id, pump_number, status, operating_hours,
                                          pressure_input, pressure_output, vibration_level, timestamp)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (reading.id, reading.building_id, reading.pump_label, reading.status,
                 reading.operating_hours, reading.pressure_in, reading.pressure_out,
                 reading.vibration_level, to_db_time(reading.timestamp)),
            )

    # --- Reads ---

    def list_buildings(self) -> List[Building]:
        with self._cursor() as cur:
            cur.execute("SELECT id, address, fias_id, unom_id, created_at FROM buildings ORDER BY address")
            rows = cur.fetchall()
        return [
            Building(
                id=row['id'],
                address=row['address'],
                created_at=from_db_time(row['created_at']),
                fias_id=row['fias_id'] or "",
                unom_id=row['unom_id'] or "",
            )
            for row in rows
        ]

    def query_aggregate(self, building_id: str, start: datetime, end: datetime) -> WaterAggregate:
        window = (building_id, to_db_time(start), to_db_time(end))
        with self._cursor() as cur:
            cur.execute(
                """SELECT COALESCE(SUM(cwm.flow_rate), 0) AS total, COUNT(cwm.id) AS n
                   FROM cold_water_meters cwm
                   JOIN itp i ON cwm.itp_id = i.id
                   WHERE i.building_id = ? AND cwm.timestamp BETWEEN ? AND ?""",
                window,
            )
            cold = cur.fetchone()
            cur.execute(
                """SELECT COALESCE(SUM(flow_rate_ch1 + flow_rate_ch2), 0) AS total, COUNT(id) AS n
                   FROM hot_water_meters
                   WHERE building_id = ? AND timestamp BETWEEN ? AND ?""",
                window,
            )
            hot = cur.fetchone()
        return WaterAggregate(
            cold_total=float(cold['total']),
            hot_total=float(hot['total']),
            cold_count=int(cold['n']),
            hot_count=int(hot['n']),
        )

    def query_temperature_stats(self, building_id: str, start: datetime, end: datetime) -> TemperatureStats:
        with self._cursor() as cur:
            cur.execute(
                """SELECT AVG(supply_temp) AS avg_supply, AVG(return_temp) AS avg_return,
                          AVG(delta_temp) AS avg_delta, MIN(delta_temp) AS min_delta,
                          MAX(delta_temp) AS max_delta, COUNT(id) AS n
                   FROM temperature_readings
                   WHERE building_id = ? AND timestamp BETWEEN ? AND ?""",
                (building_id, to_db_time(start), to_db_time(end)),
            )
            row = cur.fetchone()
        if not row['n']:
            return TemperatureStats()
        return TemperatureStats(
            avg_supply=row['avg_supply'],
            avg_return=row['avg_return'],
            avg_delta=row['avg_delta'],
            min_delta=row['min_delta'],
            max_delta=row['max_delta'],
            count=row['n'],
        )

    def query_latest_pump_readings(self, building_id: str, start: datetime, end: datetime) -> List[PumpSnapshot]:
        window = (building_id, to_db_time(start), to_db_time(end))
        with self._cursor() as cur:
            cur.execute(
                """SELECT p.pump_number, p.status, p.operating_hours, p.pressure_input,
                          p.pressure_output, p.vibration_level
                   FROM pump_data p
                   JOIN (SELECT pump_number, MAX(timestamp) AS latest
                         FROM pump_data
                         WHERE building_id = ? AND timestamp BETWEEN ? AND ?
                         GROUP BY pump_number) last
                     ON p.pump_number = last.pump_number AND p.timestamp = last.latest
                   WHERE p.building_id = ?
                   GROUP BY p.pump_number
                   ORDER BY p.pump_number""",
                window + (building_id,),
            )
            rows = cur.fetchall()
        return [
            PumpSnapshot(
                label=row['pump_number'],
                status=row['status'],
                operating_hours=row['operating_hours'],
                pressure_in=row['pressure_input'],
                pressure_out=row['pressure_output'],
                vibration=row['vibration_level'],
            )
            for row in rows
        ]

    def query_latest_readings(self, building_id: str) -> LatestReadings:
        with self._cursor() as cur:
            cur.execute(
                """SELECT id, flow_rate_ch1, flow_rate_ch2, timestamp FROM hot_water_meters
                   WHERE building_id = ? ORDER BY timestamp DESC LIMIT 1""",
                (building_id,),
            )
            hot = cur.fetchone()
            cur.execute(
                """SELECT cwm.id, cwm.itp_id, cwm.flow_rate, cwm.timestamp
                   FROM cold_water_meters cwm JOIN itp i ON cwm.itp_id = i.id
                   WHERE i.building_id = ? ORDER BY cwm.timestamp DESC LIMIT 1""",
                (building_id,),
            )
            cold = cur.fetchone()
            cur.execute(
                """SELECT id, supply_temp, return_temp, delta_temp, timestamp FROM temperature_readings
                   WHERE building_id = ? ORDER BY timestamp DESC LIMIT 1""",
                (building_id,),
            )
            temperature = cur.fetchone()

        latest = LatestReadings()
        if hot is not None:
            latest.hot_water = HotWaterReading(building_id, hot['flow_rate_ch1'], hot['flow_rate_ch2'],
                                               from_db_time(hot['timestamp']), id=hot['id'])
        if cold is not None:
            latest.cold_water = ColdWaterReading(cold['itp_id'], cold['flow_rate'],
                                                 from_db_time(cold['timestamp']), id=cold['id'])
        if temperature is not None:
            latest.temperature = TemperatureReading(
                building_id, temperature['supply_temp'], temperature['return_temp'],
                from_db_time(temperature['timestamp']),
                delta_temp=temperature['delta_temp'], id=temperature['id'],
            )
        return latest

    def count_readings(self) -> Dict[str, Dict[str, Any]]:
        result = {}
        with self._cursor() as cur:
            for table in ('cold_water_meters', 'hot_water_meters', 'temperature_readings', 'pump_data'):
                cur.execute(f"SELECT COUNT(*) AS n, MAX(timestamp) AS last FROM {table}")
                row = cur.fetchone()
                result[table] = {
                    'count': row['n'],
                    'last_timestamp': from_db_time(row['last']).isoformat() if row['last'] else None,
                }
        return result
