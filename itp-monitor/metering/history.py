"""
Historical backfill and demo building seeding.

Used to populate an empty store so the analyzer has full windows to work
with before the continuous generator has been running for long.
"""
import logging
import uuid
from datetime import timedelta
from typing import Dict

from interfaces import Clock, TelemetryStore
from .context import TelemetryContext
from .errors import TelemetryStoreError
from .generator import building_age_days
from .readings import (
    Building, ColdWaterReading, HotWaterReading, PumpReading, TemperatureReading,
)
from .synthetic import SyntheticValueModel

logger = logging.getLogger("HistoricalBackfill")

DEMO_BUILDINGS = [
    {
        'id': "11111111-1111-1111-1111-111111111111",
        'address': "Moscow, Lenina St. 10",
        'fias_id': "fias-001",
        'unom_id': "unom-1001",
    },
    {
        'id': "22222222-2222-2222-2222-222222222222",
        'address': "Moscow, Mira Ave. 25",
        'fias_id': "fias-002",
        'unom_id': "unom-1002",
    },
    {
        'id': "33333333-3333-3333-3333-333333333333",
        'address': "Moscow, Gagarina St. 15",
        'fias_id': "fias-003",
        'unom_id': "unom-1003",
    },
]

TEMPERATURE_EVERY_HOURS = 4
PUMP_HOUR = 12


def seed_demo_buildings(store: TelemetryStore, clock: Clock) -> int:
    """Create the demo buildings with their substations if the store is empty."""
    existing = store.list_buildings()
    if existing:
        logger.info(f"Buildings already exist: {len(existing)}")
        return 0

    created = 0
    for entry in DEMO_BUILDINGS:
        building = Building(
            id=str(uuid.UUID(entry['id'])),
            address=entry['address'],
            created_at=clock.now(),
            fias_id=entry['fias_id'],
            unom_id=entry['unom_id'],
        )
        store.add_building(building)
        try:
            store.ensure_substation(building.id)
        except TelemetryStoreError as e:
            logger.warning(f"Failed to create ITP for building {building.address}: {e}")
        created += 1

    logger.info(f"Created {created} demo buildings")
    return created


class HistoricalBackfill:
    """
    Writes past readings for every building: water every hour, temperature
    every four hours and one pump set at noon each day.
    """

    def __init__(self, context: TelemetryContext, model: SyntheticValueModel = None):
        self._context = context
        self._model = model or SyntheticValueModel(context.parameters)

    def generate(self, days: int) -> Dict[str, int]:
        if days <= 0:
            raise ValueError(f"days must be positive, got {days}")

        store = self._context.store
        buildings = store.list_buildings()
        if not buildings:
            raise ValueError("No buildings found")

        now = self._context.clock.now()
        base_time = now - timedelta(days=days)
        counts = {'hot_water': 0, 'cold_water': 0, 'temperature': 0, 'pump': 0}

        logger.info(f"Generating historical data for {len(buildings)} buildings over {days} days...")

        for building in buildings:
            try:
                substation_id = store.ensure_substation(building.id)
            except TelemetryStoreError as e:
                logger.error(f"Error creating ITP for building {building.id}: {e}")
                continue

            fleet = self._model.pump_fleet(building.id)

            for day in range(days):
                for hour in range(24):
                    at = base_time + timedelta(days=day, hours=hour)
                    if at > now:
                        break
                    self._water(building.id, substation_id, at, counts)
                    if hour % TEMPERATURE_EVERY_HOURS == 0:
                        self._temperature(building.id, at, counts)
                    if hour == PUMP_HOUR:
                        self._pumps(building, fleet, at, counts)

        logger.info(f"Historical data generation completed for {days} days: {counts}")
        return counts

    def _water(self, building_id, substation_id, at, counts):
        hot1, hot2, cold = self._model.water_sample(at.astimezone())
        store = self._context.store
        try:
            store.insert_hot_water_reading(HotWaterReading(building_id, hot1, hot2, at))
            counts['hot_water'] += 1
            store.insert_cold_water_reading(ColdWaterReading(substation_id, cold, at))
            counts['cold_water'] += 1
        except TelemetryStoreError as e:
            logger.error(f"Error inserting historical water data: {e}")

    def _temperature(self, building_id, at, counts):
        supply, ret = self._model.temperature_sample(at.astimezone())
        try:
            self._context.store.insert_temperature_reading(
                TemperatureReading(building_id, supply, ret, at, delta_temp=supply - ret)
            )
            counts['temperature'] += 1
        except TelemetryStoreError as e:
            logger.error(f"Error inserting temperature data: {e}")

    def _pumps(self, building, fleet, at, counts):
        age_days = building_age_days(building, at)
        for label, base_hours in fleet:
            status, hours, p_in, p_out, vibration = self._model.pump_sample(base_hours, age_days)
            try:
                self._context.store.insert_pump_reading(
                    PumpReading(building.id, label, status, hours, p_in, p_out, vibration, at)
                )
                counts['pump'] += 1
            except TelemetryStoreError as e:
                logger.error(f"Error inserting pump data: {e}")
