"""Pytest configuration and shared fixtures."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from interfaces import FixedClock
from metering import (
    Building, InMemoryTelemetryStore, SyntheticValueModel, TelemetryContext,
    TelemetryParameters,
)

NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)
BUILDING_ID = "11111111-1111-1111-1111-111111111111"
OTHER_BUILDING_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def params():
    return TelemetryParameters()


@pytest.fixture
def store():
    store = InMemoryTelemetryStore()
    store.add_building(Building(BUILDING_ID, "Moscow, Lenina St. 10", NOW - timedelta(days=400)))
    store.add_building(Building(OTHER_BUILDING_ID, "Moscow, Mira Ave. 25", NOW - timedelta(days=30)))
    return store


@pytest.fixture
def context(store, params, clock):
    return TelemetryContext(store=store, parameters=params, clock=clock)


@pytest.fixture
def model(params):
    return SyntheticValueModel(params, rng=random.Random(42))


@pytest.fixture
def fast_params():
    """Generator intervals short enough for tests to observe several ticks."""
    return TelemetryParameters({
        'water_interval': 0.02,
        'temperature_interval': 0.02,
        'pump_interval': 0.02,
        'broadcast_interval': 0.02,
    })
