"""Tests for the REST API."""

from datetime import timedelta

import pytest

from metering import (
    ColdWaterReading, ConsumptionAnalyzer, ContinuousTelemetryGenerator, HotWaterReading,
    InMemoryTelemetryStore, TelemetryContext, TelemetryStoreError,
)
from web import EventFeed, create_app

from .conftest import BUILDING_ID, NOW


@pytest.fixture
def feed():
    return EventFeed(max_events=3)


@pytest.fixture
def generator(context, model):
    generator = ContinuousTelemetryGenerator(context, model)
    yield generator
    generator.stop(timeout=5)


@pytest.fixture
def client(context, generator, feed):
    app = create_app(context, ConsumptionAnalyzer(context), generator, feed)
    app.config['TESTING'] = True
    return app.test_client()


def test_list_buildings(client):
    response = client.get('/api/buildings')
    assert response.status_code == 200
    data = response.get_json()
    assert [b['id'] for b in data][0] == BUILDING_ID
    assert data[0]['created_at'] == (NOW - timedelta(days=400)).isoformat()


class TestAnalysis:

    def test_estimated_analysis(self, client):
        response = client.get(f'/api/buildings/{BUILDING_ID}/analysis?days=2')
        assert response.status_code == 200
        data = response.get_json()
        assert data['data_source'] == 'estimated'
        assert data['window_hours'] == 48
        assert data['has_anomalies'] is False

    def test_database_analysis(self, client, store):
        substation_id = store.ensure_substation(BUILDING_ID)
        for i in range(1, 11):
            at = NOW - timedelta(hours=i)
            store.insert_hot_water_reading(HotWaterReading(BUILDING_ID, 2.0, 1.0, at))
            store.insert_cold_water_reading(ColdWaterReading(substation_id, 6.0, at))

        data = client.get(f'/api/buildings/{BUILDING_ID}/analysis').get_json()
        assert data['data_source'] == 'database'
        assert data['water_balance_status'] == 'normal'

    @pytest.mark.parametrize("days", ["0", "-2", "abc", "1000000"])
    def test_bad_days(self, client, days):
        response = client.get(f'/api/buildings/{BUILDING_ID}/analysis?days={days}')
        assert response.status_code == 400
        assert 'error' in response.get_json()

    def test_storage_failure(self, params, clock, generator):
        class DownStore(InMemoryTelemetryStore):
            def query_aggregate(self, building_id, start, end):
                raise TelemetryStoreError("timeout")

        context = TelemetryContext(store=DownStore(), parameters=params, clock=clock)
        client = create_app(context, ConsumptionAnalyzer(context), generator).test_client()
        response = client.get(f'/api/buildings/{BUILDING_ID}/analysis')
        assert response.status_code == 502


def test_realtime(client):
    data = client.get(f'/api/buildings/{BUILDING_ID}/realtime').get_json()
    assert data['building_id'] == BUILDING_ID
    assert data['data_source'] == 'estimated'


class TestGenerator:

    def test_start_status_stop(self, client):
        assert client.post('/api/generator/start').get_json() == {'running': True, 'changed': True}
        assert client.post('/api/generator/start').get_json() == {'running': True, 'changed': False}

        status = client.get('/api/generator/status').get_json()
        assert status['running'] is True
        assert len(status['tasks']) == 4

        assert client.post('/api/generator/stop').get_json() == {'running': False, 'changed': True}
        assert client.post('/api/generator/stop').get_json() == {'running': False, 'changed': False}


class TestData:

    def test_history(self, client):
        response = client.post('/api/history', json={'days': 1})
        assert response.status_code == 200
        data = response.get_json()
        assert data['days'] == 1
        assert data['inserted']['hot_water'] == 2 * 24

        counts = client.get('/api/debug/counts').get_json()
        assert counts['hot_water_meters']['count'] == 2 * 24

    def test_history_bad_days(self, client):
        assert client.post('/api/history', json={'days': 0}).status_code == 400

    def test_seed_skips_existing(self, client):
        assert client.post('/api/seed').get_json() == {'created': 0}

    def test_seed_empty_store(self, params, clock, generator):
        context = TelemetryContext(store=InMemoryTelemetryStore(), parameters=params, clock=clock)
        client = create_app(context, ConsumptionAnalyzer(context), generator).test_client()
        assert client.post('/api/seed').get_json() == {'created': 3}
        assert len(client.get('/api/buildings').get_json()) == 3


def test_events(client, feed):
    for i in range(5):
        feed.notify({'type': 'data_update', 'n': i})
    assert [e['n'] for e in client.get('/api/events').get_json()] == [2, 3, 4]
    assert [e['n'] for e in client.get('/api/events?limit=1').get_json()] == [4]


def test_events_without_feed(context, generator):
    client = create_app(context, ConsumptionAnalyzer(context), generator).test_client()
    assert client.get('/api/events').get_json() == []


def test_parameters(client):
    data = client.get('/api/parameters').get_json()
    assert data['analysis']['min_record_count']['value'] == 7
