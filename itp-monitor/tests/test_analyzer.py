"""Tests for the consumption analyzer."""

from datetime import timedelta

import pytest

from metering import (
    BalanceStatus, ColdWaterReading, ConsumptionAnalyzer, DataSource, FetchError,
    HotWaterReading, InMemoryTelemetryStore, PumpReading, PumpStatus, TelemetryContext,
    TelemetryStoreError, TemperatureReading, TemperatureStatus,
)

from .conftest import BUILDING_ID, NOW


def fill_water(store, building_id, hours, hot_ch1, hot_ch2, cold):
    substation_id = store.ensure_substation(building_id)
    for i in range(1, hours + 1):
        at = NOW - timedelta(hours=i)
        store.insert_hot_water_reading(HotWaterReading(building_id, hot_ch1, hot_ch2, at))
        store.insert_cold_water_reading(ColdWaterReading(substation_id, cold, at))


def fill_temperature(store, building_id, count, supply=65.0, ret=45.0):
    for i in range(1, count + 1):
        store.insert_temperature_reading(
            TemperatureReading(building_id, supply, ret, NOW - timedelta(hours=4 * i))
        )


def fill_pumps(store, building_id, statuses):
    for i, (status, hours) in enumerate(statuses, start=1):
        store.insert_pump_reading(PumpReading(
            building_id, f"Pump-{i}", status, hours, 2.5, 4.5, 2.0, NOW - timedelta(hours=12)
        ))


@pytest.fixture
def analyzer(context):
    return ConsumptionAnalyzer(context)


class TestDatabaseMode:

    def test_healthy_building(self, store, analyzer):
        fill_water(store, BUILDING_ID, 10, 2.0, 1.0, 6.0)
        fill_temperature(store, BUILDING_ID, 5)
        fill_pumps(store, BUILDING_ID, [("normal", 6000), ("normal", 7000)])

        analysis = analyzer.analyze(BUILDING_ID, 7)

        assert analysis.data_source == DataSource.DATABASE
        assert analysis.cold_record_count == 10
        assert analysis.hot_record_count == 10
        assert analysis.total_cold_water == pytest.approx(60.0)
        assert analysis.total_hot_water == pytest.approx(30.0)
        assert analysis.hot_to_cold_ratio_percent == pytest.approx(50.0)
        assert analysis.difference_percent == pytest.approx(50.0)
        assert analysis.avg_cold_hourly == pytest.approx(60.0 / 168)
        assert analysis.water_balance_status == BalanceStatus.NORMAL
        assert analysis.temperature_status == TemperatureStatus.NORMAL
        assert analysis.avg_delta_temp == pytest.approx(20.0)
        assert analysis.pump_status == PumpStatus.NORMAL
        assert analysis.pump_count == 2
        assert analysis.pump_operating_hours == 7000
        assert analysis.anomaly_count == 0
        assert not analysis.has_anomalies
        assert analysis.recommendations == ("System operating normally",)

    def test_window_is_anchored_to_clock(self, analyzer):
        analysis = analyzer.analyze(BUILDING_ID, 2)
        assert analysis.window_end == NOW
        assert analysis.window_start == NOW - timedelta(days=2)
        assert analysis.window_hours == 48
        assert analysis.period == "2024-03-13 to 2024-03-15"

    def test_readings_outside_window_are_ignored(self, store, analyzer):
        substation_id = store.ensure_substation(BUILDING_ID)
        old = NOW - timedelta(days=10)
        store.insert_hot_water_reading(HotWaterReading(BUILDING_ID, 2.0, 1.0, old))
        store.insert_cold_water_reading(ColdWaterReading(substation_id, 6.0, old))

        analysis = analyzer.analyze(BUILDING_ID, 7)
        assert analysis.cold_record_count == 0
        assert analysis.hot_record_count == 0

    def test_leak_counts_anomalies(self, store, analyzer):
        fill_water(store, BUILDING_ID, 10, 2.7, 2.7, 6.0)
        fill_temperature(store, BUILDING_ID, 5, supply=65.0, ret=55.0)
        fill_pumps(store, BUILDING_ID, [("critical", 16000)])

        analysis = analyzer.analyze(BUILDING_ID, 7)

        assert analysis.water_balance_status == BalanceStatus.LEAK
        assert analysis.temperature_status == TemperatureStatus.CRITICAL
        assert analysis.pump_status == PumpStatus.CRITICAL
        assert analysis.anomaly_count == 3
        assert analysis.has_anomalies
        assert analysis.recommendations[0].startswith("Possible leak detected")

    def test_implausible_ratio_is_downgraded(self, store, analyzer):
        fill_water(store, BUILDING_ID, 10, 5.0, 3.0, 6.0)

        analysis = analyzer.analyze(BUILDING_ID, 7)

        assert analysis.hot_to_cold_ratio_percent > 95
        assert analysis.water_balance_status == BalanceStatus.WARNING
        assert analysis.anomaly_count == 0
        assert not analysis.has_anomalies
        assert "integrity" in analysis.recommendations[0]

    def test_to_dict_is_json_ready(self, store, analyzer):
        fill_water(store, BUILDING_ID, 10, 2.0, 1.0, 6.0)
        data = analyzer.analyze(BUILDING_ID, 7).to_dict()
        assert data['data_source'] == "database"
        assert data['water_balance_status'] == "normal"
        assert data['window_end'] == NOW.isoformat()
        assert isinstance(data['recommendations'], list)


class TestEstimatedMode:

    def test_sparse_cold_data_is_estimated(self, store, analyzer):
        substation_id = store.ensure_substation(BUILDING_ID)
        for i in range(1, 11):
            store.insert_hot_water_reading(HotWaterReading(BUILDING_ID, 5.0, 5.0, NOW - timedelta(hours=i)))
        for i in range(1, 4):
            store.insert_cold_water_reading(ColdWaterReading(substation_id, 1.0, NOW - timedelta(hours=i)))

        analysis = analyzer.analyze(BUILDING_ID, 7)

        assert analysis.data_source == DataSource.ESTIMATED
        assert analysis.cold_record_count == 3
        assert analysis.hot_record_count == 10
        assert analysis.water_balance_status == BalanceStatus.UNKNOWN
        assert analysis.total_cold_water == pytest.approx(7.0 * 168)
        assert analysis.total_hot_water == pytest.approx(4.0 * 168)
        assert analysis.anomaly_count == 0
        assert not analysis.has_anomalies
        assert analysis.recommendations[0] == (
            "Only 3 cold-water records found, analysis confidence reduced"
        )

    def test_estimated_report_makes_no_alarm_claims(self, store, analyzer):
        fill_water(store, BUILDING_ID, 3, 2.0, 1.0, 6.0)
        fill_temperature(store, BUILDING_ID, 5, supply=65.0, ret=55.0)
        fill_pumps(store, BUILDING_ID, [("critical", 16000)])

        analysis = analyzer.analyze(BUILDING_ID, 7)

        assert analysis.data_source == DataSource.ESTIMATED
        assert analysis.temperature_status == TemperatureStatus.CRITICAL
        assert analysis.pump_status == PumpStatus.CRITICAL
        assert not analysis.has_anomalies
        assert not any("Critical" in r or "maintenance" in r for r in analysis.recommendations)

    def test_empty_store_is_estimated(self, analyzer):
        analysis = analyzer.analyze(BUILDING_ID, 1)
        assert analysis.data_source == DataSource.ESTIMATED
        assert analysis.temperature_status == TemperatureStatus.UNKNOWN
        assert analysis.pump_status == PumpStatus.UNKNOWN
        assert analysis.pump_count == 0

    def test_estimates_are_deterministic(self, analyzer):
        first = analyzer.analyze(BUILDING_ID, 3)
        second = analyzer.analyze(BUILDING_ID, 3)
        assert first == second


class TestErrors:

    @pytest.mark.parametrize("days", [0, -1, float("nan"), float("inf"), 1e6, 5e9])
    def test_invalid_window(self, analyzer, days):
        with pytest.raises(ValueError):
            analyzer.analyze(BUILDING_ID, days)

    def test_store_failure_is_fetch_error(self, params, clock):
        class BrokenStore(InMemoryTelemetryStore):
            def query_temperature_stats(self, building_id, start, end):
                raise TelemetryStoreError("connection refused")

        context = TelemetryContext(store=BrokenStore(), parameters=params, clock=clock)
        with pytest.raises(FetchError) as exc_info:
            ConsumptionAnalyzer(context).analyze(BUILDING_ID, 7)
        assert exc_info.value.building_id == BUILDING_ID
        assert "temperature statistics" in str(exc_info.value)


class TestRealtime:

    def test_no_readings_falls_back_to_estimates(self, analyzer):
        result = analyzer.realtime(BUILDING_ID)
        assert result['data_source'] == "estimated"
        assert result['hot_water_flow'] == 4.0
        assert result['cold_water_flow'] == 7.0
        assert result['supply_temp'] == 67.5
        assert result['return_temp'] == 44.0
        assert result['delta_temp'] == pytest.approx(23.5)
        assert result['timestamp'] == NOW.isoformat()

    def test_latest_values(self, store, analyzer):
        fill_water(store, BUILDING_ID, 3, 2.0, 1.5, 6.0)
        fill_temperature(store, BUILDING_ID, 2, supply=66.0, ret=44.0)

        result = analyzer.realtime(BUILDING_ID)

        assert result['data_source'] == "database"
        assert result['hot_water_flow'] == pytest.approx(3.5)
        assert result['cold_water_flow'] == 6.0
        assert result['delta_temp'] == pytest.approx(22.0)
        assert result['timestamp'] == (NOW - timedelta(hours=1)).isoformat()
