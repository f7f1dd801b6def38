"""Tests for the rule-based classification pipeline."""

import pytest

from metering import (
    BalanceStatus, PumpSnapshot, PumpStatus, TemperatureStatus, apply_integrity_guard,
    build_recommendations, classify_pumps, classify_temperature, classify_water_balance,
    count_anomalies, hot_to_cold_ratio,
)


def snapshot(label="Pump-1", status="normal", hours=6000, p_in=2.5, p_out=4.5, vibration=2.0):
    return PumpSnapshot(label, status, hours, p_in, p_out, vibration)


class TestWaterBalance:

    def test_half_ratio_is_normal(self):
        assert classify_water_balance(cold=100, hot=50) == BalanceStatus.NORMAL

    def test_low_ratio_is_error(self):
        assert classify_water_balance(cold=100, hot=20) == BalanceStatus.ERROR

    def test_hot_above_cold_is_leak(self):
        assert classify_water_balance(cold=100, hot=120) == BalanceStatus.LEAK

    def test_insufficient_data_is_unknown(self):
        assert classify_water_balance(cold=100, hot=50, sufficient=False) == BalanceStatus.UNKNOWN

    def test_no_cold_flow_is_error(self):
        assert classify_water_balance(cold=0, hot=0) == BalanceStatus.ERROR
        assert classify_water_balance(cold=10, hot=-1) == BalanceStatus.ERROR

    @pytest.mark.parametrize("hot,expected", [
        (30, BalanceStatus.WARNING),
        (35, BalanceStatus.WARNING),
        (40, BalanceStatus.NORMAL),
        (70, BalanceStatus.NORMAL),
        (75, BalanceStatus.WARNING),
        (80, BalanceStatus.WARNING),
        (85, BalanceStatus.LEAK),
        (29.9, BalanceStatus.ERROR),
    ])
    def test_ratio_bands(self, hot, expected):
        assert classify_water_balance(cold=100, hot=hot) == expected

    def test_never_leak_inside_plausible_band(self):
        for hot in range(30, 81):
            assert classify_water_balance(cold=100, hot=hot) != BalanceStatus.LEAK

    def test_ratio_without_cold_is_zero(self):
        assert hot_to_cold_ratio(0, 10) == 0.0
        assert hot_to_cold_ratio(200, 50) == 25.0


class TestTemperature:

    def test_bands(self):
        assert classify_temperature(20) == TemperatureStatus.NORMAL
        assert classify_temperature(10) == TemperatureStatus.CRITICAL
        assert classify_temperature(24) == TemperatureStatus.WARNING
        assert classify_temperature(16) == TemperatureStatus.WARNING
        assert classify_temperature(17) == TemperatureStatus.NORMAL
        assert classify_temperature(25.5) == TemperatureStatus.CRITICAL

    def test_no_records_is_unknown(self):
        assert classify_temperature(20, count=0) == TemperatureStatus.UNKNOWN


class TestPumps:

    def test_no_pumps_is_unknown(self):
        assessment = classify_pumps([])
        assert assessment.status == PumpStatus.UNKNOWN
        assert assessment.health_status == PumpStatus.UNKNOWN
        assert assessment.total == 0

    def test_worst_status_wins(self):
        assessment = classify_pumps([
            snapshot("Pump-1", "normal", 6000),
            snapshot("Pump-2", "warning", 11000),
            snapshot("Pump-3", "critical", 16000),
        ])
        assert assessment.status == PumpStatus.CRITICAL
        assert assessment.max_operating_hours == 16000
        assert (assessment.normal_count, assessment.warning_count, assessment.critical_count) == (1, 1, 1)

    def test_warning_without_critical(self):
        assessment = classify_pumps([snapshot("Pump-1"), snapshot("Pump-2", "warning")])
        assert assessment.status == PumpStatus.WARNING

    def test_health_from_pressure_and_vibration(self):
        healthy = classify_pumps([snapshot("Pump-1"), snapshot("Pump-2")])
        assert healthy.health_status == PumpStatus.NORMAL
        assert healthy.pressure_health_ratio == 1.0

        # one of two pumps vibrating: 0.5 -> warning
        shaky = classify_pumps([snapshot("Pump-1"), snapshot("Pump-2", vibration=6.5)])
        assert shaky.vibration_health_ratio == 0.5
        assert shaky.health_status == PumpStatus.WARNING

        # no pressure rise anywhere -> critical
        flat = classify_pumps([snapshot("Pump-1", p_out=2.6), snapshot("Pump-2", p_out=2.5)])
        assert flat.pressure_health_ratio == 0.0
        assert flat.health_status == PumpStatus.CRITICAL

    @pytest.mark.parametrize("rise", [1.0, 3.0])
    def test_rise_on_band_edge_counts_as_healthy(self, rise):
        snapshots = []
        for cents in range(200, 400):
            p_in = round(cents / 100, 2)
            p_out = round(p_in + rise, 2)
            snapshots.append(snapshot(f"Pump-{cents}", p_in=p_in, p_out=p_out))
        assert classify_pumps(snapshots).pressure_health_ratio == 1.0


class TestAnomalies:

    def test_clean_window_has_none(self):
        assert count_anomalies(100, 50, BalanceStatus.NORMAL,
                               TemperatureStatus.NORMAL, PumpStatus.NORMAL) == 0

    def test_each_rule_counts(self):
        count = count_anomalies(100, 120, BalanceStatus.LEAK,
                                TemperatureStatus.CRITICAL, PumpStatus.CRITICAL)
        assert count == 4

    def test_out_of_range_totals(self):
        assert count_anomalies(2_000_000, 10, BalanceStatus.ERROR,
                               TemperatureStatus.NORMAL, PumpStatus.NORMAL) == 2


class TestIntegrityGuard:

    def test_passes_through_sane_ratio(self):
        assert apply_integrity_guard(60, BalanceStatus.NORMAL, 0) == (BalanceStatus.NORMAL, 0, None)

    def test_overrides_implausible_ratio(self):
        balance, anomalies, caveat = apply_integrity_guard(120, BalanceStatus.LEAK, 3)
        assert balance == BalanceStatus.WARNING
        assert anomalies == 0
        assert "integrity" in caveat


class TestRecommendations:

    def test_normal_operation_message(self):
        pumps = classify_pumps([snapshot()])
        recs = build_recommendations(BalanceStatus.NORMAL, 55.0, TemperatureStatus.NORMAL, 20.0,
                                     pumps, cold_count=50, hot_count=50)
        assert recs == ["System operating normally"]

    def test_one_entry_per_flagged_domain(self):
        pumps = classify_pumps([snapshot(status="critical", hours=15500)])
        recs = build_recommendations(BalanceStatus.LEAK, 85.0, TemperatureStatus.WARNING, 24.0,
                                     pumps, cold_count=50, hot_count=50)
        assert len(recs) == 3
        assert recs[0].startswith("Possible leak detected")
        assert "24.0" in recs[1]
        assert "15500" in recs[2]

    def test_data_quality_notes_come_first(self):
        pumps = classify_pumps([])
        recs = build_recommendations(BalanceStatus.UNKNOWN, 0.0, TemperatureStatus.UNKNOWN, 0.0,
                                     pumps, cold_count=3, hot_count=10, estimated=True)
        assert recs[0] == "Only 3 cold-water records found, analysis confidence reduced"
        assert "estimated" in recs[1]

    def test_estimated_report_raises_no_alarms(self):
        pumps = classify_pumps([snapshot(status="critical", hours=16000)])
        recs = build_recommendations(BalanceStatus.UNKNOWN, 0.0, TemperatureStatus.CRITICAL, 10.0,
                                     pumps, cold_count=3, hot_count=10, estimated=True)
        assert len(recs) == 2
        assert not any("Critical" in r or "maintenance" in r for r in recs)

    def test_deterministic(self):
        pumps = classify_pumps([snapshot(status="warning", hours=10500)])
        args = (BalanceStatus.WARNING, 75.0, TemperatureStatus.CRITICAL, 12.0, pumps, 40, 40)
        assert build_recommendations(*args) == build_recommendations(*args)
