import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Tuple

from .classification import (
    apply_integrity_guard, build_recommendations, classify_pumps,
    classify_temperature, classify_water_balance, count_anomalies, hot_to_cold_ratio,
    is_sufficient,
)
from .context import TelemetryContext
from .errors import FetchError, TelemetryStoreError
from .types import BalanceStatus, DataSource, PumpStatus, TemperatureStatus

logger = logging.getLogger("ConsumptionAnalyzer")


@dataclass(frozen=True)
class ConsumptionAnalysis:
    """Health report for one building over one window. Never stored."""
    building_id: str
    period: str
    window_start: datetime
    window_end: datetime
    window_hours: float
    data_source: DataSource
    total_cold_water: float
    total_hot_water: float
    difference: float
    difference_percent: float
    avg_cold_hourly: float
    avg_hot_hourly: float
    hot_to_cold_ratio_percent: float
    cold_record_count: int
    hot_record_count: int
    water_balance_status: BalanceStatus
    temperature_status: TemperatureStatus
    avg_delta_temp: float
    temperature_record_count: int
    pump_status: PumpStatus
    pump_health_status: PumpStatus
    pump_operating_hours: float
    pump_count: int
    pumps_normal: int
    pumps_warning: int
    pumps_critical: int
    anomaly_count: int
    has_anomalies: bool
    recommendations: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
            elif isinstance(value, datetime):
                data[key] = value.isoformat()
        data['recommendations'] = list(self.recommendations)
        return data


class ConsumptionAnalyzer:
    """
    Stateless read path: fetch window aggregates, classify, report.
    Safe to call concurrently from any number of threads.
    """

    def __init__(self, context: TelemetryContext):
        self._context = context

    @property
    def parameters(self):
        return self._context.parameters

    def analyze(self, building_id: str, window_days: float = 7) -> ConsumptionAnalysis:
        """
        Analyze consumption of a building over the last window_days.

        Raises:
            ValueError: window_days is not positive or reaches too far back.
            FetchError: the store could not be read.
        """
        if not 0 < window_days < float("inf"):
            raise ValueError(f"window_days must be positive, got {window_days}")

        end = self._context.clock.now()
        try:
            start = end - timedelta(days=window_days)
        except OverflowError as e:
            raise ValueError(f"window_days {window_days} reaches past the earliest representable date") from e
        window_hours = window_days * 24.0

        aggregate, temperature_stats, pump_snapshots = self._fetch(building_id, start, end)
        params = self.parameters

        sufficient = is_sufficient(aggregate.cold_count, aggregate.hot_count, params)
        temperature = classify_temperature(temperature_stats.avg_delta, temperature_stats.count, params)
        pumps = classify_pumps(pump_snapshots, params)

        if sufficient:
            data_source = DataSource.DATABASE
            cold_total = aggregate.cold_total
            hot_total = aggregate.hot_total
        else:
            # Too few records, report baselines instead
            data_source = DataSource.ESTIMATED
            cold_total = params.get('estimated_cold_hourly') * window_hours
            hot_total = params.get('estimated_hot_hourly') * window_hours
            logger.info(f"Building {building_id}: {aggregate.cold_count} cold / "
                        f"{aggregate.hot_count} hot records, reporting estimated figures")

        avg_cold = cold_total / window_hours
        avg_hot = hot_total / window_hours
        ratio = hot_to_cold_ratio(cold_total, hot_total)
        balance = classify_water_balance(avg_cold, avg_hot, sufficient, params)

        caveat = None
        if sufficient:
            anomaly_count = count_anomalies(cold_total, hot_total, balance,
                                            temperature, pumps.status, params)
            balance, anomaly_count, caveat = apply_integrity_guard(ratio, balance, anomaly_count, params)
        else:
            anomaly_count = 0

        recommendations = build_recommendations(
            balance, ratio, temperature, temperature_stats.avg_delta, pumps,
            aggregate.cold_count, aggregate.hot_count,
            estimated=not sufficient, params=params,
        )
        if caveat:
            recommendations.insert(0, caveat)

        difference = cold_total - hot_total
        analysis = ConsumptionAnalysis(
            building_id=building_id,
            period=f"{start:%Y-%m-%d} to {end:%Y-%m-%d}",
            window_start=start,
            window_end=end,
            window_hours=window_hours,
            data_source=data_source,
            total_cold_water=cold_total,
            total_hot_water=hot_total,
            difference=difference,
            difference_percent=(difference / cold_total * 100.0) if cold_total > 0 else 0.0,
            avg_cold_hourly=avg_cold,
            avg_hot_hourly=avg_hot,
            hot_to_cold_ratio_percent=ratio,
            cold_record_count=aggregate.cold_count,
            hot_record_count=aggregate.hot_count,
            water_balance_status=balance,
            temperature_status=temperature,
            avg_delta_temp=temperature_stats.avg_delta,
            temperature_record_count=temperature_stats.count,
            pump_status=pumps.status,
            pump_health_status=pumps.health_status,
            pump_operating_hours=pumps.max_operating_hours,
            pump_count=pumps.total,
            pumps_normal=pumps.normal_count,
            pumps_warning=pumps.warning_count,
            pumps_critical=pumps.critical_count,
            anomaly_count=anomaly_count,
            has_anomalies=anomaly_count > 0,
            recommendations=tuple(recommendations),
        )
        logger.info(f"Analyzed building {building_id} over {window_days} days: "
                    f"balance={balance.value}, temperature={temperature.value}, "
                    f"pumps={pumps.status.value}, anomalies={anomaly_count}")
        return analysis

    def _fetch(self, building_id: str, start: datetime, end: datetime):
        store = self._context.store
        try:
            aggregate = store.query_aggregate(building_id, start, end)
        except TelemetryStoreError as e:
            raise FetchError(building_id, "water aggregates", e) from e
        try:
            temperature_stats = store.query_temperature_stats(building_id, start, end)
        except TelemetryStoreError as e:
            raise FetchError(building_id, "temperature statistics", e) from e
        try:
            pump_snapshots = store.query_latest_pump_readings(building_id, start, end)
        except TelemetryStoreError as e:
            raise FetchError(building_id, "pump readings", e) from e
        return aggregate, temperature_stats, pump_snapshots

    def realtime(self, building_id: str) -> Dict[str, Any]:
        """
        Latest readings of a building. With nothing stored yet the values
        come from the same baselines as estimated analyses.
        """
        try:
            latest = self._context.store.query_latest_readings(building_id)
        except TelemetryStoreError as e:
            raise FetchError(building_id, "latest readings", e) from e

        params = self.parameters
        if latest.empty:
            supply = (params.get('supply_temp_min') + params.get('supply_temp_max')) / 2
            ret = (params.get('return_temp_min') + params.get('return_temp_max')) / 2
            return {
                'building_id': building_id,
                'data_source': DataSource.ESTIMATED.value,
                'timestamp': self._context.clock.now().isoformat(),
                'hot_water_flow': params.get('estimated_hot_hourly'),
                'cold_water_flow': params.get('estimated_cold_hourly'),
                'supply_temp': supply,
                'return_temp': ret,
                'delta_temp': supply - ret,
            }

        timestamps: List[datetime] = []
        result = {
            'building_id': building_id,
            'data_source': DataSource.DATABASE.value,
            'hot_water_flow': None,
            'cold_water_flow': None,
            'supply_temp': None,
            'return_temp': None,
            'delta_temp': None,
        }
        if latest.hot_water is not None:
            result['hot_water_flow'] = latest.hot_water.total_flow
            timestamps.append(latest.hot_water.timestamp)
        if latest.cold_water is not None:
            result['cold_water_flow'] = latest.cold_water.flow_rate
            timestamps.append(latest.cold_water.timestamp)
        if latest.temperature is not None:
            result['supply_temp'] = latest.temperature.supply_temp
            result['return_temp'] = latest.temperature.return_temp
            result['delta_temp'] = latest.temperature.delta_temp
            timestamps.append(latest.temperature.timestamp)
        result['timestamp'] = max(timestamps).isoformat()
        return result
