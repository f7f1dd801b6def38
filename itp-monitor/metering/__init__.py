from .parameters import TelemetryParameters
from .types import BalanceStatus, TemperatureStatus, PumpStatus, DataSource
from .errors import TelemetryError, TelemetryStoreError, FetchError, BootstrapError
from .readings import (
    Building, Substation, ColdWaterReading, HotWaterReading, TemperatureReading, PumpReading,
    WaterAggregate, TemperatureStats, PumpSnapshot, LatestReadings
)
from .classification import (
    PumpAssessment, classify_water_balance, classify_temperature, classify_pumps,
    count_anomalies, apply_integrity_guard, build_recommendations, hot_to_cold_ratio
)
from .context import TelemetryContext, LogNotifier
from .synthetic import SyntheticValueModel, hour_factor, seasonal_adjustment
from .analyzer import ConsumptionAnalyzer, ConsumptionAnalysis
from .generator import ContinuousTelemetryGenerator
from .history import HistoricalBackfill, seed_demo_buildings
from .stores import InMemoryTelemetryStore, SqliteTelemetryStore

__all__ = [
    'TelemetryParameters',
    'BalanceStatus', 'TemperatureStatus', 'PumpStatus', 'DataSource',
    'TelemetryError', 'TelemetryStoreError', 'FetchError', 'BootstrapError',
    'Building', 'Substation', 'ColdWaterReading', 'HotWaterReading', 'TemperatureReading',
    'PumpReading', 'WaterAggregate', 'TemperatureStats', 'PumpSnapshot', 'LatestReadings',
    'PumpAssessment', 'classify_water_balance', 'classify_temperature', 'classify_pumps',
    'count_anomalies', 'apply_integrity_guard', 'build_recommendations', 'hot_to_cold_ratio',
    'TelemetryContext', 'LogNotifier',
    'SyntheticValueModel', 'hour_factor', 'seasonal_adjustment',
    'ConsumptionAnalyzer', 'ConsumptionAnalysis',
    'ContinuousTelemetryGenerator',
    'HistoricalBackfill', 'seed_demo_buildings',
    'InMemoryTelemetryStore', 'SqliteTelemetryStore'
]
