import os
import logging
import threading
from typing import Dict, Optional

import yaml

logger = logging.getLogger("TelemetryParameters")

ENV_PREFIX = "ITP_"


class TelemetryParameters:
    """
    Tunable parameters for the analyzer thresholds, generator schedule and
    synthetic value ranges. One instance is built at process start and
    handed to both subsystems through the telemetry context.
    """

    DEFAULTS = {
        # Data sufficiency
        'min_record_count': {
            'value': 7,
            'min': 1,
            'max': 1000,
            'unit': 'records',
            'description': 'Minimum cold and hot records in a window before the analysis trusts the data',
            'category': 'analysis'
        },
        'estimated_cold_hourly': {
            'value': 7.0,
            'min': 5.0,
            'max': 9.0,
            'unit': 'm³/h',
            'description': 'Baseline cold water flow used for estimated reports',
            'category': 'analysis'
        },
        'estimated_hot_hourly': {
            'value': 4.0,
            'min': 3.0,
            'max': 5.0,
            'unit': 'm³/h',
            'description': 'Baseline hot water flow used for estimated reports',
            'category': 'analysis'
        },

        # Water balance (hot share of cold supply)
        'ratio_normal_min': {
            'value': 40.0,
            'min': 0.0,
            'max': 100.0,
            'unit': '%',
            'description': 'Lower bound of the normal hot/cold ratio band',
            'category': 'analysis'
        },
        'ratio_normal_max': {
            'value': 70.0,
            'min': 0.0,
            'max': 100.0,
            'unit': '%',
            'description': 'Upper bound of the normal hot/cold ratio band',
            'category': 'analysis'
        },
        'ratio_warning_min': {
            'value': 30.0,
            'min': 0.0,
            'max': 100.0,
            'unit': '%',
            'description': 'Ratio below which the balance is an error',
            'category': 'analysis'
        },
        'ratio_warning_max': {
            'value': 80.0,
            'min': 0.0,
            'max': 100.0,
            'unit': '%',
            'description': 'Ratio above which the balance indicates a leak',
            'category': 'analysis'
        },
        'ratio_integrity_limit': {
            'value': 95.0,
            'min': 80.0,
            'max': 1000.0,
            'unit': '%',
            'description': 'Ratio above which the data is treated as suspect',
            'category': 'analysis'
        },
        'anomaly_total_max': {
            'value': 1000000.0,
            'min': 1.0,
            'max': 1.0e12,
            'unit': 'm³/h',
            'description': 'Upper sanity bound for window flow totals',
            'category': 'analysis'
        },

        # Delta-T bands
        'delta_normal_min': {
            'value': 17.0,
            'min': 0.0,
            'max': 60.0,
            'unit': '°C',
            'description': 'Lower bound of the normal supply/return difference',
            'category': 'analysis'
        },
        'delta_normal_max': {
            'value': 23.0,
            'min': 0.0,
            'max': 60.0,
            'unit': '°C',
            'description': 'Upper bound of the normal supply/return difference',
            'category': 'analysis'
        },
        'delta_warning_min': {
            'value': 15.0,
            'min': 0.0,
            'max': 60.0,
            'unit': '°C',
            'description': 'Lower bound of the warning supply/return difference',
            'category': 'analysis'
        },
        'delta_warning_max': {
            'value': 25.0,
            'min': 0.0,
            'max': 60.0,
            'unit': '°C',
            'description': 'Upper bound of the warning supply/return difference',
            'category': 'analysis'
        },

        # Pump health
        'pump_pressure_rise_min': {
            'value': 1.0,
            'min': 0.0,
            'max': 10.0,
            'unit': 'bar',
            'description': 'Minimum healthy outlet minus inlet pressure',
            'category': 'analysis'
        },
        'pump_pressure_rise_max': {
            'value': 3.0,
            'min': 0.0,
            'max': 10.0,
            'unit': 'bar',
            'description': 'Maximum healthy outlet minus inlet pressure',
            'category': 'analysis'
        },
        'pump_vibration_max': {
            'value': 5.0,
            'min': 0.0,
            'max': 20.0,
            'unit': 'mm/s',
            'description': 'Maximum healthy vibration level',
            'category': 'analysis'
        },
        'pump_health_normal_ratio': {
            'value': 0.8,
            'min': 0.0,
            'max': 1.0,
            'unit': '',
            'description': 'Healthy pump fraction at or above which pump health is normal',
            'category': 'analysis'
        },
        'pump_health_warning_ratio': {
            'value': 0.5,
            'min': 0.0,
            'max': 1.0,
            'unit': '',
            'description': 'Healthy pump fraction at or above which pump health is a warning',
            'category': 'analysis'
        },

        # Generator schedule
        'water_interval': {
            'value': 30.0,
            'min': 0.01,
            'max': 3600.0,
            'unit': 's',
            'description': 'Interval between water readings',
            'category': 'schedule'
        },
        'temperature_interval': {
            'value': 120.0,
            'min': 0.01,
            'max': 3600.0,
            'unit': 's',
            'description': 'Interval between temperature readings',
            'category': 'schedule'
        },
        'pump_interval': {
            'value': 300.0,
            'min': 0.01,
            'max': 3600.0,
            'unit': 's',
            'description': 'Interval between pump readings',
            'category': 'schedule'
        },
        'broadcast_interval': {
            'value': 10.0,
            'min': 0.01,
            'max': 3600.0,
            'unit': 's',
            'description': 'Interval between new-data notifications',
            'category': 'schedule'
        },

        # Synthetic value ranges
        'hot_ch1_min': {
            'value': 2.5, 'min': 0.0, 'max': 50.0, 'unit': 'm³/h',
            'description': 'Hot water channel 1 base flow (low)', 'category': 'synthetic'
        },
        'hot_ch1_max': {
            'value': 4.5, 'min': 0.0, 'max': 50.0, 'unit': 'm³/h',
            'description': 'Hot water channel 1 base flow (high)', 'category': 'synthetic'
        },
        'hot_ch2_min': {
            'value': 1.5, 'min': 0.0, 'max': 50.0, 'unit': 'm³/h',
            'description': 'Hot water channel 2 base flow (low)', 'category': 'synthetic'
        },
        'hot_ch2_max': {
            'value': 3.0, 'min': 0.0, 'max': 50.0, 'unit': 'm³/h',
            'description': 'Hot water channel 2 base flow (high)', 'category': 'synthetic'
        },
        'cold_margin_min': {
            'value': 1.0, 'min': 0.0, 'max': 50.0, 'unit': 'm³/h',
            'description': 'Cold flow above total hot flow (low)', 'category': 'synthetic'
        },
        'cold_margin_max': {
            'value': 3.0, 'min': 0.0, 'max': 50.0, 'unit': 'm³/h',
            'description': 'Cold flow above total hot flow (high)', 'category': 'synthetic'
        },
        'supply_temp_min': {
            'value': 65.0, 'min': 30.0, 'max': 130.0, 'unit': '°C',
            'description': 'Base supply temperature (low)', 'category': 'synthetic'
        },
        'supply_temp_max': {
            'value': 70.0, 'min': 30.0, 'max': 130.0, 'unit': '°C',
            'description': 'Base supply temperature (high)', 'category': 'synthetic'
        },
        'return_temp_min': {
            'value': 42.0, 'min': 10.0, 'max': 100.0, 'unit': '°C',
            'description': 'Base return temperature (low)', 'category': 'synthetic'
        },
        'return_temp_max': {
            'value': 46.0, 'min': 10.0, 'max': 100.0, 'unit': '°C',
            'description': 'Base return temperature (high)', 'category': 'synthetic'
        },
        'pump_warning_hours': {
            'value': 10000.0, 'min': 0.0, 'max': 100000.0, 'unit': 'h',
            'description': 'Operating hours after which a pump may report warning', 'category': 'synthetic'
        },
        'pump_warning_chance': {
            'value': 0.4, 'min': 0.0, 'max': 1.0, 'unit': '',
            'description': 'Probability of a warning once past the warning hours', 'category': 'synthetic'
        },
        'pump_critical_hours': {
            'value': 15000.0, 'min': 0.0, 'max': 100000.0, 'unit': 'h',
            'description': 'Operating hours after which a pump may report critical', 'category': 'synthetic'
        },
        'pump_critical_chance': {
            'value': 0.3, 'min': 0.0, 'max': 1.0, 'unit': '',
            'description': 'Probability of a critical status once past the critical hours', 'category': 'synthetic'
        },
    }

    def __init__(self, overrides: Optional[Dict[str, float]] = None):
        self._lock = threading.Lock()
        self._params: Dict[str, float] = {}
        self._reset_to_defaults()
        if overrides:
            self.set_multiple(overrides)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'TelemetryParameters':
        """Build parameters, overriding defaults from ITP_<KEY> variables."""
        environ = os.environ if environ is None else environ
        params = cls()
        for key in cls.DEFAULTS:
            raw = environ.get(ENV_PREFIX + key.upper())
            if raw is None:
                continue
            try:
                params.set(key, float(raw))
            except ValueError:
                logger.warning(f"Ignoring non-numeric value for {ENV_PREFIX}{key.upper()}: {raw!r}")
        return params

    def load_yaml(self, path: str) -> int:
        """
        Apply parameter values from a YAML file.

        The file is a flat mapping of parameter names to numbers, optionally
        nested under a top-level 'parameters' key. Returns the number applied.
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Parameter file {path} must contain a mapping")
        data = data.get('parameters', data)
        count = self.import_params(data)
        logger.info(f"Loaded {count} parameters from {path}")
        return count

    def _reset_to_defaults(self):
        self._params = {key: meta['value'] for key, meta in self.DEFAULTS.items()}

    def get(self, key: str) -> float:
        """Current value of `key`; unknown keys read as 0.0."""
        if key in self._params:
            return self._params[key]
        meta = self.DEFAULTS.get(key)
        return meta['value'] if meta else 0.0

    def set(self, key: str, value: float) -> bool:
        """
        Assign a value, clamped to the declared range. Returns False for
        unknown keys; raises ValueError if the value is not numeric.
        """
        meta = self.DEFAULTS.get(key)
        if meta is None:
            return False
        clamped = min(max(float(value), meta['min']), meta['max'])
        with self._lock:
            self._params[key] = clamped
        logger.info(f"Telemetry parameter '{key}' set to {clamped}")
        return True

    def get_all(self) -> Dict[str, Dict]:
        """Every parameter with its current value, default and metadata."""
        described = {}
        for key, meta in self.DEFAULTS.items():
            entry = dict(meta)
            entry['default'] = entry.pop('value')
            entry['value'] = self.get(key)
            described[key] = entry
        return described

    def get_by_category(self) -> Dict[str, Dict]:
        grouped: Dict[str, Dict] = {}
        for key, entry in self.get_all().items():
            grouped.setdefault(entry.pop('category'), {})[key] = entry
        return grouped

    def set_multiple(self, params: Dict[str, float]) -> Dict[str, bool]:
        return {key: self.set(key, value) for key, value in params.items()}

    def export(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._params)

    def import_params(self, params: Dict[str, float]) -> int:
        """Apply saved values; returns how many keys were recognised."""
        return sum(1 for applied in self.set_multiple(params).values() if applied)

    def reset(self, key: str = None):
        """Restore one parameter, or all of them, to the defaults."""
        with self._lock:
            if key is None:
                self._reset_to_defaults()
            elif key in self.DEFAULTS:
                self._params[key] = self.DEFAULTS[key]['value']
