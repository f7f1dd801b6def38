"""
Synthetic value model for simulated meters.

Plausible flow, temperature and pump values for a given instant. Sample
randomness goes through one injectable random.Random so a seeded model
reproduces the same sequence; pump fleets are seeded from the building id.
"""
import random
from datetime import datetime
from typing import List, Optional, Tuple

from .parameters import TelemetryParameters

WINTER_MONTHS = (12, 1, 2)
SUMMER_MONTHS = (6, 7, 8)


def hour_factor(hour: int) -> float:
    """Diurnal consumption multiplier: morning and evening peaks, quiet nights."""
    if 7 <= hour <= 10:
        return 1.3
    if 18 <= hour <= 22:
        return 1.4
    if hour >= 23 or hour <= 6:
        return 0.7
    return 1.1


def seasonal_adjustment(month: int) -> float:
    """Supply temperature shift in °C (the return side moves by half)."""
    if month in WINTER_MONTHS:
        return 5.0
    if month in SUMMER_MONTHS:
        return -3.0
    return 0.0


class SyntheticValueModel:
    """Produces sensor values; knows nothing about storage or scheduling."""

    def __init__(self, params: Optional[TelemetryParameters] = None,
                 rng: Optional[random.Random] = None, seed: Optional[str] = None):
        self._params = params or TelemetryParameters()
        if rng is None:
            rng = random.Random(seed) if seed else random.Random()
        self._rng = rng

    def water_sample(self, at: datetime) -> Tuple[float, float, float]:
        """
        Return (hot channel 1, hot channel 2, cold) in m³/h.
        Cold is built on top of the hot total, so it never falls below it.
        """
        p = self._params
        factor = hour_factor(at.hour)
        hot1 = self._rng.uniform(p.get('hot_ch1_min'), p.get('hot_ch1_max')) * factor
        hot2 = self._rng.uniform(p.get('hot_ch2_min'), p.get('hot_ch2_max')) * factor
        margin = self._rng.uniform(p.get('cold_margin_min'), p.get('cold_margin_max')) * factor
        hot1 = round(hot1, 2)
        hot2 = round(hot2, 2)
        cold = round(hot1 + hot2 + margin, 2)
        return hot1, hot2, cold

    def temperature_sample(self, at: datetime) -> Tuple[float, float]:
        """Return (supply, return) in °C for the season of `at`."""
        p = self._params
        shift = seasonal_adjustment(at.month)
        supply = self._rng.uniform(p.get('supply_temp_min'), p.get('supply_temp_max')) + shift
        ret = self._rng.uniform(p.get('return_temp_min'), p.get('return_temp_max')) + shift / 2
        return round(supply, 1), round(ret, 1)

    @staticmethod
    def pump_fleet(building_id: str) -> List[Tuple[str, float]]:
        """
        Pump labels and base operating hours of a building. Drawn from a
        source seeded with the building id, so every writer of the same
        building sees the same 2-3 pumps with the same base hours.
        """
        rng = random.Random(building_id)
        size = rng.randint(2, 3)
        return [(f"Pump-{i}", float(rng.randint(5000, 8000))) for i in range(1, size + 1)]

    def pump_sample(self, base_hours: float,
                    age_days: float) -> Tuple[str, float, float, float, float]:
        """
        Return (status, operating hours, pressure in, pressure out, vibration).

        Status escalates only past the hour thresholds; the warning and
        critical draws are independent and critical wins.
        """
        p = self._params
        hours = base_hours + max(0.0, age_days)
        status = "normal"
        if hours > p.get('pump_warning_hours') and self._rng.random() < p.get('pump_warning_chance'):
            status = "warning"
        if hours > p.get('pump_critical_hours') and self._rng.random() < p.get('pump_critical_chance'):
            status = "critical"

        pressure_in = round(self._rng.uniform(2.0, 4.0), 2)
        rise = round(self._rng.uniform(1.0, 3.0), 2)
        pressure_out = round(pressure_in + rise, 2)
        vibration = round(self._rng.uniform(0.0, 7.0), 2)
        return status, round(hours, 1), pressure_in, pressure_out, vibration
