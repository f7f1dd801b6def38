"""
Rule-based health classification.

Every function here is pure: aggregates in, statuses out. Nothing reads the
store, the clock or a random source, so the same inputs always produce the
same report.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .parameters import TelemetryParameters
from .readings import PumpSnapshot
from .types import BalanceStatus, TemperatureStatus, PumpStatus

_DEFAULT_PARAMS = TelemetryParameters()


def _params(params: Optional[TelemetryParameters]) -> TelemetryParameters:
    return params if params is not None else _DEFAULT_PARAMS


def hot_to_cold_ratio(cold: float, hot: float) -> float:
    """Hot flow as a percentage of cold flow (0 when there is no cold flow)."""
    if cold == 0:
        return 0.0
    return hot / cold * 100.0


def is_sufficient(cold_count: int, hot_count: int,
                  params: Optional[TelemetryParameters] = None) -> bool:
    minimum = _params(params).get('min_record_count')
    return cold_count >= minimum and hot_count >= minimum


def classify_water_balance(cold: float, hot: float, sufficient: bool = True,
                           params: Optional[TelemetryParameters] = None) -> BalanceStatus:
    """
    Classify the hot/cold water balance. cold and hot may be totals or
    hourly averages, only their ratio matters. First matching rule wins.
    """
    p = _params(params)
    if not sufficient:
        return BalanceStatus.UNKNOWN
    if cold <= 0 or hot < 0:
        return BalanceStatus.ERROR
    # The hot branch is fed from the cold branch
    if hot > cold:
        return BalanceStatus.LEAK

    ratio = hot_to_cold_ratio(cold, hot)
    if p.get('ratio_normal_min') <= ratio <= p.get('ratio_normal_max'):
        return BalanceStatus.NORMAL
    if p.get('ratio_warning_min') <= ratio < p.get('ratio_normal_min'):
        return BalanceStatus.WARNING
    if p.get('ratio_normal_max') < ratio <= p.get('ratio_warning_max'):
        return BalanceStatus.WARNING
    if ratio < p.get('ratio_warning_min'):
        return BalanceStatus.ERROR
    return BalanceStatus.LEAK


def classify_temperature(avg_delta: float, count: int = 1,
                         params: Optional[TelemetryParameters] = None) -> TemperatureStatus:
    """Classify the average supply/return difference of a window."""
    p = _params(params)
    if count <= 0:
        return TemperatureStatus.UNKNOWN
    if p.get('delta_normal_min') <= avg_delta <= p.get('delta_normal_max'):
        return TemperatureStatus.NORMAL
    if p.get('delta_warning_min') <= avg_delta < p.get('delta_normal_min'):
        return TemperatureStatus.WARNING
    if p.get('delta_normal_max') < avg_delta <= p.get('delta_warning_max'):
        return TemperatureStatus.WARNING
    return TemperatureStatus.CRITICAL


@dataclass(frozen=True)
class PumpAssessment:
    """Condition of the pump fleet from the latest reading per pump."""
    status: PumpStatus
    max_operating_hours: float = 0.0
    normal_count: int = 0
    warning_count: int = 0
    critical_count: int = 0
    pressure_health_ratio: float = 0.0
    vibration_health_ratio: float = 0.0
    health_status: PumpStatus = PumpStatus.UNKNOWN

    @property
    def total(self) -> int:
        return self.normal_count + self.warning_count + self.critical_count


def _health_status(ratio: float, p: TelemetryParameters) -> PumpStatus:
    if ratio >= p.get('pump_health_normal_ratio'):
        return PumpStatus.NORMAL
    if ratio >= p.get('pump_health_warning_ratio'):
        return PumpStatus.WARNING
    return PumpStatus.CRITICAL


_SEVERITY = {PumpStatus.NORMAL: 0, PumpStatus.WARNING: 1, PumpStatus.CRITICAL: 2}

# bar, slack for float error between two rounded pressures
RISE_TOLERANCE = 1e-6


def classify_pumps(snapshots: Sequence[PumpSnapshot],
                   params: Optional[TelemetryParameters] = None) -> PumpAssessment:
    """
    Overall pump status is the worst reported status. Health is judged
    separately from pressure rise and vibration; the worse of the two wins.
    """
    p = _params(params)
    if not snapshots:
        return PumpAssessment(status=PumpStatus.UNKNOWN)

    normal = sum(1 for s in snapshots if s.status == PumpStatus.NORMAL.value)
    warning = sum(1 for s in snapshots if s.status == PumpStatus.WARNING.value)
    critical = sum(1 for s in snapshots if s.status == PumpStatus.CRITICAL.value)

    if critical:
        status = PumpStatus.CRITICAL
    elif warning:
        status = PumpStatus.WARNING
    else:
        status = PumpStatus.NORMAL

    rise_min = p.get('pump_pressure_rise_min') - RISE_TOLERANCE
    rise_max = p.get('pump_pressure_rise_max') + RISE_TOLERANCE
    pressure_ok = sum(1 for s in snapshots if rise_min <= s.pressure_out - s.pressure_in <= rise_max)
    vibration_ok = sum(1 for s in snapshots if s.vibration <= p.get('pump_vibration_max'))

    pressure_ratio = pressure_ok / len(snapshots)
    vibration_ratio = vibration_ok / len(snapshots)
    health = max(_health_status(pressure_ratio, p), _health_status(vibration_ratio, p),
                 key=_SEVERITY.get)

    return PumpAssessment(
        status=status,
        max_operating_hours=max(s.operating_hours for s in snapshots),
        normal_count=normal,
        warning_count=warning,
        critical_count=critical,
        pressure_health_ratio=pressure_ratio,
        vibration_health_ratio=vibration_ratio,
        health_status=health,
    )


def count_anomalies(cold_total: float, hot_total: float,
                    balance: BalanceStatus,
                    temperature: TemperatureStatus,
                    pump: PumpStatus,
                    params: Optional[TelemetryParameters] = None) -> int:
    p = _params(params)
    limit = p.get('anomaly_total_max')
    count = 0
    if not (0 <= cold_total <= limit) or not (0 <= hot_total <= limit):
        count += 1
    if hot_total > cold_total:
        count += 1
    if balance in (BalanceStatus.LEAK, BalanceStatus.ERROR):
        count += 1
    if temperature == TemperatureStatus.CRITICAL:
        count += 1
    if pump == PumpStatus.CRITICAL:
        count += 1
    return count


def apply_integrity_guard(ratio: float, balance: BalanceStatus, anomaly_count: int,
                          params: Optional[TelemetryParameters] = None
                          ) -> Tuple[BalanceStatus, int, Optional[str]]:
    """
    A ratio beyond the integrity limit is not physically sane, so the data
    itself is suspect: the balance drops to warning, anomaly claims are
    withdrawn and a caveat is returned for the top of the recommendations.
    """
    limit = _params(params).get('ratio_integrity_limit')
    if ratio <= limit:
        return balance, anomaly_count, None
    caveat = (f"Hot/cold ratio of {ratio:.1f}% exceeds {limit:.0f}%; "
              f"meter data integrity should be verified before acting on this report")
    return BalanceStatus.WARNING, 0, caveat


def data_quality_notes(cold_count: int, hot_count: int,
                       params: Optional[TelemetryParameters] = None) -> List[str]:
    minimum = int(_params(params).get('min_record_count'))
    notes = []
    if cold_count < minimum:
        notes.append(f"Only {cold_count} cold-water records found, analysis confidence reduced")
    if hot_count < minimum:
        notes.append(f"Only {hot_count} hot-water records found, analysis confidence reduced")
    return notes


def build_recommendations(balance: BalanceStatus,
                          ratio: float,
                          temperature: TemperatureStatus,
                          avg_delta: float,
                          pumps: PumpAssessment,
                          cold_count: int,
                          hot_count: int,
                          estimated: bool = False,
                          params: Optional[TelemetryParameters] = None) -> List[str]:
    """
    Ordered, human-readable advice: data quality first, then each domain.
    An estimated report carries only the data-quality notes; it makes no
    claims about leaks, temperatures or pumps.
    """
    recommendations = data_quality_notes(cold_count, hot_count, params)
    if estimated:
        recommendations.append(
            "Not enough telemetry in this window, consumption figures are estimated from baseline values"
        )
        return recommendations

    if balance == BalanceStatus.LEAK:
        recommendations.append(
            f"Possible leak detected (hot/cold ratio {ratio:.1f}%). Inspect the substation and risers"
        )
    elif balance == BalanceStatus.ERROR:
        recommendations.append(
            f"Large water balance deviation (hot/cold ratio {ratio:.1f}%). Meter diagnostics required"
        )
    elif balance == BalanceStatus.WARNING:
        recommendations.append(
            f"Water balance close to tolerance limits (hot/cold ratio {ratio:.1f}%). Monitor consumption"
        )

    if temperature == TemperatureStatus.WARNING:
        recommendations.append(
            f"Delta-T of {avg_delta:.1f}°C is approaching the critical band. Check heat exchanger settings"
        )
    elif temperature == TemperatureStatus.CRITICAL:
        recommendations.append(
            f"Critical delta-T of {avg_delta:.1f}°C. Urgent heat exchanger inspection required"
        )

    hours = int(pumps.max_operating_hours)
    if pumps.status == PumpStatus.WARNING:
        recommendations.append(
            f"Pump operating hours reached {hours} h ({pumps.warning_count} in warning). Schedule maintenance soon"
        )
    elif pumps.status == PumpStatus.CRITICAL:
        recommendations.append(
            f"Pump operating hours reached {hours} h ({pumps.critical_count} critical). "
            f"Immediate maintenance required"
        )

    if pumps.health_status in (PumpStatus.WARNING, PumpStatus.CRITICAL):
        recommendations.append(
            f"Pump pressure/vibration out of range (pressure OK {pumps.pressure_health_ratio:.0%}, "
            f"vibration OK {pumps.vibration_health_ratio:.0%}). Check pump alignment and valves"
        )

    if not recommendations:
        recommendations.append("System operating normally")
    return recommendations
