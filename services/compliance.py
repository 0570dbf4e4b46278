"""Regulatory compliance evaluation for indoor air-quality measurements.

A measurement is compliant only when every monitored parameter sits inside
the bounds of the threshold table. Bounds are inclusive. The evaluation is
a pure function of the measurement: it performs no I/O and keeps no state,
so it is safe to call from any number of request handlers at once.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, List

from app.schemas import ComplianceStatus


@dataclass(frozen=True)
class ThresholdTable:
    """Indoor air-quality limits (ANVISA RE 09 / ABNT NBR 16401 ranges)."""

    aerodispersoids: float = 80
    fungi_internal: float = 750
    co2: float = 1000
    co2_differential: float = 700
    temperature_min: float = 20
    temperature_max: float = 26
    humidity_min: float = 40
    humidity_max: float = 60
    air_speed: float = 0.25
    ie_max: float = 1.5
    pm10: float = 50
    pm25: float = 25
    bacteria_internal: float = 500


LIMITS = ThresholdTable()


def _parameter_checks(measurement: Any, limits: ThresholdTable) -> List[tuple[str, bool]]:
    m = measurement
    return [
        ("aerodispersoids", m.aerodispersoids <= limits.aerodispersoids),
        ("fungi_internal", m.fungi_internal <= limits.fungi_internal),
        (
            "co2_internal",
            (m.co2_internal - m.co2_external) <= limits.co2_differential
            and m.co2_internal <= limits.co2,
        ),
        (
            "temperature",
            limits.temperature_min <= m.temperature <= limits.temperature_max,
        ),
        ("humidity", limits.humidity_min <= m.humidity <= limits.humidity_max),
        ("air_speed", m.air_speed <= limits.air_speed),
        ("ie_ratio", m.ie_ratio <= limits.ie_max),
        ("pm10", m.pm10 <= limits.pm10),
        ("pm25", m.pm25 <= limits.pm25),
        ("bacteria_internal", m.bacteria_internal <= limits.bacteria_internal),
    ]


def compute_status(measurement: Any) -> ComplianceStatus:
    """Classify a measurement against ``LIMITS``.

    ``measurement`` is any object exposing the thirteen parameters as
    attributes. Values are not validated: a NaN fails its comparison and
    makes the measurement non-compliant, and a missing attribute raises
    ``AttributeError`` to the caller.
    """
    ok = all(passed for _, passed in _parameter_checks(measurement, LIMITS))
    return ComplianceStatus.compliant if ok else ComplianceStatus.non_compliant


def failing_parameters(measurement: Any) -> List[str]:
    """Return the parameters that fail their check, in evaluation order.

    A failed CO2 check is reported as ``co2_internal``.
    """
    return [name for name, passed in _parameter_checks(measurement, LIMITS) if not passed]


def limits_as_dict() -> dict[str, float]:
    return asdict(LIMITS)
