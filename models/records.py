"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

PARAMETER_FIELDS: tuple[str, ...] = (
    "humidity",
    "air_speed",
    "temperature",
    "fungi_internal",
    "fungi_external",
    "ie_ratio",
    "aerodispersoids",
    "bacteria_internal",
    "bacteria_external",
    "co2_internal",
    "co2_external",
    "pm10",
    "pm25",
)

PARAMETER_LABELS: dict[str, str] = {
    "temperature": "Temperature (°C)",
    "humidity": "Humidity (%)",
    "air_speed": "Air speed (m/s)",
    "fungi_internal": "Internal fungi (CFU/m³)",
    "fungi_external": "External fungi (CFU/m³)",
    "ie_ratio": "I/E ratio",
    "aerodispersoids": "Aerodispersoids (µg/m³)",
    "bacteria_internal": "Internal bacteria (CFU/m³)",
    "bacteria_external": "External bacteria (CFU/m³)",
    "co2_internal": "Internal CO2 (ppm)",
    "co2_external": "External CO2 (ppm)",
    "pm10": "PM10 (µg/m³)",
    "pm25": "PM2.5 (µg/m³)",
}

# Keys used by the legacy JSON export.
_CAMEL_CASE_KEYS = {
    "airSpeed": "air_speed",
    "fungiInternal": "fungi_internal",
    "fungiExternal": "fungi_external",
    "ieRatio": "ie_ratio",
    "bacteriaInternal": "bacteria_internal",
    "bacteriaExternal": "bacteria_external",
    "co2Internal": "co2_internal",
    "co2External": "co2_external",
}


@dataclass(slots=True)
class EnvironmentalReading:
    """The thirteen environmental parameters of one sector measurement."""

    humidity: float
    air_speed: float
    temperature: float
    fungi_internal: float
    fungi_external: float
    ie_ratio: float
    aerodispersoids: float
    bacteria_internal: float
    bacteria_external: float
    co2_internal: float
    co2_external: float
    pm10: float
    pm25: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EnvironmentalReading":
        """Build a reading from snake_case or legacy camelCase keys.

        Raises ``ValueError`` naming the first parameter that is absent or
        not numeric.
        """
        normalized = {_CAMEL_CASE_KEYS.get(key, key): value for key, value in data.items()}
        values: dict[str, float] = {}
        for name in PARAMETER_FIELDS:
            if name not in normalized or normalized[name] is None:
                raise ValueError(f"missing parameter: {name}")
            try:
                values[name] = float(normalized[name])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid numeric value for {name}") from exc
        return cls(**values)

    def as_dict(self) -> dict[str, float]:
        return {item.name: getattr(self, item.name) for item in fields(self)}
