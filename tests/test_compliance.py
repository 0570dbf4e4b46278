"""Unit tests for the compliance rule."""

from __future__ import annotations

import dataclasses
import math

import pytest

from app.schemas import ComplianceStatus
from models.records import EnvironmentalReading
from services.compliance import LIMITS, compute_status, failing_parameters, limits_as_dict

from conftest import COMPLIANT_READING


def _reading(**overrides: float) -> EnvironmentalReading:
    values = dict(COMPLIANT_READING)
    values.update(overrides)
    return EnvironmentalReading(**values)


def test_reference_reading_is_compliant() -> None:
    assert compute_status(_reading()) is ComplianceStatus.compliant
    assert failing_parameters(_reading()) == []


def test_humidity_above_range_is_non_compliant() -> None:
    reading = _reading(humidity=70)

    assert compute_status(reading) is ComplianceStatus.non_compliant
    assert failing_parameters(reading) == ["humidity"]


@pytest.mark.parametrize(
    "field, value",
    [
        ("temperature", 20),
        ("temperature", 26),
        ("humidity", 40),
        ("humidity", 60),
        ("air_speed", 0.25),
        ("fungi_internal", 750),
        ("aerodispersoids", 80),
        ("ie_ratio", 1.5),
        ("pm10", 50),
        ("pm25", 25),
        ("bacteria_internal", 500),
    ],
)
def test_boundaries_are_inclusive(field: str, value: float) -> None:
    assert compute_status(_reading(**{field: value})) is ComplianceStatus.compliant


@pytest.mark.parametrize(
    "overrides, failing",
    [
        ({"temperature": 19.999}, "temperature"),
        ({"temperature": 26.001}, "temperature"),
        ({"humidity": 39.999}, "humidity"),
        ({"humidity": 60.001}, "humidity"),
        ({"air_speed": 0.2501}, "air_speed"),
        ({"fungi_internal": 750.001}, "fungi_internal"),
        ({"aerodispersoids": 80.001}, "aerodispersoids"),
        ({"ie_ratio": 1.501}, "ie_ratio"),
        ({"pm10": 50.001}, "pm10"),
        ({"pm25": 25.001}, "pm25"),
        ({"bacteria_internal": 500.001}, "bacteria_internal"),
        ({"co2_internal": 1000.001, "co2_external": 900}, "co2_internal"),
    ],
)
def test_single_parameter_just_outside_flips_verdict(overrides: dict, failing: str) -> None:
    reading = _reading(**overrides)

    assert compute_status(reading) is ComplianceStatus.non_compliant
    assert failing_parameters(reading) == [failing]


def test_co2_at_both_limits_is_compliant() -> None:
    assert compute_status(_reading(co2_internal=1000, co2_external=300)) is ComplianceStatus.compliant


def test_co2_differential_fails_even_when_internal_within_limit() -> None:
    reading = _reading(co2_internal=1000, co2_external=250)

    assert compute_status(reading) is ComplianceStatus.non_compliant
    assert failing_parameters(reading) == ["co2_internal"]


def test_unmonitored_parameters_do_not_affect_verdict() -> None:
    reading = _reading(fungi_external=1e6, bacteria_external=1e6)

    assert compute_status(reading) is ComplianceStatus.compliant


def test_failing_parameters_follow_evaluation_order() -> None:
    reading = _reading(pm25=40, aerodispersoids=90, humidity=10)

    assert failing_parameters(reading) == ["aerodispersoids", "humidity", "pm25"]


def test_nan_value_is_non_compliant() -> None:
    reading = _reading(temperature=math.nan)

    assert compute_status(reading) is ComplianceStatus.non_compliant
    assert failing_parameters(reading) == ["temperature"]


def test_missing_attribute_propagates() -> None:
    class Partial:
        humidity = 50

    with pytest.raises(AttributeError):
        compute_status(Partial())


def test_evaluation_is_idempotent() -> None:
    reading = _reading(pm10=55)

    assert compute_status(reading) == compute_status(reading)
    assert reading == _reading(pm10=55)


def test_threshold_table_is_immutable() -> None:
    with pytest.raises(dataclasses.FrozenInstanceError):
        LIMITS.pm10 = 100  # type: ignore[misc]


def test_limits_export_is_a_copy() -> None:
    exported = limits_as_dict()
    exported["pm10"] = 1

    assert limits_as_dict()["pm10"] == 50
    assert exported["co2_differential"] == 700
    assert exported["temperature_min"] == 20
