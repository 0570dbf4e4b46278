from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from app.schemas import InstitutionIn, MeasurementIn, Sector, SectorIn
from datastore.tables import open_database
from services.container import ServiceContainer, build_container
from settings import get_settings
from storage.uploads import AttachmentStore

COMPLIANT_READING: Dict[str, float] = {
    "humidity": 50,
    "air_speed": 0.2,
    "temperature": 23,
    "fungi_internal": 500,
    "fungi_external": 400,
    "ie_ratio": 1.2,
    "aerodispersoids": 60,
    "bacteria_internal": 300,
    "bacteria_external": 300,
    "co2_internal": 800,
    "co2_external": 400,
    "pm10": 40,
    "pm25": 20,
}


def measurement_payload(sector: Sector, when: datetime | None = None, **overrides: Any) -> MeasurementIn:
    values: Dict[str, Any] = dict(COMPLIANT_READING)
    values.update(overrides)
    return MeasurementIn(
        date=when or datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        institution_id=sector.institution_id,
        sector_id=sector.id,
        **values,
    )


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch) -> None:
    monkeypatch.setattr("services.auth._PBKDF2_ITERATIONS", 1_000)


@pytest.fixture()
def container(tmp_path) -> ServiceContainer:
    return build_container(
        open_database(tmp_path / "data"),
        AttachmentStore(root_path=tmp_path / "uploads"),
        get_settings(),
    )


@pytest.fixture()
def sector(container: ServiceContainer) -> Sector:
    institution = container.registry.create_institution(InstitutionIn(name="Alpha Hospital"))
    return container.registry.create_sector(SectorIn(name="Adult ICU", institution_id=institution.id))
