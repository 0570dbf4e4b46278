"""Demo data for local development."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.schemas import InstitutionIn, MeasurementIn, SectorIn
from services.container import ServiceContainer

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = "admin@airwatch.local"
DEMO_ADMIN_PASSWORD = "admin123"

DEMO_SECTORS = {
    "Alpha Hospital": ("Adult ICU", "Laboratory"),
    "Beta University": ("Library", "Classroom"),
}

# Ranges straddle the regulatory limits so both verdicts show up.
_READING_RANGES = {
    "humidity": (38, 72),
    "air_speed": (0.1, 0.28),
    "temperature": (22, 29),
    "fungi_internal": (300, 900),
    "fungi_external": (300, 1200),
    "ie_ratio": (0.9, 1.8),
    "aerodispersoids": (40, 100),
    "bacteria_internal": (200, 600),
    "bacteria_external": (200, 1200),
    "co2_internal": (500, 1200),
    "co2_external": (380, 450),
    "pm10": (30, 65),
    "pm25": (15, 35),
}


@dataclass
class SeedResult:
    admin_id: str
    institutions: int
    sectors: int
    measurements: int


def random_reading(rng: random.Random) -> dict[str, float]:
    return {name: round(rng.uniform(low, high), 2) for name, (low, high) in _READING_RANGES.items()}


def seed_demo_data(
    container: ServiceContainer,
    days: int = 60,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> SeedResult:
    """Create the demo admin, registry entries and ``days`` of readings per sector.

    Registry entries and the admin are reused when they already exist;
    readings are always added.
    """
    rng = rng or random.Random()
    today = now or datetime.now(timezone.utc)
    admin = container.auth.ensure_admin(DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD)

    sectors = []
    for institution_name, sector_names in DEMO_SECTORS.items():
        institution = container.registry.find_institution(institution_name)
        if institution is None:
            institution = container.registry.create_institution(InstitutionIn(name=institution_name))
        for sector_name in sector_names:
            sector = container.registry.find_sector(sector_name, institution.id)
            if sector is None:
                sector = container.registry.create_sector(
                    SectorIn(name=sector_name, institution_id=institution.id)
                )
            sectors.append(sector)

    created = 0
    for sector in sectors:
        for offset in range(days):
            payload = MeasurementIn(
                date=today - timedelta(days=offset),
                institution_id=sector.institution_id,
                sector_id=sector.id,
                **random_reading(rng),
            )
            container.measurements.create(payload, user_id=admin.id)
            created += 1

    logger.info("Seeded demo data", extra={"item_count": created, "user_id": admin.id})
    return SeedResult(
        admin_id=admin.id,
        institutions=len(DEMO_SECTORS),
        sectors=len(sectors),
        measurements=created,
    )
