"""Institution and sector registries."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from app.schemas import Institution, InstitutionIn, Sector, SectorIn
from datastore.tables import Database

logger = logging.getLogger(__name__)


class RegistryConflictError(Exception):
    """Raised when deleting an entry that other records still reference."""


class RegistryService:
    def __init__(self, database: Database) -> None:
        self.database = database

    def list_institutions(self) -> list[Institution]:
        return sorted(self.database.institutions.scan(), key=lambda item: item.name.lower())

    def get_institution(self, institution_id: str) -> Institution:
        institution = self.database.institutions.get_item(institution_id)
        if institution is None:
            raise KeyError(f"Institution {institution_id!r} not found.")
        return institution

    def find_institution(self, name: str) -> Optional[Institution]:
        matches = self.database.institutions.scan(lambda item: item.name == name)
        return matches[0] if matches else None

    def create_institution(self, payload: InstitutionIn) -> Institution:
        institution = Institution(id=str(uuid4()), name=payload.name.strip())
        self.database.institutions.put_item(institution)
        logger.info("Institution created", extra={"institution_id": institution.id})
        return institution

    def rename_institution(self, institution_id: str, payload: InstitutionIn) -> Institution:
        institution = self.get_institution(institution_id)
        updated = institution.model_copy(update={"name": payload.name.strip()})
        self.database.institutions.put_item(updated)
        return updated

    def delete_institution(self, institution_id: str) -> None:
        self.get_institution(institution_id)
        if self.database.sectors.scan(lambda item: item.institution_id == institution_id):
            raise RegistryConflictError("Institution still has sectors.")
        if self.database.measurements.scan(lambda item: item.institution_id == institution_id):
            raise RegistryConflictError("Institution still has measurements.")
        self.database.institutions.delete_item(institution_id)
        logger.info("Institution deleted", extra={"institution_id": institution_id})

    def list_sectors(self, institution_id: Optional[str] = None) -> list[Sector]:
        items = self.database.sectors.scan(
            lambda item: institution_id is None or item.institution_id == institution_id
        )
        return sorted(items, key=lambda item: item.name.lower())

    def get_sector(self, sector_id: str) -> Sector:
        sector = self.database.sectors.get_item(sector_id)
        if sector is None:
            raise KeyError(f"Sector {sector_id!r} not found.")
        return sector

    def find_sector(self, name: str, institution_id: str) -> Optional[Sector]:
        matches = self.database.sectors.scan(
            lambda item: item.name == name and item.institution_id == institution_id
        )
        return matches[0] if matches else None

    def create_sector(self, payload: SectorIn) -> Sector:
        self._require_institution(payload.institution_id)
        sector = Sector(
            id=str(uuid4()),
            name=payload.name.strip(),
            institution_id=payload.institution_id,
        )
        self.database.sectors.put_item(sector)
        logger.info(
            "Sector created",
            extra={"sector_id": sector.id, "institution_id": sector.institution_id},
        )
        return sector

    def update_sector(self, sector_id: str, payload: SectorIn) -> Sector:
        sector = self.get_sector(sector_id)
        self._require_institution(payload.institution_id)
        if payload.institution_id != sector.institution_id and self.database.measurements.scan(
            lambda item: item.sector_id == sector_id
        ):
            raise RegistryConflictError("Sector still has measurements in its current institution.")
        updated = sector.model_copy(
            update={"name": payload.name.strip(), "institution_id": payload.institution_id}
        )
        self.database.sectors.put_item(updated)
        return updated

    def delete_sector(self, sector_id: str) -> None:
        self.get_sector(sector_id)
        if self.database.measurements.scan(lambda item: item.sector_id == sector_id):
            raise RegistryConflictError("Sector still has measurements.")
        self.database.sectors.delete_item(sector_id)
        logger.info("Sector deleted", extra={"sector_id": sector_id})

    def _require_institution(self, institution_id: str) -> None:
        if self.database.institutions.get_item(institution_id) is None:
            raise ValueError(f"Unknown institution {institution_id!r}.")
