"""Wiring of the default service graph."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from datastore.tables import Database, build_default_database
from services.aggregator import Aggregator
from services.auth import AuthService, TokenSigner
from services.contact import ContactService
from services.measurements import MeasurementService
from services.registry import RegistryService
from services.reports import ReportNames
from settings import Settings, get_settings
from storage.uploads import AttachmentStore, build_default_store


@dataclass
class ServiceContainer:
    database: Database
    store: AttachmentStore
    measurements: MeasurementService
    registry: RegistryService
    auth: AuthService
    contact: ContactService

    def report_names(self) -> ReportNames:
        return ReportNames(
            institutions={item.id: item.name for item in self.database.institutions.scan()},
            sectors={item.id: item.name for item in self.database.sectors.scan()},
            users={item.id: item.name for item in self.database.users.scan()},
        )


def build_container(database: Database, store: AttachmentStore, settings: Settings) -> ServiceContainer:
    return ServiceContainer(
        database=database,
        store=store,
        measurements=MeasurementService(
            database=database,
            store=store,
            aggregator=Aggregator(),
            max_upload_bytes=settings.max_upload_bytes,
        ),
        registry=RegistryService(database),
        auth=AuthService(
            database,
            TokenSigner(settings.auth_secret, settings.token_ttl_seconds),
        ),
        contact=ContactService(database),
    )


@lru_cache
def build_default_container() -> ServiceContainer:
    """Factory that wires the services with the configured stores."""
    return build_container(build_default_database(), build_default_store(), get_settings())
