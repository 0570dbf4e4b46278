"""Measurement records: verdict persistence, attachments and dashboards."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path, PureWindowsPath
from typing import BinaryIO, Iterable, List, Optional, Protocol
from uuid import uuid4

from app.schemas import (
    DashboardKpis,
    DashboardResponse,
    FileAttachment,
    Measurement,
    MeasurementFilters,
    MeasurementIn,
    MeasurementOut,
    MeasurementPage,
    SeriesPoint,
)
from datastore.tables import Database
from services.aggregator import Aggregator
from services.compliance import compute_status, failing_parameters
from storage.uploads import AttachmentStore

logger = logging.getLogger(__name__)

MAX_FILES_PER_UPLOAD = 5
DEFAULT_REPORT_LIMIT = 500
MAX_REPORT_LIMIT = 2000


class AttachmentTooLargeError(ValueError):
    pass


class Upload(Protocol):
    """The subset of ``fastapi.UploadFile`` used for attachments."""

    filename: Optional[str]
    content_type: Optional[str]
    file: BinaryIO


def normalize_timestamp(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MeasurementService:
    """Stores measurements together with their compliance verdict."""

    def __init__(
        self,
        database: Database,
        store: AttachmentStore,
        aggregator: Aggregator,
        max_upload_bytes: int,
    ) -> None:
        self.database = database
        self.store = store
        self.aggregator = aggregator
        self.max_upload_bytes = max_upload_bytes

    def create(self, payload: MeasurementIn, user_id: str) -> Measurement:
        self._check_location(payload.institution_id, payload.sector_id)
        measurement = Measurement(
            **payload.model_dump(exclude={"date"}),
            date=normalize_timestamp(payload.date),
            id=str(uuid4()),
            status=compute_status(payload),
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
        )
        self.database.measurements.put_item(measurement)
        self._log_verdict("Measurement recorded", measurement)
        return measurement

    def update(self, measurement_id: str, payload: MeasurementIn) -> Measurement:
        current = self._require(measurement_id)
        self._check_location(payload.institution_id, payload.sector_id)
        changes = payload.model_dump()
        changes["date"] = normalize_timestamp(payload.date)
        changes["status"] = compute_status(payload)
        updated = current.model_copy(update=changes)
        self.database.measurements.put_item(updated)
        self._log_verdict("Measurement updated", updated)
        return updated

    def delete(self, measurement_id: str) -> None:
        self._require(measurement_id)
        removed = self.database.files.delete_where(
            lambda item: item.measurement_id == measurement_id
        )
        for attachment in removed:
            self.store.delete_object(Path(attachment.path).name)
        self.database.measurements.delete_item(measurement_id)
        logger.info(
            "Measurement deleted",
            extra={"measurement_id": measurement_id, "file_count": len(removed)},
        )

    def get(self, measurement_id: str) -> MeasurementOut:
        return self._with_files(self._require(measurement_id))

    def list(
        self,
        filters: Optional[MeasurementFilters] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> MeasurementPage:
        page = max(1, page)
        page_size = max(1, page_size)
        items = sorted(self._filtered(filters), key=lambda item: item.date, reverse=True)
        start = (page - 1) * page_size
        window = items[start : start + page_size]
        return MeasurementPage(
            items=[self._with_files(item) for item in window],
            total=len(items),
            page=page,
            page_size=page_size,
        )

    def dashboard(self, filters: Optional[MeasurementFilters] = None) -> DashboardResponse:
        summary = self.aggregator.aggregate(self._filtered(filters))
        return DashboardResponse(
            kpis=DashboardKpis(
                temperature_avg=summary.temperature_avg,
                humidity_avg=summary.humidity_avg,
                compliant_count=summary.compliant_count,
                non_compliant_count=summary.non_compliant_count,
            ),
            series=[
                SeriesPoint(date=day, temperature=temperature, humidity=humidity)
                for day, temperature, humidity in summary.series
            ],
        )

    def report_items(
        self,
        filters: Optional[MeasurementFilters] = None,
        limit: Optional[int] = None,
    ) -> List[Measurement]:
        take = min(limit or DEFAULT_REPORT_LIMIT, MAX_REPORT_LIMIT)
        items = sorted(self._filtered(filters), key=lambda item: item.date, reverse=True)
        return items[: max(0, take)]

    def attach_files(
        self,
        measurement_id: str,
        uploads: Iterable[Upload],
        category: Optional[str] = None,
    ) -> List[FileAttachment]:
        self._require(measurement_id)
        uploads = list(uploads)
        if not uploads:
            raise ValueError("No files uploaded.")
        if len(uploads) > MAX_FILES_PER_UPLOAD:
            raise ValueError(f"At most {MAX_FILES_PER_UPLOAD} files per upload.")

        payloads: list[tuple[Upload, bytes]] = []
        for upload in uploads:
            upload.file.seek(0)
            contents = upload.file.read()
            if isinstance(contents, str):
                contents = contents.encode("utf-8")
            if not contents:
                raise ValueError(f"Uploaded file {upload.filename!r} is empty.")
            if len(contents) > self.max_upload_bytes:
                raise AttachmentTooLargeError(
                    f"File {upload.filename!r} exceeds {self.max_upload_bytes} bytes."
                )
            payloads.append((upload, contents))

        created: List[FileAttachment] = []
        for upload, contents in payloads:
            name = PureWindowsPath(upload.filename or "upload").name or "upload"
            key = self.store.put_new_object(name, contents)
            attachment = FileAttachment(
                id=str(uuid4()),
                measurement_id=measurement_id,
                name=name,
                path=f"/uploads/{key}",
                mime=upload.content_type,
                size=len(contents),
                category=category or None,
                uploaded_at=datetime.now(timezone.utc),
            )
            self.database.files.put_item(attachment)
            created.append(attachment)

        logger.info(
            "Attached files",
            extra={"measurement_id": measurement_id, "file_count": len(created)},
        )
        return created

    def _filtered(self, filters: Optional[MeasurementFilters]) -> List[Measurement]:
        if filters is None:
            return self.database.measurements.scan()
        date_from = normalize_timestamp(filters.date_from) if filters.date_from else None
        date_to = normalize_timestamp(filters.date_to) if filters.date_to else None

        def matches(item: Measurement) -> bool:
            if filters.institution_id and item.institution_id != filters.institution_id:
                return False
            if filters.sector_id and item.sector_id != filters.sector_id:
                return False
            if date_from and item.date < date_from:
                return False
            if date_to and item.date > date_to:
                return False
            return True

        return self.database.measurements.scan(matches)

    def _with_files(self, measurement: Measurement) -> MeasurementOut:
        files = self.database.files.scan(lambda item: item.measurement_id == measurement.id)
        files.sort(key=lambda item: item.uploaded_at)
        return MeasurementOut(**measurement.model_dump(), files=files)

    def _require(self, measurement_id: str) -> Measurement:
        measurement = self.database.measurements.get_item(measurement_id)
        if measurement is None:
            raise KeyError(f"Measurement {measurement_id!r} not found.")
        return measurement

    def _check_location(self, institution_id: str, sector_id: str) -> None:
        if self.database.institutions.get_item(institution_id) is None:
            raise ValueError(f"Unknown institution {institution_id!r}.")
        sector = self.database.sectors.get_item(sector_id)
        if sector is None:
            raise ValueError(f"Unknown sector {sector_id!r}.")
        if sector.institution_id != institution_id:
            raise ValueError("Sector does not belong to the institution.")

    @staticmethod
    def _log_verdict(message: str, measurement: Measurement) -> None:
        logger.info(
            message,
            extra={
                "measurement_id": measurement.id,
                "sector_id": measurement.sector_id,
                "status": measurement.status.value,
                "failing": failing_parameters(measurement),
            },
        )
