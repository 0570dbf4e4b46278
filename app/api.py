"""HTTP route definitions for measurements and compliance."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from app.schemas import (
    AttachmentList,
    CreatedResponse,
    DashboardResponse,
    MeasurementChecks,
    MeasurementFilters,
    MeasurementIn,
    MeasurementOut,
    MeasurementPage,
    OkResponse,
    ReportFormat,
    UserRole,
)
from app.security import get_container, require_role, require_user
from services.auth import TokenClaims
from services.compliance import failing_parameters, limits_as_dict
from services.container import ServiceContainer
from services.measurements import AttachmentTooLargeError
from services.reports import (
    PDF_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    build_measurement_pdf,
    build_measurements_pdf,
    build_measurements_workbook,
    measurement_report_filename,
)
from storage.uploads import guess_media_type

router = APIRouter(prefix="/api")
uploads_router = APIRouter(include_in_schema=False)

_writer = require_role(UserRole.admin, UserRole.analyst)


def measurement_filters(
    institution_id: Optional[str] = Query(None),
    sector_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
) -> MeasurementFilters:
    return MeasurementFilters(
        institution_id=institution_id,
        sector_id=sector_id,
        date_from=date_from,
        date_to=date_to,
    )


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0])


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health", summary="Health check endpoint.", status_code=status.HTTP_200_OK)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/limits", summary="Regulatory threshold table used for compliance.")
async def get_limits() -> dict[str, float]:
    return limits_as_dict()


@router.get("/measurements", response_model=MeasurementPage, summary="List measurements.")
def list_measurements(
    filters: MeasurementFilters = Depends(measurement_filters),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=200),
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> MeasurementPage:
    return container.measurements.list(filters, page=page, page_size=page_size)


@router.post(
    "/measurements",
    response_model=CreatedResponse,
    summary="Record a measurement; its compliance verdict is stored with it.",
)
def create_measurement(
    payload: MeasurementIn,
    claims: TokenClaims = Depends(_writer),
    container: ServiceContainer = Depends(get_container),
) -> CreatedResponse:
    try:
        measurement = container.measurements.create(payload, user_id=claims.sub)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return CreatedResponse(id=measurement.id)


@router.get("/measurements/bi", response_model=DashboardResponse, summary="Dashboard KPIs and series.")
def measurements_dashboard(
    filters: MeasurementFilters = Depends(measurement_filters),
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> DashboardResponse:
    return container.measurements.dashboard(filters)


@router.get("/measurements/report", summary="Export measurements as PDF or Excel.")
def measurements_report(
    filters: MeasurementFilters = Depends(measurement_filters),
    format: ReportFormat = Query(ReportFormat.pdf),
    limit: Optional[int] = Query(None, ge=1),
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> Response:
    items = container.measurements.report_items(filters, limit=limit)
    names = container.report_names()
    if format is ReportFormat.excel:
        return _attachment(build_measurements_workbook(items, names), XLSX_MEDIA_TYPE, "report.xlsx")
    return _attachment(build_measurements_pdf(items, names), PDF_MEDIA_TYPE, "report.pdf")


@router.get("/measurements/{measurement_id}", response_model=MeasurementOut)
def get_measurement(
    measurement_id: str,
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> MeasurementOut:
    try:
        return container.measurements.get(measurement_id)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.put("/measurements/{measurement_id}", response_model=OkResponse)
def update_measurement(
    measurement_id: str,
    payload: MeasurementIn,
    _claims: TokenClaims = Depends(_writer),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    try:
        container.measurements.update(measurement_id, payload)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return OkResponse()


@router.delete("/measurements/{measurement_id}", response_model=OkResponse)
def delete_measurement(
    measurement_id: str,
    _claims: TokenClaims = Depends(_writer),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    try:
        container.measurements.delete(measurement_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return OkResponse()


@router.get(
    "/measurements/{measurement_id}/checks",
    response_model=MeasurementChecks,
    summary="Stored verdict and the parameters that fall outside their limits.",
)
def measurement_checks(
    measurement_id: str,
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> MeasurementChecks:
    try:
        measurement = container.measurements.get(measurement_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return MeasurementChecks(
        id=measurement.id,
        status=measurement.status,
        failing=failing_parameters(measurement),
    )


@router.post("/measurements/{measurement_id}/files", response_model=AttachmentList)
def upload_measurement_files(
    measurement_id: str,
    files: List[UploadFile] = File(..., description="Up to five attachments."),
    category: Optional[str] = Query(None),
    _claims: TokenClaims = Depends(_writer),
    container: ServiceContainer = Depends(get_container),
) -> AttachmentList:
    try:
        created = container.measurements.attach_files(measurement_id, files, category=category)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except AttachmentTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(exc),
        ) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    finally:
        for upload in files:
            upload.file.close()
    return AttachmentList(files=created)


@router.get("/measurements/{measurement_id}/report", summary="PDF report for one measurement.")
def measurement_report(
    measurement_id: str,
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> Response:
    try:
        measurement = container.measurements.get(measurement_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    names = container.report_names()
    return _attachment(
        build_measurement_pdf(measurement, names),
        PDF_MEDIA_TYPE,
        measurement_report_filename(measurement, names),
    )


@uploads_router.get("/uploads/{key}", name="download_attachment")
def download_attachment(
    key: str,
    container: ServiceContainer = Depends(get_container),
) -> Response:
    try:
        content = container.store.get_object(key)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return Response(content=content, media_type=guess_media_type(key))
