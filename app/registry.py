"""HTTP routes for the institution and sector registries."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    CreatedResponse,
    InstitutionIn,
    InstitutionList,
    OkResponse,
    SectorIn,
    SectorList,
    UserRole,
)
from app.security import get_container, require_role, require_user
from services.auth import TokenClaims
from services.container import ServiceContainer
from services.registry import RegistryConflictError

router = APIRouter(prefix="/api")

_editor = require_role(UserRole.admin, UserRole.analyst)


def _translate(exc: Exception) -> HTTPException:
    if isinstance(exc, KeyError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0])
    if isinstance(exc, RegistryConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/institutions", response_model=InstitutionList)
def list_institutions(
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> InstitutionList:
    return InstitutionList(items=container.registry.list_institutions())


@router.post("/institutions", response_model=CreatedResponse)
def create_institution(
    payload: InstitutionIn,
    _claims: TokenClaims = Depends(_editor),
    container: ServiceContainer = Depends(get_container),
) -> CreatedResponse:
    return CreatedResponse(id=container.registry.create_institution(payload).id)


@router.put("/institutions/{institution_id}", response_model=OkResponse)
def rename_institution(
    institution_id: str,
    payload: InstitutionIn,
    _claims: TokenClaims = Depends(_editor),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    try:
        container.registry.rename_institution(institution_id, payload)
    except KeyError as exc:
        raise _translate(exc) from exc
    return OkResponse()


@router.delete("/institutions/{institution_id}", response_model=OkResponse)
def delete_institution(
    institution_id: str,
    _claims: TokenClaims = Depends(_editor),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    try:
        container.registry.delete_institution(institution_id)
    except (KeyError, RegistryConflictError) as exc:
        raise _translate(exc) from exc
    return OkResponse()


@router.get("/sectors", response_model=SectorList)
def list_sectors(
    institution_id: Optional[str] = Query(None),
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> SectorList:
    return SectorList(items=container.registry.list_sectors(institution_id))


@router.post("/sectors", response_model=CreatedResponse)
def create_sector(
    payload: SectorIn,
    _claims: TokenClaims = Depends(_editor),
    container: ServiceContainer = Depends(get_container),
) -> CreatedResponse:
    try:
        sector = container.registry.create_sector(payload)
    except ValueError as exc:
        raise _translate(exc) from exc
    return CreatedResponse(id=sector.id)


@router.put("/sectors/{sector_id}", response_model=OkResponse)
def update_sector(
    sector_id: str,
    payload: SectorIn,
    _claims: TokenClaims = Depends(_editor),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    try:
        container.registry.update_sector(sector_id, payload)
    except (KeyError, ValueError, RegistryConflictError) as exc:
        raise _translate(exc) from exc
    return OkResponse()


@router.delete("/sectors/{sector_id}", response_model=OkResponse)
def delete_sector(
    sector_id: str,
    _claims: TokenClaims = Depends(_editor),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    try:
        container.registry.delete_sector(sector_id)
    except (KeyError, RegistryConflictError) as exc:
        raise _translate(exc) from exc
    return OkResponse()
