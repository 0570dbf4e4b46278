"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date as date_type, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ComplianceStatus(str, Enum):
    """Two-valued regulatory verdict stored on each measurement."""

    compliant = "compliant"
    non_compliant = "non_compliant"


class UserRole(str, Enum):
    admin = "admin"
    analyst = "analyst"
    viewer = "viewer"


class ContactChannel(str, Enum):
    email = "email"
    internal = "internal"


class ReportFormat(str, Enum):
    pdf = "pdf"
    excel = "excel"


class User(BaseModel):
    """Stored user account, including credential material."""

    id: str
    name: str
    email: str
    role: UserRole
    password_hash: str
    password_salt: str
    created_at: datetime


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole


class UserList(BaseModel):
    items: List[UserOut]


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.viewer


class UserUpdate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    role: UserRole
    password: Optional[str] = Field(default=None, min_length=6)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    token: str


class CreatedResponse(BaseModel):
    id: str


class OkResponse(BaseModel):
    ok: bool = True


class Institution(BaseModel):
    id: str
    name: str


class InstitutionIn(BaseModel):
    name: str = Field(..., min_length=1)


class InstitutionList(BaseModel):
    items: List[Institution]


class Sector(BaseModel):
    """A physical zone of an institution where readings are taken."""

    id: str
    name: str
    institution_id: str


class SectorIn(BaseModel):
    name: str = Field(..., min_length=1)
    institution_id: str


class SectorList(BaseModel):
    items: List[Sector]


class MeasurementParameters(BaseModel):
    """The thirteen numeric environmental parameters of a reading."""

    humidity: float = Field(..., description="Relative humidity (%).")
    air_speed: float = Field(..., description="Air speed (m/s).")
    temperature: float = Field(..., description="Dry-bulb temperature (°C).")
    fungi_internal: float = Field(..., description="Indoor fungi (CFU/m³).")
    fungi_external: float = Field(..., description="Outdoor fungi (CFU/m³).")
    ie_ratio: float = Field(..., description="Indoor/outdoor fungi ratio.")
    aerodispersoids: float = Field(..., description="Aerodispersoids (µg/m³).")
    bacteria_internal: float = Field(..., description="Indoor bacteria (CFU/m³).")
    bacteria_external: float = Field(..., description="Outdoor bacteria (CFU/m³).")
    co2_internal: float = Field(..., description="Indoor CO2 (ppm).")
    co2_external: float = Field(..., description="Outdoor CO2 (ppm).")
    pm10: float = Field(..., description="PM10 (µg/m³).")
    pm25: float = Field(..., description="PM2.5 (µg/m³).")


class MeasurementIn(MeasurementParameters):
    date: datetime
    institution_id: str
    sector_id: str


class Measurement(MeasurementIn):
    """Stored measurement with its persisted compliance verdict."""

    id: str
    status: ComplianceStatus
    user_id: str
    created_at: datetime


class FileAttachment(BaseModel):
    id: str
    measurement_id: str
    name: str
    path: str
    mime: Optional[str] = None
    size: int = Field(..., ge=0)
    category: Optional[str] = None
    uploaded_at: datetime


class MeasurementOut(Measurement):
    files: List[FileAttachment] = Field(default_factory=list)


class MeasurementPage(BaseModel):
    items: List[MeasurementOut]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)


class MeasurementChecks(BaseModel):
    """Verdict plus the individual parameters that are out of range."""

    id: str
    status: ComplianceStatus
    failing: List[str] = Field(default_factory=list)


class AttachmentList(BaseModel):
    files: List[FileAttachment]


class DashboardKpis(BaseModel):
    temperature_avg: float = 0.0
    humidity_avg: float = 0.0
    compliant_count: int = Field(0, ge=0)
    non_compliant_count: int = Field(0, ge=0)


class SeriesPoint(BaseModel):
    date: date_type
    temperature: float
    humidity: float


class DashboardResponse(BaseModel):
    kpis: DashboardKpis
    series: List[SeriesPoint] = Field(default_factory=list)


class MeasurementFilters(BaseModel):
    institution_id: Optional[str] = None
    sector_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class ContactMessageIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    message: str = Field(..., min_length=1)
    type: ContactChannel


class ContactMessage(ContactMessageIn):
    id: str
    created_at: datetime


class ContactAccepted(BaseModel):
    id: str
    message: str = "Message sent successfully."
