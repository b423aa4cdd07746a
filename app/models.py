"""
app/models.py — All Pydantic data schemas
Domain records (deceased, cemeteries, prayers, assignment priority,
rate-limit counters) plus the request/response shapes of the HTTP API.
"""
from __future__ import annotations

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from app.utils.timezone import utc_now


# ──────────────────────────────────────────────────────────────────────────────
# Enumerations
# ──────────────────────────────────────────────────────────────────────────────

class PersonRole(str, Enum):
    PRIEST = "priest"
    BISHOP = "bishop"
    RELIGIOUS = "religious"
    LAYPERSON = "layperson"


class PrayerType(str, Enum):
    OUR_FATHER = "our_father"
    HAIL_MARY = "hail_mary"
    DECADE_ROSARY = "decade_rosary"
    FULL_ROSARY = "full_rosary"
    MASS = "mass"
    DIVINE_MERCY_CHAPLET = "divine_mercy_chaplet"
    OTHER = "other"


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERSON_NOT_FOUND = "PERSON_NOT_FOUND"
    CEMETERY_NOT_FOUND = "CEMETERY_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    NO_CANDIDATES = "NO_CANDIDATES"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"


def _new_id() -> str:
    return str(uuid.uuid4())


# ──────────────────────────────────────────────────────────────────────────────
# Domain records
# ──────────────────────────────────────────────────────────────────────────────

class DeceasedPerson(BaseModel):
    person_id: str = Field(default_factory=_new_id)
    first_name: str
    last_initial: str
    year_of_death: int
    role: PersonRole
    cemetery_id: str
    cemetery_name: str
    prayer_count: int = Field(default=0, ge=0)
    last_prayed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None


class Cemetery(BaseModel):
    cemetery_id: str = Field(default_factory=_new_id)
    name: str
    address: Optional[str] = None
    city: str
    state: str
    zip_code: Optional[str] = None
    latitude: float
    longitude: float
    archdiocese: str
    total_deceased: int = Field(default=0, ge=0)
    total_prayers: int = Field(default=0, ge=0)
    unique_prayed_for: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None


class Prayer(BaseModel):
    prayer_id: str = Field(default_factory=_new_id)
    person_id: str
    cemetery_id: str
    prayer_type: PrayerType
    session_id: Optional[str] = None
    ip_address_hash: Optional[str] = None
    user_agent: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None


class AssignmentPriority(BaseModel):
    """Selection-only view of a person. Decoupled from DeceasedPerson."""
    person_id: str
    prayer_count: int = Field(default=0, ge=0)
    last_prayed_at: Optional[datetime] = None
    cemetery_id: str
    role: PersonRole
    is_active: bool = True


class RateLimitCounter(BaseModel):
    identifier: str   # "session:<id>", "ip:<hash>", "pray:session:<id>", ...
    window_key: str   # hour bucket, e.g. "2024-01-15T10"
    request_count: int = Field(default=0, ge=0)
    expires_at: int   # epoch seconds


class RateLimitResult(BaseModel):
    allowed: bool
    retry_after_seconds: Optional[int] = None


# ──────────────────────────────────────────────────────────────────────────────
# API requests
# ──────────────────────────────────────────────────────────────────────────────

_LETTERS_ONLY = re.compile(r"^[A-Za-z]+$")
_SINGLE_CAPITAL = re.compile(r"^[A-Z]$")
_STATE_CODE = re.compile(r"^[A-Z]{2}$")
_ZIP_CODE = re.compile(r"^\d{5}(-\d{4})?$")


def _is_canonical_uuid(value: str) -> bool:
    """Dashed 8-4-4-4-12 hex only; braces, urn: prefixes and bare hex are rejected."""
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


class PrayRequest(BaseModel):
    person_id: str
    prayer_type: PrayerType

    @field_validator("person_id")
    @classmethod
    def validate_person_id(cls, v: str) -> str:
        if not _is_canonical_uuid(v):
            raise ValueError("person_id must be a valid UUID")
        return v


class CreateDeceasedRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_initial: str = Field(min_length=1, max_length=1)
    year_of_death: int = Field(ge=1800)
    role: PersonRole
    cemetery_id: str

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _LETTERS_ONLY.match(v):
            raise ValueError("Letters only")
        return v

    @field_validator("last_initial")
    @classmethod
    def validate_last_initial(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _SINGLE_CAPITAL.match(v):
            raise ValueError("Single letter A-Z")
        return v

    @field_validator("year_of_death")
    @classmethod
    def validate_year_of_death(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v > utc_now().year:
            raise ValueError("year_of_death cannot be in the future")
        return v

    @field_validator("cemetery_id")
    @classmethod
    def validate_cemetery_id(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _is_canonical_uuid(v):
            raise ValueError("cemetery_id must be a valid UUID")
        return v


class UpdateDeceasedRequest(CreateDeceasedRequest):
    """Partial edit: omitted fields keep their stored values."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_initial: Optional[str] = Field(default=None, min_length=1, max_length=1)
    year_of_death: Optional[int] = Field(default=None, ge=1800)
    role: Optional[PersonRole] = None
    cemetery_id: Optional[str] = None


class CreateCemeteryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    address: Optional[str] = Field(default=None, max_length=200)
    city: str = Field(min_length=1, max_length=50)
    state: str
    zip_code: Optional[str] = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    archdiocese: str = Field(min_length=1, max_length=50)

    @field_validator("state")
    @classmethod
    def validate_state(cls, v: str) -> str:
        if not _STATE_CODE.match(v):
            raise ValueError("2-letter state code")
        return v

    @field_validator("zip_code")
    @classmethod
    def validate_zip_code(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _ZIP_CODE.match(v):
            raise ValueError("zip_code must be NNNNN or NNNNN-NNNN")
        return v


# ──────────────────────────────────────────────────────────────────────────────
# API responses
# ──────────────────────────────────────────────────────────────────────────────

class CemeterySummary(BaseModel):
    cemetery_id: str
    name: str
    city: str
    state: str


class AssignResponse(BaseModel):
    person_id: str
    first_name: str
    last_initial: str
    year_of_death: int
    role: PersonRole
    cemetery: CemeterySummary


class PrayResponse(BaseModel):
    prayer_id: str
    person_id: str
    prayer_type: PrayerType
    created_at: datetime


class PrayResponseMeta(BaseModel):
    cooldown_seconds: int
    can_request_new_assignment_at: datetime


class CemeteryStats(BaseModel):
    total_deceased: int
    unique_prayed_for: int
    total_prayers: int
    coverage_percent: float


class CemeteryWithStats(BaseModel):
    cemetery_id: str
    name: str
    city: str
    state: str
    latitude: float
    longitude: float
    stats: CemeteryStats


class RecentPrayerActivity(BaseModel):
    prayer_type: PrayerType
    created_at: datetime


class CemeteryDetailResponse(CemeteryWithStats):
    address: Optional[str] = None
    zip_code: Optional[str] = None
    archdiocese: str
    recent_activity: list[RecentPrayerActivity] = []


class GlobalRecentActivity(BaseModel):
    cemetery_name: str
    prayer_type: PrayerType
    created_at: datetime


class GlobalStats(BaseModel):
    total_deceased: int
    total_prayers: int
    unique_prayed_for: int
    coverage_percent: float
    total_cemeteries: int
    prayers_by_type: dict[PrayerType, int]
    recent_activity: list[GlobalRecentActivity] = []


class ValidationErrorDetail(BaseModel):
    field: str
    message: str


class ApiError(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[list[ValidationErrorDetail]] = None
    retry_after_seconds: Optional[int] = None
