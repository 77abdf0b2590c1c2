"""
Validated lead schema.

A NormalizedLead is the only thing the matcher and applicator accept.
Invalid input is rejected here, before anything is written.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel, ConfigDict, EmailStr, Field, HttpUrl, TypeAdapter, ValidationError, field_validator,
)

from directory.errors import LeadValidationError
from directory.pipeline.types import ClaimType, IngestionSource

_HTTP_URL = TypeAdapter(HttpUrl)


def check_website(value: str) -> str:
    """
    Accept an absolute http(s) URL whose host has a dot; return it unchanged.

    HttpUrl would append a trailing slash, so only the check is kept.
    """
    try:
        url = _HTTP_URL.validate_python(value)
    except ValidationError:
        raise ValueError('website must be an absolute http(s) URL') from None
    if '.' not in (url.host or '').strip('.'):
        raise ValueError('website host must be a domain name')
    return value


class EvidenceClaim(BaseModel):
    """One attribute assertion with its own trust score."""
    model_config = ConfigDict(frozen=True)

    type: ClaimType
    value: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    provenance: str
    observed_at: datetime


class NormalizedLead(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    source: IngestionSource
    source_url: Optional[str] = None
    source_external_id: Optional[str] = None
    raw_payload: Any = None
    payload_hash: str = Field(..., min_length=1)
    fetched_at: datetime

    name: str = Field(..., min_length=1)
    legal_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    address: Optional[str] = None
    suburb: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    description: Optional[str] = None
    services: Optional[List[str]] = None
    service_areas: Optional[List[str]] = None
    business_hours: Optional[Dict[str, str]] = None
    years_experience: Optional[int] = Field(None, ge=0)
    emergency_available: Optional[bool] = None
    rating: Optional[float] = Field(None, ge=0.0, le=5.0)
    review_count: Optional[int] = Field(None, ge=0)

    evidence: List[EvidenceClaim] = Field(default_factory=list)

    @field_validator('website')
    @classmethod
    def _check_website(cls, v):
        return check_website(v) if v is not None else v


def validate_lead(data: Dict[str, Any]) -> NormalizedLead:
    """Build a NormalizedLead or raise LeadValidationError."""
    try:
        return NormalizedLead.model_validate(data)
    except ValidationError as e:
        fields = sorted({'.'.join(str(p) for p in err['loc']) for err in e.errors()})
        raise LeadValidationError(
            f"Invalid lead: {', '.join(fields)}",
            errors=[{'loc': list(err['loc']), 'msg': err['msg']} for err in e.errors()],
        ) from e
