"""
Business registry — the create and update paths into the directory.

create_business() validates a submission, resolves service/area slugs
(strictly: every slug must exist), mints an edit token and writes the business
with its relationships in one transaction. update_business() is the narrow
field patch used by the applicator and the review gate.
"""
import hashlib
import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

from directory.config import INGESTION_INITIAL_STATUS
from directory.errors import LeadValidationError
from directory.pipeline.schemas import check_website

logger = logging.getLogger('services.business_registry')

_PHONE_RE = re.compile(r'^[\d\s\+\-\(\)]+$')
_SLUG_STRIP = re.compile(r'[^a-z0-9]+')


class BusinessSubmission(BaseModel):
    trading_name: str = Field(..., min_length=1, max_length=255)
    phone: str = ''
    email: Optional[EmailStr] = None
    license_number: str = Field(..., min_length=1)
    services: List[str] = Field(..., min_length=1)
    service_areas: List[str] = Field(..., min_length=1)
    legal_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    website: Optional[str] = None
    street_address: Optional[str] = None
    suburb: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    years_experience: Optional[int] = Field(None, ge=0)
    emergency_available: bool = False
    raw_business_hours: Optional[Dict[str, str]] = None
    rating: Optional[float] = Field(None, ge=0.0, le=5.0)
    review_count: Optional[int] = Field(None, ge=0)
    external_place_id: Optional[str] = None

    @field_validator('phone')
    @classmethod
    def _check_phone(cls, v):
        if v and not _PHONE_RE.match(v):
            raise ValueError('phone may only contain digits, spaces and + - ( )')
        return v

    @field_validator('email', 'website', mode='before')
    @classmethod
    def _blank_to_none(cls, v):
        return v or None

    @field_validator('website')
    @classmethod
    def _check_website(cls, v):
        return check_website(v) if v is not None else v


@dataclass
class CreatedBusiness:
    business_id: str
    slug: str
    edit_token: str   # plaintext, returned once; only the hash is stored


def generate_slug(trading_name: str) -> str:
    """'Perth Pro Plumbing' → 'perth-pro-plumbing-1a2b3c4d'"""
    base = _SLUG_STRIP.sub('-', trading_name.lower()).strip('-') or 'business'
    return f'{base}-{uuid.uuid4().hex[:8]}'


def generate_edit_token() -> str:
    return secrets.token_hex(32)


def hash_edit_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class BusinessRegistry:

    def __init__(self, store, initial_status: str = INGESTION_INITIAL_STATUS):
        self.store = store
        self.initial_status = initial_status

    def create_business(self, data: dict) -> CreatedBusiness:
        """
        Validate and create a business with its service/area links and an
        unverified licence credential.

        Raises LeadValidationError for a bad submission or unknown slugs,
        StorageError if the transaction fails.
        """
        try:
            sub = BusinessSubmission.model_validate(data)
        except ValidationError as e:
            fields = sorted({'.'.join(str(p) for p in err['loc']) for err in e.errors()})
            raise LeadValidationError(
                f"Invalid business submission: {', '.join(fields)}",
                errors=[{'loc': list(err['loc']), 'msg': err['msg']} for err in e.errors()],
            ) from e

        service_ids = self._resolve(self.store.resolve_service_ids, sub.services, 'service')
        area_ids = self._resolve(self.store.resolve_area_ids, sub.service_areas, 'service area')

        token = generate_edit_token()
        slug = generate_slug(sub.trading_name)
        fields = sub.model_dump(exclude={'license_number', 'services', 'service_areas'})
        fields['legal_name'] = sub.legal_name or sub.trading_name
        fields['slug'] = slug
        fields['status'] = self.initial_status

        business_id = self.store.create_business_with_relationships(
            fields,
            service_ids,
            area_ids,
            edit_token_hash=hash_edit_token(token),
            license_number=sub.license_number,
        )
        logger.info("Created business %s (%s) as %s", business_id, slug, self.initial_status)
        return CreatedBusiness(business_id=business_id, slug=slug, edit_token=token)

    def update_business(self, business_id: str, fields: dict) -> bool:
        """Patch the given columns. False if the business does not exist."""
        if not fields:
            return True
        return self.store.update_business(business_id, fields)

    @staticmethod
    def _resolve(resolver, slugs: List[str], label: str) -> List[str]:
        unique = list(dict.fromkeys(slugs))
        found = resolver(unique)
        missing = [s for s in unique if s not in found]
        if missing:
            raise LeadValidationError(f"Unknown {label} slugs: {', '.join(missing)}")
        return [found[s] for s in unique]
