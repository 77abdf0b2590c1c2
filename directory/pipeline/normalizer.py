"""
Lead normalizers — one adapter per ingestion source.

Every adapter implements LeadNormalizer.extract() to pull business fields out
of its source's payload shape. The shared normalize() then hashes the payload,
builds the evidence trail and validates the result into a NormalizedLead.
The pipeline only sees the uniform interface.
"""
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from directory.config import CATEGORY_SERVICE_MAP
from directory.errors import LeadValidationError
from directory.pipeline.schemas import NormalizedLead, validate_lead
from directory.pipeline.types import ClaimType, IngestionSource
from directory.utils.canonical_json import canonical_dumps, canonical_hash

# "12 King St, Fremantle WA 6160, Australia"
_AU_ADDRESS_RE = re.compile(
    r',\s*(?P<suburb>[^,]+?)\s+(?P<state>WA|NSW|VIC|QLD|SA|TAS|ACT|NT)\s+(?P<postcode>\d{4})\b',
    re.IGNORECASE,
)


class LeadNormalizer(ABC):
    """
    Base class for source adapters.

    Subclasses set `source` and `claim_confidence` and implement extract(),
    returning a dict of NormalizedLead field values. An optional
    'categories' list in that dict becomes a category claim and is mapped
    to service slugs when `services` was not given.
    """
    source: IngestionSource = None
    description: str = ''

    # Per-claim trust for this source; claims not listed get `default_confidence`.
    claim_confidence: Dict[ClaimType, float] = {}
    default_confidence: float = 0.5

    @abstractmethod
    def extract(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def external_id(self, payload: Dict[str, Any]) -> Optional[str]:
        return None

    def source_url(self, payload: Dict[str, Any]) -> Optional[str]:
        return None

    def provenance(self, payload: Dict[str, Any]) -> str:
        ext = self.external_id(payload)
        return f'{self.source.value}:{ext}' if ext else self.source.value

    def normalize(
        self,
        payload: Dict[str, Any],
        fetched_at: datetime = None,
        source_url: str = None,
    ) -> NormalizedLead:
        """Turn a raw payload into a validated NormalizedLead."""
        if not isinstance(payload, dict):
            raise LeadValidationError(f"{self.source.value} payload must be an object")

        fetched_at = fetched_at or datetime.now(timezone.utc)
        try:
            fields = self.extract(payload)
        except (TypeError, AttributeError, KeyError, ValueError) as e:
            raise LeadValidationError(f"Malformed {self.source.value} payload: {e}") from e
        categories = fields.pop('categories', None) or []
        if not fields.get('services') and categories:
            fields['services'] = map_categories(categories)

        lead = {
            'source': self.source,
            'source_url': source_url or self.source_url(payload),
            'source_external_id': self.external_id(payload),
            'raw_payload': payload,
            'payload_hash': canonical_hash(payload),
            'fetched_at': fetched_at,
            **{k: v for k, v in fields.items() if v is not None},
        }
        lead['evidence'] = self._build_evidence(fields, categories, self.provenance(payload), fetched_at)
        return validate_lead(lead)

    def _build_evidence(self, fields, categories, provenance, observed_at) -> List[Dict[str, Any]]:
        claims = [
            (ClaimType.NAME, fields.get('name')),
            (ClaimType.PHONE, fields.get('phone')),
            (ClaimType.ADDRESS, fields.get('address')),
            (ClaimType.WEBSITE, fields.get('website')),
            (ClaimType.CATEGORY, ', '.join(categories) if categories else None),
            (ClaimType.HOURS, canonical_dumps(fields['business_hours']) if fields.get('business_hours') else None),
            (ClaimType.RATING, fields.get('rating')),
            (ClaimType.REVIEW_COUNT, fields.get('review_count')),
            (ClaimType.EMERGENCY_AVAILABLE, fields.get('emergency_available')),
        ]
        evidence = []
        for claim_type, value in claims:
            if value is None or value == '':
                continue
            evidence.append({
                'type': claim_type,
                'value': _claim_value(value),
                'confidence': self.claim_confidence.get(claim_type, self.default_confidence),
                'provenance': provenance,
                'observed_at': observed_at,
            })
        return evidence


# ── Seed generator ───────────────────────────────────────────────────────────

class SeedNormalizer(LeadNormalizer):
    source = IngestionSource.SEED
    description = 'Deterministic demo businesses from the seed generator'
    claim_confidence = {
        ClaimType.NAME: 1.0,
        ClaimType.PHONE: 0.9,
        ClaimType.ADDRESS: 0.8,
        ClaimType.WEBSITE: 0.95,
        ClaimType.RATING: 0.7,
        ClaimType.EMERGENCY_AVAILABLE: 1.0,
    }

    def external_id(self, payload):
        return _clean(payload.get('external_id'))

    def provenance(self, payload):
        return 'seed_generator'

    def extract(self, payload):
        website = _clean(payload.get('website'))
        if website and '://' not in website:
            website = f'https://{website}'
        return {
            'name': _clean(payload.get('name')),
            'legal_name': _clean(payload.get('legal_name')),
            'phone': _clean(payload.get('phone')),
            'email': _clean(payload.get('email')),
            'website': website,
            'address': _clean(payload.get('address')),
            'suburb': _clean(payload.get('suburb')),
            'state': _clean(payload.get('state')),
            'postcode': _clean(payload.get('postcode')),
            'lat': payload.get('lat'),
            'lng': payload.get('lng'),
            'description': _clean(payload.get('description')),
            'services': payload.get('services') or None,
            'service_areas': payload.get('service_areas') or None,
            'business_hours': payload.get('business_hours') or None,
            'years_experience': payload.get('years_experience'),
            'emergency_available': payload.get('emergency_available'),
            'rating': payload.get('rating'),
            'review_count': payload.get('review_count'),
        }


# ── DataForSEO ───────────────────────────────────────────────────────────────

class DataForSEOMapsNormalizer(LeadNormalizer):
    """One item from a DataForSEO SERP Google Maps task result."""
    source = IngestionSource.DATAFORSEO_SERP_MAPS
    description = 'DataForSEO SERP API — Google Maps listings'
    claim_confidence = {
        ClaimType.NAME: 0.95,
        ClaimType.PHONE: 0.9,
        ClaimType.ADDRESS: 0.85,
        ClaimType.WEBSITE: 0.9,
        ClaimType.CATEGORY: 0.8,
        ClaimType.HOURS: 0.75,
        ClaimType.RATING: 0.9,
        ClaimType.REVIEW_COUNT: 0.9,
        ClaimType.EMERGENCY_AVAILABLE: 0.6,
    }

    def external_id(self, payload):
        return _clean(payload.get('place_id') or payload.get('id') or payload.get('cid'))

    def source_url(self, payload):
        return _clean(payload.get('url') or payload.get('check_url'))

    def extract(self, payload):
        address = _clean(payload.get('address'))
        hours = _hours_dict(payload.get('hours') or payload.get('work_hours'))
        rating, votes = _rating(payload.get('rating'))
        categories = list(payload.get('categories') or [])
        if not categories and payload.get('category'):
            categories = [payload['category'], *(payload.get('additional_categories') or [])]
        return {
            'name': _clean(payload.get('title')),
            'phone': _clean(payload.get('phone')),
            'website': _website(payload.get('website') or payload.get('domain')),
            'address': address,
            **parse_au_address(address),
            'lat': payload.get('latitude'),
            'lng': payload.get('longitude'),
            'description': _clean(payload.get('snippet') or payload.get('description')),
            'business_hours': hours,
            'emergency_available': _is_24h(hours),
            'rating': rating,
            'review_count': payload.get('reviews_count', votes),
            'categories': categories,
        }


class DataForSEOListingsNormalizer(DataForSEOMapsNormalizer):
    """One item from the DataForSEO Business Listings search endpoint."""
    source = IngestionSource.DATAFORSEO_BUSINESS_LISTINGS
    description = 'DataForSEO Business Data API — business listings'

    def external_id(self, payload):
        return _clean(payload.get('place_id') or payload.get('cid'))

    def extract(self, payload):
        fields = super().extract(payload)
        info = _object(payload.get('address_info'))
        if info:
            fields['address'] = _clean(info.get('address')) or fields['address']
            fields['suburb'] = _clean(info.get('city')) or fields.get('suburb')
            fields['state'] = _clean(info.get('region')) or fields.get('state')
            fields['postcode'] = _clean(info.get('zip')) or fields.get('postcode')
        if not fields.get('website') and payload.get('url'):
            fields['website'] = _website(payload['url'])
        return fields

    def source_url(self, payload):
        return _clean(payload.get('check_url'))


# ── Google Places ────────────────────────────────────────────────────────────

class GooglePlacesNormalizer(LeadNormalizer):
    """A Google Places 'place details' result."""
    source = IngestionSource.GOOGLE_PLACES
    description = 'Google Places API — place details'
    claim_confidence = {
        ClaimType.NAME: 0.95,
        ClaimType.PHONE: 0.95,
        ClaimType.ADDRESS: 0.9,
        ClaimType.WEBSITE: 0.9,
        ClaimType.CATEGORY: 0.7,
        ClaimType.HOURS: 0.85,
        ClaimType.RATING: 0.95,
        ClaimType.REVIEW_COUNT: 0.95,
        ClaimType.EMERGENCY_AVAILABLE: 0.7,
    }

    def external_id(self, payload):
        return _clean(payload.get('place_id'))

    def source_url(self, payload):
        return _clean(payload.get('url'))

    def extract(self, payload):
        address = _clean(payload.get('formatted_address'))
        components = _address_components(payload.get('address_components'))
        location = _object(_object(payload.get('geometry')).get('location'))
        hours = _weekday_hours(_object(payload.get('opening_hours')).get('weekday_text'))
        parsed = parse_au_address(address)
        return {
            'name': _clean(payload.get('name')),
            'phone': _clean(payload.get('formatted_phone_number') or payload.get('international_phone_number')),
            'website': _website(payload.get('website')),
            'address': address,
            'suburb': components.get('locality') or parsed.get('suburb'),
            'state': components.get('administrative_area_level_1') or parsed.get('state'),
            'postcode': components.get('postal_code') or parsed.get('postcode'),
            'lat': location.get('lat'),
            'lng': location.get('lng'),
            'description': _clean(_object(payload.get('editorial_summary')).get('overview')),
            'business_hours': hours,
            'emergency_available': _is_24h(hours),
            'rating': payload.get('rating'),
            'review_count': payload.get('user_ratings_total'),
            'categories': [t for t in (payload.get('types') or []) if t not in ('point_of_interest', 'establishment')],
        }


# ── Registry ─────────────────────────────────────────────────────────────────

NORMALIZERS: Dict[IngestionSource, Type[LeadNormalizer]] = {
    IngestionSource.SEED: SeedNormalizer,
    IngestionSource.DATAFORSEO_SERP_MAPS: DataForSEOMapsNormalizer,
    IngestionSource.DATAFORSEO_BUSINESS_LISTINGS: DataForSEOListingsNormalizer,
    IngestionSource.GOOGLE_PLACES: GooglePlacesNormalizer,
}


def get_normalizer(source) -> LeadNormalizer:
    """Look up and instantiate the normalizer for a source."""
    try:
        key = IngestionSource(source)
    except ValueError:
        raise LeadValidationError(f"Unknown ingestion source '{source}'") from None
    return NORMALIZERS[key]()


def normalize_payload(source, payload, fetched_at=None, source_url=None) -> NormalizedLead:
    return get_normalizer(source).normalize(payload, fetched_at=fetched_at, source_url=source_url)


# ── Helpers ──────────────────────────────────────────────────────────────────

def parse_au_address(address: Optional[str]) -> Dict[str, str]:
    """Pull suburb / state / postcode out of an Australian address line."""
    if not address:
        return {}
    m = _AU_ADDRESS_RE.search(address)
    if not m:
        return {}
    return {
        'suburb': m.group('suburb').strip(),
        'state': m.group('state').upper(),
        'postcode': m.group('postcode'),
    }


def map_categories(categories: List[str]) -> Optional[List[str]]:
    """Map free-text listing categories to known service slugs, order kept."""
    slugs = []
    for category in categories:
        text = str(category).lower().replace('_', ' ')
        for keyword, slug in CATEGORY_SERVICE_MAP.items():
            if keyword in text:
                if slug not in slugs:
                    slugs.append(slug)
                break
    return slugs or None


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _claim_value(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _website(value) -> Optional[str]:
    text = _clean(value)
    if text and '://' not in text:
        text = f'https://{text}'
    return text


def _rating(value):
    """DataForSEO sends either a bare number or {'value': 4.6, 'votes_count': 31}."""
    if isinstance(value, dict):
        return value.get('value'), value.get('votes_count')
    return value, None


def _hours_dict(value) -> Optional[Dict[str, str]]:
    if not value:
        return None
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items() if v is not None} or None
    return {'general': str(value)}


def _weekday_hours(lines) -> Optional[Dict[str, str]]:
    """['Monday: 7:00 AM – 5:00 PM', ...] → {'monday': '7:00 AM – 5:00 PM', ...}"""
    if not isinstance(lines, list):
        return None
    hours = {}
    for line in lines:
        day, sep, span = str(line).partition(':')
        if sep:
            hours[day.strip().lower()] = span.strip()
    return hours or None


def _is_24h(hours: Optional[Dict[str, str]]) -> Optional[bool]:
    if not hours:
        return None
    text = ' '.join(hours.values()).lower()
    return '24 hours' in text or '24/7' in text


def _address_components(components) -> Dict[str, str]:
    """Google address_components → {type: long_name} (short_name for the state)."""
    out = {}
    if not isinstance(components, list):
        return out
    for comp in components:
        if not isinstance(comp, dict):
            continue
        for t in comp.get('types') or []:
            if t == 'administrative_area_level_1':
                out[t] = comp.get('short_name') or comp.get('long_name')
            elif t not in out:
                out[t] = comp.get('long_name')
    return out


def _object(value) -> Dict[str, Any]:
    """Nested payload object, or {} when the source sent something else."""
    return value if isinstance(value, dict) else {}
