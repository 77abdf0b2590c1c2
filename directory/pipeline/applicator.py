"""
Lead applicator — the per-lead state machine.

    match → raw lead → evidence → one of:
        no match              → create draft business          (created)
        match < threshold     → file field-level suggestions   (suggested_updates)
        match ≥ threshold     → non-draft: leave untouched     (skipped_published)
                                draft: patch whitelisted fields (updated_draft)

The raw lead and its evidence are written before any business mutation and
stay in place if that mutation fails. apply_lead() never raises: any failure
becomes an unsuccessful IngestionResult so one bad lead cannot stop a batch.
"""
import logging

from directory.config import (
    AUTO_UPDATE_FIELDS, AUTO_WRITE_THRESHOLD, DEFAULT_SERVICE_AREAS, DEFAULT_SERVICES,
    LICENSE_PLACEHOLDER, SUGGESTION_CONFIDENCE, SUGGESTION_FIELDS,
)
from directory.errors import DirectoryError
from directory.pipeline.identifiers import normalize_phone
from directory.pipeline.matcher import Matcher
from directory.pipeline.schemas import NormalizedLead
from directory.pipeline.types import (
    BusinessStatus, IngestionAction, IngestionResult, MatchResult, MatchStrategy,
)
from directory.services.business_registry import BusinessRegistry

logger = logging.getLogger('pipeline.applicator')


class LeadApplicator:

    def __init__(self, store, registry: BusinessRegistry = None, matcher: Matcher = None):
        self.store = store
        self.registry = registry or BusinessRegistry(store)
        self.matcher = matcher or Matcher(store)

    def apply_lead(self, lead: NormalizedLead, ingestion_run_id: str) -> IngestionResult:
        raw_lead_id = None
        try:
            match = self.matcher.match(lead)

            raw_lead_id = self.store.insert_raw_lead(
                ingestion_run_id,
                source=lead.source,
                payload=lead.raw_payload,
                payload_hash=lead.payload_hash,
                fetched_at=lead.fetched_at,
                source_url=lead.source_url,
                source_external_id=lead.source_external_id,
            )
            self.store.insert_evidence(raw_lead_id, [c.model_dump() for c in lead.evidence])

            if match.business_id is None:
                return self._create(lead, raw_lead_id)
            if match.confidence < AUTO_WRITE_THRESHOLD:
                return self._suggest(lead, raw_lead_id, match)
            return self._auto_update(lead, raw_lead_id, match)

        except Exception as e:
            logger.error("Lead '%s' failed in run %s: %s", lead.name, ingestion_run_id, e,
                         exc_info=not isinstance(e, DirectoryError), extra={'run_id': ingestion_run_id})
            return IngestionResult(
                success=False,
                action=IngestionAction.SKIPPED_PUBLISHED,
                business_id=None,
                lifecycle_state='unknown',
                raw_lead_id=raw_lead_id,
                error=str(e) or e.__class__.__name__,
            )

    # ── Branches ─────────────────────────────────────────────────────────────

    def _create(self, lead, raw_lead_id):
        created = self.registry.create_business(business_input_from_lead(lead))
        self.store.link_raw_lead(raw_lead_id, created.business_id)
        self.store.insert_lead_match(raw_lead_id, created.business_id, 1.0, MatchStrategy.NEW_CREATION)
        return IngestionResult(
            success=True,
            action=IngestionAction.CREATED,
            business_id=created.business_id,
            lifecycle_state=self.registry.initial_status,
            raw_lead_id=raw_lead_id,
            match_strategy=MatchStrategy.NEW_CREATION,
        )

    def _suggest(self, lead, raw_lead_id, match: MatchResult):
        business = self._current_business(match.business_id)
        rows = [
            {
                'business_id': business.id,
                'raw_lead_id': raw_lead_id,
                'field_name': field_name,
                'current_value': current,
                'suggested_value': suggested,
                'confidence': SUGGESTION_CONFIDENCE,
            }
            for field_name, current, suggested in differing_fields(business, lead)
        ]
        self.store.insert_suggested_updates(rows)
        self.store.link_raw_lead(raw_lead_id, business.id)
        self.store.insert_lead_match(raw_lead_id, business.id, match.confidence, match.strategy)
        return IngestionResult(
            success=True,
            action=IngestionAction.SUGGESTED_UPDATES,
            business_id=business.id,
            lifecycle_state=business.status,
            raw_lead_id=raw_lead_id,
            suggestions_count=len(rows),
            match_strategy=match.strategy,
        )

    def _auto_update(self, lead, raw_lead_id, match: MatchResult):
        business = self._current_business(match.business_id)

        if business.status != BusinessStatus.DRAFT.value:
            self.store.link_raw_lead(raw_lead_id, business.id)
            self.store.insert_lead_match(raw_lead_id, business.id, match.confidence, match.strategy)
            return IngestionResult(
                success=True,
                action=IngestionAction.SKIPPED_PUBLISHED,
                business_id=business.id,
                lifecycle_state=business.status,
                raw_lead_id=raw_lead_id,
                match_strategy=match.strategy,
            )

        patch = auto_update_patch(business, lead)
        if patch and not self.registry.update_business(business.id, patch):
            raise DirectoryError(f"Business {business.id} disappeared before update")
        if patch:
            logger.info("Auto-updated draft %s: %s", business.id, sorted(patch))

        self.store.link_raw_lead(raw_lead_id, business.id)
        self.store.insert_lead_match(raw_lead_id, business.id, match.confidence, match.strategy)
        return IngestionResult(
            success=True,
            action=IngestionAction.UPDATED_DRAFT,
            business_id=business.id,
            lifecycle_state=BusinessStatus.DRAFT.value,
            raw_lead_id=raw_lead_id,
            match_strategy=match.strategy,
        )

    def _current_business(self, business_id):
        business = self.store.get_business(business_id)
        if business is None:
            raise DirectoryError(f"Matched business {business_id} not found")
        return business


# ── Field mapping ────────────────────────────────────────────────────────────

def business_input_from_lead(lead: NormalizedLead) -> dict:
    """Registry create input for a lead with no match."""
    return {
        'trading_name': lead.name,
        'legal_name': lead.legal_name or lead.name,
        'phone': lead.phone or '',
        'email': lead.email,
        'license_number': LICENSE_PLACEHOLDER,
        'services': lead.services or list(DEFAULT_SERVICES),
        'service_areas': lead.service_areas or list(DEFAULT_SERVICE_AREAS),
        'description': lead.description,
        'website': lead.website,
        'street_address': lead.address,
        'suburb': lead.suburb,
        'state': lead.state,
        'postcode': lead.postcode,
        'lat': lead.lat,
        'lng': lead.lng,
        'years_experience': lead.years_experience,
        'emergency_available': bool(lead.emergency_available),
        'raw_business_hours': lead.business_hours,
        'rating': lead.rating,
        'review_count': lead.review_count,
        'external_place_id': lead.source_external_id,
    }


def differing_fields(business, lead: NormalizedLead):
    """(field_name, current, suggested) for each present lead value that differs."""
    for column, attr in SUGGESTION_FIELDS.items():
        suggested = getattr(lead, attr)
        if suggested is None or suggested == '':
            continue
        current = getattr(business, column)
        if current == suggested:
            continue
        # Formatting-only phone differences are not an update
        if column == 'phone' and normalize_phone(current) == normalize_phone(suggested):
            continue
        yield column, current, suggested


def auto_update_patch(business, lead: NormalizedLead) -> dict:
    """Whitelisted draft fields whose lead value is present and differs."""
    candidates = {
        'website': lead.website,
        'street_address': lead.address,
        'raw_business_hours': lead.business_hours,
    }
    return {
        column: value
        for column, value in candidates.items()
        if column in AUTO_UPDATE_FIELDS and value and getattr(business, column) != value
    }
