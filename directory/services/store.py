"""
IngestionStore — every database round-trip the ingestion core makes.

Built from a session factory and passed into each component; nothing here is
a module-level singleton. Each call opens its own short-lived session
(commit / rollback / close), so worker threads never share one.
SQLAlchemy failures surface as StorageError.
"""
import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError

from directory.config import (
    LICENSE_ISSUING_AUTHORITY, SERVICE_AREAS, SERVICE_TYPES,
)
from directory.database import utcnow
from directory.errors import StorageError
from directory.models.business import (
    Business, BusinessService, BusinessServiceArea, Credential, ServiceArea, ServiceType,
)
from directory.models.ingestion_run import IngestionRun
from directory.models.lead_evidence import LeadEvidence
from directory.models.lead_match import LeadMatch
from directory.models.raw_lead import RawLead
from directory.models.suggested_update import SuggestedUpdate
from directory.pipeline.identifiers import extract_domain, normalize_phone

logger = logging.getLogger('services.store')

_NAME_TOKEN_SPLIT = re.compile(r"[^0-9a-z]+")


def _value(v):
    """Enums are persisted by value."""
    return getattr(v, 'value', v)


class IngestionStore:

    def __init__(self, session_factory):
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self, what: str):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Storage failure during %s: %s", what, e)
            raise StorageError(f"{what} failed: {e.__class__.__name__}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Matcher lookups ──────────────────────────────────────────────────────

    def _unique_business_id(self, what: str, column, value) -> Optional[str]:
        """Id of the single business with column == value; None if zero or several."""
        if not value:
            return None
        with self._session_scope(what) as session:
            ids = session.execute(
                select(Business.id).where(column == value).limit(2)
            ).scalars().all()
        if len(ids) > 1:
            logger.info("Ambiguous %s for %r — %d+ businesses, skipping tier", what, value, len(ids))
            return None
        return ids[0] if ids else None

    def find_by_external_id(self, external_id: str) -> Optional[str]:
        return self._unique_business_id('external id lookup', Business.external_place_id, external_id)

    def find_by_domain(self, domain: str) -> Optional[str]:
        return self._unique_business_id('domain lookup', Business.website_domain, domain)

    def find_by_phone(self, normalized: str) -> Optional[str]:
        return self._unique_business_id('phone lookup', Business.normalized_phone, normalized)

    def search_by_name_suburb(self, name: str, suburb: str) -> Optional[str]:
        """
        Oldest business whose trading name contains every token of `name`
        and whose suburb equals `suburb` (both case-insensitive).
        """
        tokens = _name_tokens(name)
        if not tokens or not suburb:
            return None
        with self._session_scope('name+suburb search') as session:
            stmt = select(Business.id).where(func.lower(Business.suburb) == suburb.strip().lower())
            for tok in tokens:
                stmt = stmt.where(Business.trading_name.ilike(f'%{tok}%'))
            stmt = stmt.order_by(Business.created_at, Business.id).limit(1)
            return session.execute(stmt).scalars().first()

    def get_business(self, business_id: str) -> Optional[Business]:
        with self._session_scope('business fetch') as session:
            return session.get(Business, business_id)

    # ── Lead audit trail ─────────────────────────────────────────────────────

    def insert_raw_lead(self, ingestion_run_id, source, payload, payload_hash, fetched_at,
                        source_url=None, source_external_id=None) -> str:
        with self._session_scope('raw lead insert') as session:
            row = RawLead(
                ingestion_run_id=ingestion_run_id,
                source=_value(source),
                source_url=source_url,
                source_external_id=source_external_id,
                payload=payload,
                payload_hash=payload_hash,
                fetched_at=fetched_at,
            )
            session.add(row)
            session.flush()
            return row.id

    def insert_evidence(self, raw_lead_id: str, claims: Iterable[Dict[str, Any]]) -> int:
        """Batch insert evidence rows. claims: dicts with type/value/confidence/provenance/observed_at."""
        rows = [
            LeadEvidence(
                raw_lead_id=raw_lead_id,
                claim_type=_value(c['type']),
                claim_value=c['value'],
                confidence=c['confidence'],
                provenance=c['provenance'],
                observed_at=c['observed_at'],
            )
            for c in claims
        ]
        if not rows:
            return 0
        with self._session_scope('evidence insert') as session:
            session.add_all(rows)
        return len(rows)

    def insert_lead_match(self, raw_lead_id, business_id, match_score, match_strategy) -> str:
        with self._session_scope('lead match insert') as session:
            row = LeadMatch(
                raw_lead_id=raw_lead_id,
                business_id=business_id,
                match_score=match_score,
                match_strategy=_value(match_strategy),
            )
            session.add(row)
            session.flush()
            return row.id

    def link_raw_lead(self, raw_lead_id: str, business_id: str):
        with self._session_scope('raw lead link') as session:
            session.execute(
                update(RawLead).where(RawLead.id == raw_lead_id).values(business_id=business_id)
            )

    def payload_hash_seen(self, payload_hash: str) -> bool:
        with self._session_scope('payload hash lookup') as session:
            found = session.execute(
                select(RawLead.id).where(RawLead.payload_hash == payload_hash).limit(1)
            ).first()
        return found is not None

    def insert_suggested_updates(self, rows: List[Dict[str, Any]]) -> List[str]:
        if not rows:
            return []
        with self._session_scope('suggested update insert') as session:
            objs = [SuggestedUpdate(**r) for r in rows]
            session.add_all(objs)
            session.flush()
            return [o.id for o in objs]

    # ── Suggestions ──────────────────────────────────────────────────────────

    def get_suggestion(self, suggestion_id: str) -> Optional[SuggestedUpdate]:
        with self._session_scope('suggestion fetch') as session:
            return session.get(SuggestedUpdate, suggestion_id)

    def set_suggestion_status(self, suggestion_id: str, status, reviewed_by: str) -> bool:
        """Move a pending suggestion to a terminal status. False if it was no longer pending."""
        with self._session_scope('suggestion status update') as session:
            result = session.execute(
                update(SuggestedUpdate)
                .where(SuggestedUpdate.id == suggestion_id, SuggestedUpdate.status == 'pending')
                .values(status=_value(status), reviewed_at=utcnow(), reviewed_by=reviewed_by)
            )
            return result.rowcount == 1

    def list_suggestions(self, status=None, business_id=None, raw_lead_id=None,
                         field_name=None, min_confidence=None, limit=100) -> List[SuggestedUpdate]:
        with self._session_scope('suggestion list') as session:
            stmt = select(SuggestedUpdate)
            if status:
                stmt = stmt.where(SuggestedUpdate.status == _value(status))
            if business_id:
                stmt = stmt.where(SuggestedUpdate.business_id == business_id)
            if raw_lead_id:
                stmt = stmt.where(SuggestedUpdate.raw_lead_id == raw_lead_id)
            if field_name:
                stmt = stmt.where(SuggestedUpdate.field_name == field_name)
            if min_confidence is not None:
                stmt = stmt.where(SuggestedUpdate.confidence >= min_confidence)
            stmt = stmt.order_by(SuggestedUpdate.created_at.desc()).limit(limit)
            return list(session.execute(stmt).scalars().all())

    # ── Business registry writes ─────────────────────────────────────────────

    def update_business(self, business_id: str, fields: Dict[str, Any]) -> bool:
        """Patch business columns by id. Derived lookup columns follow phone/website."""
        with self._session_scope('business update') as session:
            business = session.get(Business, business_id)
            if business is None:
                return False
            for key, value in fields.items():
                if key not in Business.__table__.columns or key in ('id', 'slug'):
                    raise ValueError(f"Cannot update business column '{key}'")
                setattr(business, key, value)
            if 'phone' in fields:
                business.normalized_phone = normalize_phone(business.phone) or None
            if 'website' in fields:
                business.website_domain = extract_domain(business.website) or None
            return True

    def create_business_with_relationships(
        self,
        fields: Dict[str, Any],
        service_ids: List[str],
        area_ids: List[str],
        edit_token_hash: str,
        license_number: str,
    ) -> str:
        """Business row, junction rows and licence credential in one transaction."""
        with self._session_scope('business create') as session:
            business = Business(**fields, edit_token_hash=edit_token_hash)
            business.normalized_phone = normalize_phone(business.phone) or None
            business.website_domain = extract_domain(business.website) or None
            session.add(business)
            session.flush()
            for sid in dict.fromkeys(service_ids):
                session.add(BusinessService(business_id=business.id, service_type_id=sid))
            for aid in dict.fromkeys(area_ids):
                session.add(BusinessServiceArea(business_id=business.id, service_area_id=aid))
            session.add(Credential(
                business_id=business.id,
                credential_type='plumbing_license',
                credential_number=license_number,
                issuing_authority=LICENSE_ISSUING_AUTHORITY,
                verified=False,
                verification_notes='Awaiting manual verification',
            ))
            return business.id

    def get_credential(self, business_id: str, credential_type='plumbing_license') -> Optional[Credential]:
        with self._session_scope('credential fetch') as session:
            return session.execute(
                select(Credential).where(
                    Credential.business_id == business_id,
                    Credential.credential_type == credential_type,
                )
            ).scalars().first()

    def get_business_slugs(self, business_id: str) -> Dict[str, List[str]]:
        """Service and area slugs linked to a business."""
        with self._session_scope('business relations fetch') as session:
            services = session.execute(
                select(ServiceType.slug)
                .join(BusinessService, BusinessService.service_type_id == ServiceType.id)
                .where(BusinessService.business_id == business_id)
                .order_by(ServiceType.slug)
            ).scalars().all()
            areas = session.execute(
                select(ServiceArea.slug)
                .join(BusinessServiceArea, BusinessServiceArea.service_area_id == ServiceArea.id)
                .where(BusinessServiceArea.business_id == business_id)
                .order_by(ServiceArea.slug)
            ).scalars().all()
        return {'services': list(services), 'service_areas': list(areas)}

    # ── Reference data ───────────────────────────────────────────────────────

    def resolve_service_ids(self, slugs: List[str]) -> Dict[str, str]:
        """slug → id for the slugs that exist."""
        return self._resolve_slugs('service slug resolution', ServiceType, slugs)

    def resolve_area_ids(self, slugs: List[str]) -> Dict[str, str]:
        return self._resolve_slugs('area slug resolution', ServiceArea, slugs)

    def _resolve_slugs(self, what, model, slugs) -> Dict[str, str]:
        if not slugs:
            return {}
        with self._session_scope(what) as session:
            rows = session.execute(
                select(model.slug, model.id).where(model.slug.in_(list(slugs)))
            ).all()
        return {slug: id_ for slug, id_ in rows}

    def ensure_reference_data(self, services: Dict[str, str] = None, areas: Dict[str, str] = None) -> int:
        """Insert any missing service types / service areas. Returns rows added."""
        services = SERVICE_TYPES if services is None else services
        areas = SERVICE_AREAS if areas is None else areas
        added = 0
        with self._session_scope('reference data upsert') as session:
            for model, entries in ((ServiceType, services), (ServiceArea, areas)):
                existing = set(session.execute(select(model.slug)).scalars().all())
                for slug, name in entries.items():
                    if slug not in existing:
                        session.add(model(slug=slug, name=name))
                        added += 1
        if added:
            logger.info("Seeded %d reference data rows", added)
        return added

    # ── Ingestion runs ───────────────────────────────────────────────────────

    def insert_run(self, source, instance_key: str, params: Dict[str, Any], created_by: str) -> str:
        with self._session_scope('ingestion run insert') as session:
            run = IngestionRun(
                source=_value(source),
                instance_key=instance_key,
                status='running',
                started_at=utcnow(),
                params=params or {},
                created_by=created_by,
            )
            session.add(run)
            session.flush()
            return run.id

    def finish_run(self, run_id: str, status, stats: Dict[str, Any]) -> bool:
        """Terminal transition, only from 'running'. False if the run was not running."""
        with self._session_scope('ingestion run update') as session:
            result = session.execute(
                update(IngestionRun)
                .where(IngestionRun.id == run_id, IngestionRun.status == 'running')
                .values(status=_value(status), ended_at=utcnow(), stats=stats)
            )
            return result.rowcount == 1

    def get_run(self, run_id: str) -> Optional[IngestionRun]:
        with self._session_scope('ingestion run fetch') as session:
            return session.get(IngestionRun, run_id)

    def list_runs(self, source=None, instance_key=None, status=None, limit=50) -> List[IngestionRun]:
        with self._session_scope('ingestion run list') as session:
            stmt = select(IngestionRun)
            if source:
                stmt = stmt.where(IngestionRun.source == _value(source))
            if instance_key:
                stmt = stmt.where(IngestionRun.instance_key == instance_key)
            if status:
                stmt = stmt.where(IngestionRun.status == _value(status))
            stmt = stmt.order_by(IngestionRun.started_at.desc()).limit(limit)
            return list(session.execute(stmt).scalars().all())

    # ── Admin reads ──────────────────────────────────────────────────────────

    def get_raw_lead(self, raw_lead_id: str) -> Optional[RawLead]:
        with self._session_scope('raw lead fetch') as session:
            return session.get(RawLead, raw_lead_id)

    def list_raw_leads(self, run_id: str) -> List[RawLead]:
        with self._session_scope('raw lead list') as session:
            return list(session.execute(
                select(RawLead).where(RawLead.ingestion_run_id == run_id).order_by(RawLead.fetched_at)
            ).scalars().all())

    def list_evidence(self, raw_lead_id: str) -> List[LeadEvidence]:
        with self._session_scope('evidence list') as session:
            return list(session.execute(
                select(LeadEvidence).where(LeadEvidence.raw_lead_id == raw_lead_id)
            ).scalars().all())

    def list_matches(self, raw_lead_id: str) -> List[LeadMatch]:
        with self._session_scope('lead match list') as session:
            return list(session.execute(
                select(LeadMatch).where(LeadMatch.raw_lead_id == raw_lead_id).order_by(LeadMatch.created_at)
            ).scalars().all())


def _name_tokens(name: Optional[str]) -> List[str]:
    """Alphanumeric tokens of length ≥ 2, lowercased."""
    if not name:
        return []
    return [t for t in _NAME_TOKEN_SPLIT.split(name.lower()) if len(t) >= 2]


def build_store(database_url: str = None) -> IngestionStore:
    """Store wired to DATABASE_URL (or the given URL). Used by the CLI, RQ jobs and wsgi."""
    from directory.config import DATABASE_URL
    from directory.database import import_models, make_engine, make_session_factory

    import_models()
    engine = make_engine(database_url or DATABASE_URL)
    return IngestionStore(make_session_factory(engine))
