"""Tests for directory.services.store — IngestionStore against in-memory SQLite."""
from datetime import datetime, timezone

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from directory.errors import StorageError
from directory.models.business import Credential
from directory.pipeline.types import IngestionSource, MatchStrategy, UpdateStatus
from directory.services.store import IngestionStore, _name_tokens

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def _raw_lead(store, run_id, payload_hash='h1'):
    return store.insert_raw_lead(run_id, IngestionSource.SEED, {'k': 'v'}, payload_hash, NOW)


# ── Matcher lookups ──────────────────────────────────────────────────────────

class TestLookups:

    def test_external_id(self, store, make_business):
        biz = make_business(external_place_id='G123')
        assert store.find_by_external_id('G123') == biz.id
        assert store.find_by_external_id('G999') is None

    def test_domain_uses_derived_column(self, store, make_business):
        biz = make_business(website='https://www.PerthPro.com.au/contact')
        assert biz.website_domain == 'perthpro.com.au'
        assert store.find_by_domain('perthpro.com.au') == biz.id

    def test_phone_uses_derived_column(self, store, make_business):
        biz = make_business(phone='0412 345 678')
        assert biz.normalized_phone == '+61412345678'
        assert store.find_by_phone('+61412345678') == biz.id

    def test_ambiguous_identifier_returns_none(self, store, make_business):
        make_business(trading_name='A Plumbing', phone='0412 345 678', website=None)
        make_business(trading_name='B Plumbing', phone='61412345678', website=None)
        assert store.find_by_phone('+61412345678') is None

    def test_empty_value_never_queries(self, store):
        assert store.find_by_domain('') is None
        assert store.find_by_external_id(None) is None

    def test_name_suburb_all_tokens_case_insensitive(self, store, make_business):
        biz = make_business(trading_name='Perth Pro Plumbing', suburb='Perth')
        assert store.search_by_name_suburb('perth pro', 'PERTH') == biz.id
        assert store.search_by_name_suburb('Perth Pro Gas', 'Perth') is None
        assert store.search_by_name_suburb('Perth Pro', 'Fremantle') is None

    def test_name_suburb_requires_both(self, store, make_business):
        make_business()
        assert store.search_by_name_suburb('Perth Pro', None) is None
        assert store.search_by_name_suburb('', 'Perth') is None

    def test_name_tokens(self):
        assert _name_tokens("O'Brien & Sons Plumbing") == ['brien', 'sons', 'plumbing']


# ── Business writes ──────────────────────────────────────────────────────────

class TestBusinessWrites:

    def test_create_writes_relationships_and_credential(self, store, make_business):
        biz = make_business(services=['general-plumbing', 'gas-fitting'], service_areas=['perth', 'fremantle'])
        slugs = store.get_business_slugs(biz.id)
        assert slugs == {
            'services': ['gas-fitting', 'general-plumbing'],
            'service_areas': ['fremantle', 'perth'],
        }
        cred = store.get_credential(biz.id)
        assert cred.credential_number == 'PL12345'
        assert cred.verified is False
        assert cred.verification_notes == 'Awaiting manual verification'

    def test_create_is_atomic(self, store, db_engine):
        # Duplicate slug fails the business insert; no credential may survive it
        store.create_business_with_relationships(
            {'slug': 'dup', 'legal_name': 'A', 'trading_name': 'A'}, [], [], 'h', 'L1')
        with pytest.raises(StorageError):
            store.create_business_with_relationships(
                {'slug': 'dup', 'legal_name': 'B', 'trading_name': 'B'}, [], [], 'h', 'L2')
        from sqlalchemy.orm import Session
        with Session(db_engine) as s:
            assert s.query(Credential).filter_by(credential_number='L2').count() == 0

    def test_update_recomputes_derived_columns(self, store, make_business):
        biz = make_business()
        assert store.update_business(biz.id, {'phone': '0499 000 111', 'website': 'https://new.com.au'})
        fresh = store.get_business(biz.id)
        assert fresh.normalized_phone == '+61499000111'
        assert fresh.website_domain == 'new.com.au'

    def test_update_missing_business_returns_false(self, store):
        assert store.update_business('nope', {'email': 'a@b.co'}) is False

    def test_update_rejects_unknown_column(self, store, make_business):
        biz = make_business()
        with pytest.raises(ValueError):
            store.update_business(biz.id, {'favourite_colour': 'blue'})


# ── Audit trail ──────────────────────────────────────────────────────────────

class TestAuditTrail:

    def test_raw_lead_evidence_and_match(self, store, run_id):
        raw_id = _raw_lead(store, run_id)
        n = store.insert_evidence(raw_id, [
            {'type': 'name', 'value': 'X', 'confidence': 1.0, 'provenance': 'p', 'observed_at': NOW},
            {'type': 'phone', 'value': '1', 'confidence': 0.9, 'provenance': 'p', 'observed_at': NOW},
        ])
        assert n == 2
        store.insert_lead_match(raw_id, None, 0.0, MatchStrategy.NONE)

        assert {e.claim_type for e in store.list_evidence(raw_id)} == {'name', 'phone'}
        match = store.list_matches(raw_id)[0]
        assert match.match_strategy == 'none'
        assert [r.id for r in store.list_raw_leads(run_id)] == [raw_id]

    def test_empty_evidence_is_noop(self, store, run_id):
        assert store.insert_evidence(_raw_lead(store, run_id), []) == 0

    def test_link_raw_lead(self, store, run_id, make_business):
        biz = make_business()
        raw_id = _raw_lead(store, run_id)
        store.link_raw_lead(raw_id, biz.id)
        assert store.get_raw_lead(raw_id).business_id == biz.id

    def test_payload_hash_seen(self, store, run_id):
        assert store.payload_hash_seen('abc') is False
        _raw_lead(store, run_id, payload_hash='abc')
        assert store.payload_hash_seen('abc') is True


# ── Suggestions ──────────────────────────────────────────────────────────────

class TestSuggestions:

    def _suggest(self, store, run_id, biz_id, field='phone', confidence=0.85):
        raw_id = _raw_lead(store, run_id)
        [sid] = store.insert_suggested_updates([{
            'business_id': biz_id, 'raw_lead_id': raw_id, 'field_name': field,
            'current_value': 'old', 'suggested_value': 'new', 'confidence': confidence,
        }])
        return sid

    def test_status_change_only_from_pending(self, store, run_id, make_business):
        sid = self._suggest(store, run_id, make_business().id)
        assert store.set_suggestion_status(sid, UpdateStatus.REJECTED, 'alice') is True
        first = store.get_suggestion(sid)
        assert first.status == 'rejected'
        assert first.reviewed_by == 'alice'
        assert first.reviewed_at is not None

        assert store.set_suggestion_status(sid, UpdateStatus.APPROVED, 'bob') is False
        again = store.get_suggestion(sid)
        assert again.status == 'rejected'
        assert again.reviewed_by == 'alice'

    def test_list_filters(self, store, run_id, make_business):
        biz = make_business()
        low = self._suggest(store, run_id, biz.id, field='email', confidence=0.5)
        high = self._suggest(store, run_id, biz.id, field='phone', confidence=0.9)
        assert {s.id for s in store.list_suggestions(business_id=biz.id)} == {low, high}
        assert [s.id for s in store.list_suggestions(min_confidence=0.8)] == [high]
        assert [s.id for s in store.list_suggestions(field_name='email')] == [low]
        assert store.list_suggestions(status='approved') == []
        assert len(store.list_suggestions(limit=1)) == 1


# ── Runs ─────────────────────────────────────────────────────────────────────

class TestRuns:

    def test_finish_run_only_once(self, store, run_id):
        assert store.finish_run(run_id, 'completed', {'total': 0}) is True
        assert store.finish_run(run_id, 'failed', {'error': 'x'}) is False
        run = store.get_run(run_id)
        assert run.status == 'completed'
        assert run.stats == {'total': 0}
        assert run.ended_at is not None

    def test_list_runs_filters(self, store):
        a = store.insert_run('seed', 'perth', {}, 'me')
        b = store.insert_run(IngestionSource.GOOGLE_PLACES, 'perth', {}, 'me')
        store.insert_run('seed', 'bunbury', {}, 'me')
        assert {r.id for r in store.list_runs(instance_key='perth')} == {a, b}
        assert [r.id for r in store.list_runs(source='google_places')] == [b]
        assert store.list_runs(status='completed') == []


# ── Reference data & errors ──────────────────────────────────────────────────

class TestReferenceData:

    def test_ensure_reference_data_is_idempotent(self, store):
        assert store.ensure_reference_data() == 0
        assert set(store.resolve_service_ids(['general-plumbing', 'nope'])) == {'general-plumbing'}

    def test_resolve_empty(self, store):
        assert store.resolve_area_ids([]) == {}


class TestStorageErrors:

    def test_sqlalchemy_error_wrapped_and_rolled_back(self):
        session = MagicMock()
        session.execute.side_effect = OperationalError('SELECT', {}, Exception('db down'))
        store = IngestionStore(lambda: session)
        with pytest.raises(StorageError, match='domain lookup failed'):
            store.find_by_domain('perthpro.com.au')
        session.rollback.assert_called_once()
        session.close.assert_called_once()
        session.commit.assert_not_called()
