"""Shared test fixtures."""
from datetime import datetime, timezone

import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from directory.database import Base, import_models, make_session_factory
from directory.pipeline.schemas import validate_lead
from directory.pipeline.types import IngestionSource
from directory.services.business_registry import BusinessRegistry
from directory.services.store import IngestionStore

FETCHED_AT = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across threads."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine):
    """IngestionStore over the in-memory database, with reference data seeded."""
    s = IngestionStore(make_session_factory(db_engine))
    s.ensure_reference_data()
    return s


@pytest.fixture
def registry(store):
    return BusinessRegistry(store)


@pytest.fixture
def run_id(store):
    """A running ingestion run to attach raw leads to."""
    return store.insert_run(IngestionSource.SEED, 'test-instance', {}, 'pytest')


@pytest.fixture
def make_lead():
    """Factory fixture — builds a validated NormalizedLead with sensible defaults."""
    def _make(**overrides):
        data = dict(
            source=IngestionSource.GOOGLE_PLACES,
            source_url=None,
            source_external_id=None,
            raw_payload={'name': overrides.get('name', 'Perth Pro Plumbing')},
            payload_hash='hash-' + overrides.get('name', 'Perth Pro Plumbing'),
            fetched_at=FETCHED_AT,
            name='Perth Pro Plumbing',
            evidence=[
                {'type': 'name', 'value': overrides.get('name', 'Perth Pro Plumbing'),
                 'confidence': 0.95, 'provenance': 'pytest', 'observed_at': FETCHED_AT},
            ],
        )
        data.update(overrides)
        return validate_lead(data)
    return _make


@pytest.fixture
def make_business(registry, store):
    """Factory fixture — creates a business through the registry, optionally forcing status."""
    def _make(status=None, **overrides):
        data = dict(
            trading_name='Perth Pro Plumbing',
            phone='(08) 9000 1234',
            email='office@perthpro.com.au',
            license_number='PL12345',
            services=['general-plumbing'],
            service_areas=['perth'],
            website='https://www.perthpro.com.au',
            street_address='1 King St, Perth WA 6000',
            suburb='Perth',
        )
        data.update(overrides)
        created = registry.create_business(data)
        if status:
            store.update_business(created.business_id, {'status': status})
        return store.get_business(created.business_id)
    return _make


@pytest.fixture
def mock_queue():
    """Stand-in RQ queue; records enqueue calls."""
    queue = MagicMock()
    queue.enqueue.return_value = MagicMock(id='job-1')
    return queue


@pytest.fixture
def app(store, mock_queue):
    """Flask test app wired to the in-memory store."""
    from directory import create_app
    app = create_app(store=store, queue=mock_queue)
    app.config['TESTING'] = True
    app.config['ADMIN_API_TOKEN'] = None
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c
