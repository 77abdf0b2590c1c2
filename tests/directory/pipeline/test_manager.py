"""Tests for directory.pipeline.manager — batch runs, stats and the RQ launcher."""
import pytest
from unittest.mock import patch
from sqlalchemy import create_engine

from directory.database import Base, import_models, make_session_factory
from directory.errors import LeadValidationError, StorageError
from directory.pipeline import manager
from directory.pipeline.manager import launch_ingestion, run_ingestion, run_ingestion_job
from directory.pipeline.runs import IngestionRunTracker
from directory.pipeline.types import IngestionAction
from directory.services.store import IngestionStore


def _seed_payload(index, **overrides):
    payload = {
        'external_id': f'test-{index}',
        'name': f'Suburb {index} Plumbing',
        'phone': f'08 9{index:03d} 0000',
        'website': f'suburb{index}-plumbing.com.au',
        'address': f'{index} Main St, Perth WA 6000',
        'suburb': 'Perth',
        'services': ['general-plumbing'],
        'service_areas': ['perth'],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def file_store(tmp_path):
    """File-backed SQLite store; the in-memory pool cannot be shared by worker threads."""
    engine = create_engine(
        f'sqlite:///{tmp_path}/ingest.db',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    import_models()
    Base.metadata.create_all(engine)
    s = IngestionStore(make_session_factory(engine))
    s.ensure_reference_data()
    yield s
    engine.dispose()


# ── Synchronous runs ─────────────────────────────────────────────────────────

class TestRunIngestion:

    def test_stats_tally_each_outcome(self, store):
        payloads = [
            _seed_payload(1),
            _seed_payload(2, name=''),                 # invalid: no name
            _seed_payload(3, phone='INVALID_PHONE'),   # valid lead, business create fails
            _seed_payload(1),                          # same payload again
        ]
        batch = run_ingestion(store, 'seed', 'plumbers-perth', payloads, created_by='pytest')

        stats = batch.stats
        assert stats['total'] == 4
        assert stats['created'] == 1
        assert stats['invalid'] == 1
        assert stats['failed'] == 1
        assert stats['updated_draft'] == 1
        assert stats['repeat_payloads'] == 1
        assert stats['duration_ms'] >= 0

        assert [r['index'] for r in batch.invalid] == [1]
        assert len(batch.results) == 3

        run = store.get_run(batch.run_id)
        assert run.status == 'completed'
        assert run.stats == stats
        assert run.params == {'batch_size': 20, 'max_workers': 1}

    def test_invalid_payloads_leave_no_raw_lead(self, store):
        batch = run_ingestion(store, 'seed', 'k', [_seed_payload(1, name=None), 'not a dict'])
        assert batch.stats['invalid'] == 2
        assert store.list_raw_leads(batch.run_id) == []

    def test_malformed_payload_does_not_abort_run(self, store):
        def place(place_id, **extra):
            return {'place_id': place_id, 'name': f'{place_id} Plumbing',
                    'formatted_address': '3 Great Eastern Hwy, Midland WA 6056, Australia', **extra}

        payloads = [place('gp-1'), place('gp-bad', types=7), place('gp-2', geometry='not-an-object')]
        batch = run_ingestion(store, 'google_places', 'k', payloads)

        assert batch.stats['invalid'] == 1
        assert batch.invalid[0]['index'] == 1
        assert 'Malformed google_places payload' in batch.invalid[0]['error']
        assert len(batch.results) == 2
        assert store.get_run(batch.run_id).status == 'completed'

    def test_failed_create_keeps_raw_lead(self, store):
        batch = run_ingestion(store, 'seed', 'k', [_seed_payload(1, phone='INVALID_PHONE')])
        [result] = batch.results
        assert result.success is False
        assert [r.id for r in store.list_raw_leads(batch.run_id)] == [result.raw_lead_id]

    def test_suggestions_counted(self, store, make_business):
        make_business(phone='08 9001 0000', website=None)
        payload = _seed_payload(1, external_id=None, website=None, name='Perth Pro Plumbing')
        batch = run_ingestion(store, 'seed', 'k', [payload])
        assert batch.stats['suggested_updates'] == 1
        assert batch.stats['suggestions_created'] == batch.results[0].suggestions_count
        assert batch.results[0].suggestions_count >= 1

    def test_batch_size_does_not_change_outcome(self, store):
        payloads = [_seed_payload(i) for i in range(1, 6)]
        batch = run_ingestion(store, 'seed', 'k', payloads, batch_size=2)
        assert batch.stats['created'] == 5
        assert store.get_run(batch.run_id).params['batch_size'] == 2

    def test_threaded_chunks(self, file_store):
        payloads = [_seed_payload(i) for i in range(1, 9)]
        batch = run_ingestion(file_store, 'seed', 'k', payloads, batch_size=4, max_workers=4)
        assert batch.stats['created'] == 8
        assert batch.stats['failed'] == 0
        assert file_store.get_run(batch.run_id).status == 'completed'
        assert len(file_store.list_raw_leads(batch.run_id)) == 8

    def test_unknown_source_rejected_before_run(self, store):
        with pytest.raises(LeadValidationError, match='Unknown ingestion source'):
            run_ingestion(store, 'yellow_pages', 'k', [])
        assert store.list_runs() == []

    def test_bracket_failure_marks_run_failed(self, store):
        with patch.object(IngestionRunTracker, 'complete_run', side_effect=StorageError('run update failed')):
            with pytest.raises(StorageError):
                run_ingestion(store, 'seed', 'k', [_seed_payload(1)])
        [run] = store.list_runs()
        assert run.status == 'failed'
        assert run.stats == {'error': 'run update failed'}

    def test_results_serialise(self, store):
        batch = run_ingestion(store, 'seed', 'k', [_seed_payload(1)])
        d = batch.to_dict()
        assert d['run_id'] == batch.run_id
        assert d['results'][0]['action'] == IngestionAction.CREATED.value
        assert d['results'][0]['match_strategy'] == 'new_creation'


class TestDryRun:

    def test_normalizes_without_writes(self, store):
        batch = run_ingestion(store, 'seed', 'k', [_seed_payload(1), _seed_payload(2, rating=6.0)],
                              dry_run=True)
        assert batch.run_id is None
        assert batch.stats == {'total': 2, 'valid': 1, 'invalid': 1}
        assert batch.invalid[0]['index'] == 1
        assert store.list_runs() == []


# ── Background launch ────────────────────────────────────────────────────────

class TestLaunchIngestion:

    def test_enqueues_job_for_new_run(self, store, mock_queue):
        payloads = [_seed_payload(1)]
        run_id = launch_ingestion(store, 'seed', 'k', payloads, created_by='admin', queue=mock_queue)

        mock_queue.enqueue.assert_called_once_with(
            run_ingestion_job, run_id, 'seed', payloads, job_timeout=manager.INGESTION_JOB_TIMEOUT,
        )
        run = store.get_run(run_id)
        assert run.status == 'running'
        assert run.params == {'payload_count': 1}

    def test_enqueue_failure_fails_run(self, store, mock_queue):
        mock_queue.enqueue.side_effect = ConnectionError('redis down')
        with pytest.raises(ConnectionError):
            launch_ingestion(store, 'seed', 'k', [], queue=mock_queue)
        [run] = store.list_runs()
        assert run.status == 'failed'
        assert 'redis down' in run.stats['error']

    def test_job_processes_existing_run(self, store):
        run_id = IngestionRunTracker(store).create_run('seed', 'k')
        with patch('directory.services.store.build_store', return_value=store), \
             patch('directory.logging_config.configure_logging'):
            stats = run_ingestion_job(run_id, 'seed', [_seed_payload(1)])
        assert stats['created'] == 1
        assert store.get_run(run_id).status == 'completed'


class TestLazyQueue:

    def test_queue_built_once_on_first_use(self, monkeypatch):
        monkeypatch.setattr(manager, '_queue', None)
        with patch('rq.Queue') as queue_cls:
            first = manager._get_queue()
            second = manager._get_queue()
        queue_cls.assert_called_once()
        assert queue_cls.call_args.args[0] == manager.INGESTION_QUEUE_NAME
        assert first is second
