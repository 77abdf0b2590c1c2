"""
Ingestion Manager — batch orchestration around the lead applicator.

    create run → [normalize → apply] per lead, in chunks → complete run

Leads are independent: a chunk runs sequentially, or on a thread pool when
max_workers > 1. Per-lead failures are tallied in the stats; only a failure
in the bracketing itself marks the run failed.

launch_ingestion() does the same work in the background: it creates the run
and enqueues run_ingestion_job on RQ.
"""
import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from directory.config import (
    INGESTION_BATCH_SIZE, INGESTION_JOB_TIMEOUT, INGESTION_MAX_WORKERS, INGESTION_QUEUE_NAME,
)
from directory.errors import LeadValidationError, RunStateError, StorageError
from directory.logging_config import run_context
from directory.pipeline.applicator import LeadApplicator
from directory.pipeline.normalizer import get_normalizer
from directory.pipeline.runs import IngestionRunTracker
from directory.pipeline.types import IngestionAction, IngestionResult

logger = logging.getLogger('pipeline.manager')


# ── Lazy RQ queue (no Redis connection at import time) ───────────────────────

_queue = None

def _get_queue():
    global _queue
    if _queue is None:
        from directory.extensions import redis_client
        from rq import Queue
        _queue = Queue(INGESTION_QUEUE_NAME, connection=redis_client)
    return _queue


@dataclass
class IngestionBatch:
    """What a batch produced: the run, its stats and one result per valid lead."""
    run_id: Optional[str]
    stats: Dict[str, Any]
    results: List[IngestionResult] = field(default_factory=list)
    invalid: List[Dict[str, Any]] = field(default_factory=list)   # {'index', 'error', 'errors'}

    def to_dict(self):
        return {
            'run_id': self.run_id,
            'stats': self.stats,
            'results': [r.to_dict() for r in self.results],
            'invalid': self.invalid,
        }


def _empty_stats(total: int) -> Dict[str, Any]:
    return {
        'total': total,
        'created': 0,
        'updated_draft': 0,
        'suggested_updates': 0,
        'skipped_published': 0,
        'failed': 0,
        'invalid': 0,
        'suggestions_created': 0,
        'repeat_payloads': 0,
        'duration_ms': 0,
    }


# ── Public API ────────────────────────────────────────────────────────────────

def run_ingestion(
    store,
    source,
    instance_key: str,
    payloads: List[Dict[str, Any]],
    params: Dict[str, Any] = None,
    created_by: str = 'system',
    batch_size: int = INGESTION_BATCH_SIZE,
    max_workers: int = INGESTION_MAX_WORKERS,
    dry_run: bool = False,
    fetched_at: datetime = None,
) -> IngestionBatch:
    """
    Ingest a batch of raw payloads from one source, synchronously.

    dry_run only normalizes: no run, no raw leads, no business writes.
    """
    normalizer = get_normalizer(source)
    if dry_run:
        return _dry_run(normalizer, payloads, fetched_at)

    tracker = IngestionRunTracker(store)
    params = dict(params or {}, batch_size=batch_size, max_workers=max_workers)
    run_id = tracker.create_run(normalizer.source, instance_key, params, created_by)
    return process_run(store, run_id, source, payloads,
                       batch_size=batch_size, max_workers=max_workers, fetched_at=fetched_at)


def launch_ingestion(
    store,
    source,
    instance_key: str,
    payloads: List[Dict[str, Any]],
    params: Dict[str, Any] = None,
    created_by: str = 'system',
    queue=None,
) -> str:
    """Create a run and enqueue its processing as a background RQ job. Returns the run id."""
    normalizer = get_normalizer(source)
    tracker = IngestionRunTracker(store)
    params = dict(params or {}, payload_count=len(payloads))
    run_id = tracker.create_run(normalizer.source, instance_key, params, created_by)

    try:
        (queue or _get_queue()).enqueue(
            run_ingestion_job, run_id, normalizer.source.value, payloads,
            job_timeout=INGESTION_JOB_TIMEOUT,
        )
    except Exception as e:
        tracker.fail_run(run_id, f"Could not enqueue ingestion job: {e}")
        raise

    logger.info("Enqueued ingestion job for run %s (%d payloads)", run_id, len(payloads),
                extra={'run_id': run_id})
    return run_id


def run_ingestion_job(run_id: str, source: str, payloads: List[Dict[str, Any]],
                      batch_size: int = INGESTION_BATCH_SIZE, max_workers: int = INGESTION_MAX_WORKERS):
    """RQ entry point. Builds its own store from configuration."""
    from directory.logging_config import configure_logging
    from directory.services.store import build_store

    configure_logging()
    store = build_store()
    batch = process_run(store, run_id, source, payloads, batch_size=batch_size, max_workers=max_workers)
    return batch.stats


# ── Batch runner ──────────────────────────────────────────────────────────────

def process_run(
    store,
    run_id: str,
    source,
    payloads: List[Dict[str, Any]],
    batch_size: int = INGESTION_BATCH_SIZE,
    max_workers: int = INGESTION_MAX_WORKERS,
    fetched_at: datetime = None,
) -> IngestionBatch:
    """Normalize and apply every payload into an existing running run, then close it."""
    with run_context(run_id):
        return _process_run(store, run_id, source, payloads, batch_size, max_workers, fetched_at)


def _process_run(store, run_id, source, payloads, batch_size, max_workers, fetched_at) -> IngestionBatch:
    tracker = IngestionRunTracker(store)
    started = time.monotonic()
    batch = IngestionBatch(run_id=run_id, stats=_empty_stats(len(payloads)))

    try:
        normalizer = get_normalizer(source)
        applicator = LeadApplicator(store)
        batch_size = max(1, int(batch_size))

        def process_one(indexed):
            index, payload = indexed
            try:
                lead = normalizer.normalize(payload, fetched_at=fetched_at)
            except LeadValidationError as e:
                return index, None, False, e
            try:
                repeat = store.payload_hash_seen(lead.payload_hash)
            except StorageError as e:
                return index, _failed(str(e)), False, None
            return index, applicator.apply_lead(lead, run_id), repeat, None

        indexed = list(enumerate(payloads))
        for i in range(0, len(indexed), batch_size):
            chunk = indexed[i:i + batch_size]
            if max_workers > 1 and len(chunk) > 1:
                # Worker threads start with an empty context; carry the run tag over
                with ThreadPoolExecutor(max_workers=min(max_workers, len(chunk))) as executor:
                    futures = [executor.submit(contextvars.copy_context().run, process_one, item)
                               for item in chunk]
                    outcomes = [f.result() for f in futures]
            else:
                outcomes = [process_one(item) for item in chunk]

            for index, result, repeat, invalid in outcomes:
                _tally(batch, index, result, repeat, invalid)

            logger.info("Run %s: %d/%d payloads processed", run_id,
                        min(i + batch_size, len(indexed)), len(indexed))

        batch.stats['duration_ms'] = int((time.monotonic() - started) * 1000)
        tracker.complete_run(run_id, batch.stats)

    except Exception as e:
        logger.error("Run %s aborted: %s", run_id, e, exc_info=True)
        try:
            tracker.fail_run(run_id, str(e) or e.__class__.__name__)
        except RunStateError as state_error:
            logger.warning("Could not mark run %s failed: %s", run_id, state_error)
        raise

    return batch


def _dry_run(normalizer, payloads, fetched_at) -> IngestionBatch:
    batch = IngestionBatch(run_id=None, stats={'total': len(payloads), 'valid': 0, 'invalid': 0})
    for index, payload in enumerate(payloads):
        try:
            normalizer.normalize(payload, fetched_at=fetched_at)
            batch.stats['valid'] += 1
        except LeadValidationError as e:
            batch.stats['invalid'] += 1
            batch.invalid.append({'index': index, 'error': str(e), 'errors': e.errors})
    return batch


def _tally(batch: IngestionBatch, index, result, repeat, invalid):
    stats = batch.stats
    if invalid is not None:
        stats['invalid'] += 1
        batch.invalid.append({'index': index, 'error': str(invalid), 'errors': invalid.errors})
        return

    batch.results.append(result)
    if repeat:
        stats['repeat_payloads'] += 1
    if not result.success:
        stats['failed'] += 1
        return
    stats[result.action.value] += 1
    if result.action == IngestionAction.SUGGESTED_UPDATES:
        stats['suggestions_created'] += result.suggestions_count or 0


def _failed(message: str) -> IngestionResult:
    return IngestionResult(
        success=False,
        action=IngestionAction.SKIPPED_PUBLISHED,
        business_id=None,
        lifecycle_state='unknown',
        raw_lead_id=None,
        error=message,
    )
