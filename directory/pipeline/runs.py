"""
Ingestion run bracket: create → complete | fail.

A run is an audit record around a batch, not a transaction. Failing a run
never rolls back the leads applied inside it.
"""
import logging
from typing import Any, Dict, List, Optional

from directory.errors import RunStateError
from directory.models.ingestion_run import IngestionRun
from directory.pipeline.types import IngestionSource, IngestionStatus

logger = logging.getLogger('pipeline.runs')


class IngestionRunTracker:

    def __init__(self, store):
        self.store = store

    def create_run(self, source, instance_key: str, params: Dict[str, Any] = None,
                   created_by: str = 'system') -> str:
        source = IngestionSource(source)
        run_id = self.store.insert_run(source, instance_key, params or {}, created_by)
        logger.info("Run %s started: source=%s instance=%s by=%s",
                    run_id, source.value, instance_key, created_by, extra={'run_id': run_id})
        return run_id

    def complete_run(self, run_id: str, stats: Dict[str, Any]):
        self._finish(run_id, IngestionStatus.COMPLETED, stats)
        logger.info("Run %s completed: %s", run_id, stats, extra={'run_id': run_id})

    def fail_run(self, run_id: str, error_message: str):
        self._finish(run_id, IngestionStatus.FAILED, {'error': error_message})
        logger.error("Run %s failed: %s", run_id, error_message, extra={'run_id': run_id})

    def _finish(self, run_id, status, stats):
        if not self.store.finish_run(run_id, status, stats):
            run = self.store.get_run(run_id)
            raise RunStateError(run_id, run.status if run else None)

    def get_run(self, run_id: str) -> Optional[IngestionRun]:
        return self.store.get_run(run_id)

    def list_runs(self, source=None, instance_key=None, status=None, limit=50) -> List[IngestionRun]:
        return self.store.list_runs(source=source, instance_key=instance_key, status=status, limit=limit)
