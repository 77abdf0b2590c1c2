"""
Structured logging configuration.

configure_logging() is called once per process: by create_app(), by the RQ
job entry point and by the seed CLI. Output goes to stderr as text or as
single-line JSON (LOG_FORMAT), at LOG_LEVEL (default INFO).

Records logged inside run_context(run_id) carry that run id, so every line a
batch produces can be filtered by run in the log aggregator.
"""
import contextvars
import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone

_current_run_id = contextvars.ContextVar('ingestion_run_id', default=None)

# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'sqlalchemy.engine',
    'sqlalchemy.pool',
    'urllib3',
    'rq.worker',
    'redis',
]

TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s%(run_tag)s — %(message)s'


@contextmanager
def run_context(run_id):
    """Tag every record logged in this block (this thread / task) with run_id."""
    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


def current_run_id():
    return _current_run_id.get()


class RunContextFilter(logging.Filter):
    """Fills record.run_id from run_context() unless the call passed one in `extra`."""

    def filter(self, record):
        if not getattr(record, 'run_id', None):
            record.run_id = _current_run_id.get()
        record.run_tag = f' [run {record.run_id}]' if record.run_id else ''
        return True


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        run_id = getattr(record, 'run_id', None)
        if run_id:
            entry['run_id'] = run_id
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(app=None, level=None, fmt=None):
    """
    Install one stderr handler on the root logger, replacing any existing ones.

    Precedence for level and format: explicit argument, then the Flask app's
    LOG_LEVEL / LOG_FORMAT config, then the environment.
    """
    config = app.config if app is not None else {}
    level_name = (level or config.get('LOG_LEVEL') or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_format = (fmt or config.get('LOG_FORMAT') or os.getenv('LOG_FORMAT', 'text')).lower()
    numeric_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.addFilter(RunContextFilter())
    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
