"""
Database engine + session factory.

Nothing is created at import time — callers build an engine from a URL and
hand the session factory to IngestionStore. Defaults to SQLite for local dev,
Postgres in production.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase


class Base(DeclarativeBase):
    pass


def make_engine(database_url: str):
    """Create an engine with the right kwargs for SQLite vs Postgres."""
    # Railway injects postgres:// but SQLAlchemy 2.x requires postgresql://
    url = database_url.replace('postgres://', 'postgresql://', 1)

    if url.startswith('sqlite'):
        return create_engine(url, connect_args={'check_same_thread': False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


def make_session_factory(engine):
    """Sessions keep loaded attributes after commit so rows can leave the store."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def import_models():
    """Import every model module so Base.metadata knows all tables."""
    import importlib
    for name in ('business', 'ingestion_run', 'raw_lead', 'lead_evidence',
                 'lead_match', 'suggested_update'):
        importlib.import_module(f'directory.models.{name}')


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
