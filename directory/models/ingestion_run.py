"""
IngestionRun model — one row per batch, bracketing every lead applied in it.

ended_at is NULL exactly while status is 'running'.
"""
from sqlalchemy import Column, Text, DateTime, JSON

from directory.database import Base, new_id, utcnow


class IngestionRun(Base):
    __tablename__ = 'ingestion_runs'

    id = Column(Text, primary_key=True, default=new_id)
    source = Column(Text, nullable=False)
    instance_key = Column(Text, nullable=False)       # disambiguates concurrent runs per source
    status = Column(Text, nullable=False, default='running')
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    params = Column(JSON, default=dict)
    stats = Column(JSON, nullable=True)
    created_by = Column(Text, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'source': self.source,
            'instance_key': self.instance_key,
            'status': self.status,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'params': self.params or {},
            'stats': self.stats,
            'created_by': self.created_by,
        }
