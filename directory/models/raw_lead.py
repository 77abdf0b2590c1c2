"""
RawLead model — immutable audit copy of one ingested payload.

Only business_id is written after insert (back-link once matched/created).
"""
from sqlalchemy import Column, Text, DateTime, JSON, ForeignKey

from directory.database import Base, new_id


class RawLead(Base):
    __tablename__ = 'raw_leads'

    id = Column(Text, primary_key=True, default=new_id)
    ingestion_run_id = Column(Text, ForeignKey('ingestion_runs.id'), nullable=False, index=True)
    source = Column(Text, nullable=False)
    source_url = Column(Text, nullable=True)
    source_external_id = Column(Text, nullable=True)
    payload = Column(JSON, nullable=False)
    payload_hash = Column(Text, nullable=False, index=True)
    fetched_at = Column(DateTime(timezone=True), nullable=False)
    business_id = Column(Text, nullable=True, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'ingestion_run_id': self.ingestion_run_id,
            'source': self.source,
            'source_url': self.source_url,
            'source_external_id': self.source_external_id,
            'payload': self.payload,
            'payload_hash': self.payload_hash,
            'fetched_at': self.fetched_at.isoformat() if self.fetched_at else None,
            'business_id': self.business_id,
        }
