"""
LeadMatch model — the matcher's verdict for a raw lead, recorded after the
applicator has acted on it.

business_id and raw_lead_id are weak references (no FK to businesses).
"""
from sqlalchemy import Column, Text, Float, DateTime

from directory.database import Base, new_id, utcnow


class LeadMatch(Base):
    __tablename__ = 'lead_matches'

    id = Column(Text, primary_key=True, default=new_id)
    raw_lead_id = Column(Text, nullable=False, index=True)
    business_id = Column(Text, nullable=True)
    match_score = Column(Float, nullable=False)
    match_strategy = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'raw_lead_id': self.raw_lead_id,
            'business_id': self.business_id,
            'match_score': self.match_score,
            'match_strategy': self.match_strategy,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
