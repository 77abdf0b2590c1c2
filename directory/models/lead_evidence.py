"""
LeadEvidence model — one attribute claim extracted from a raw lead.
"""
from sqlalchemy import Column, Text, Float, DateTime, ForeignKey

from directory.database import Base, new_id


class LeadEvidence(Base):
    __tablename__ = 'lead_evidence'

    id = Column(Text, primary_key=True, default=new_id)
    raw_lead_id = Column(Text, ForeignKey('raw_leads.id'), nullable=False, index=True)
    claim_type = Column(Text, nullable=False)
    claim_value = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False)        # 0.0-1.0
    provenance = Column(Text, nullable=False)
    observed_at = Column(DateTime(timezone=True), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'raw_lead_id': self.raw_lead_id,
            'claim_type': self.claim_type,
            'claim_value': self.claim_value,
            'confidence': self.confidence,
            'provenance': self.provenance,
            'observed_at': self.observed_at.isoformat() if self.observed_at else None,
        }
