"""
SuggestedUpdate model — a single-field patch waiting for an admin.

pending → approved | rejected, both terminal. reviewed_at / reviewed_by are
set exactly when status leaves 'pending'.
"""
from sqlalchemy import Column, Text, Float, DateTime

from directory.database import Base, new_id, utcnow


class SuggestedUpdate(Base):
    __tablename__ = 'suggested_updates'

    id = Column(Text, primary_key=True, default=new_id)
    business_id = Column(Text, nullable=False, index=True)
    raw_lead_id = Column(Text, nullable=False, index=True)
    field_name = Column(Text, nullable=False)
    current_value = Column(Text, nullable=True)
    suggested_value = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    status = Column(Text, nullable=False, default='pending')
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'raw_lead_id': self.raw_lead_id,
            'field_name': self.field_name,
            'current_value': self.current_value,
            'suggested_value': self.suggested_value,
            'confidence': self.confidence,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'status': self.status,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'reviewed_by': self.reviewed_by,
        }
