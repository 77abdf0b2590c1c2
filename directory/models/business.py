"""
Business registry models — the directory listing plus its service/area links.

Ingestion reads these for matching and writes them only through
IngestionStore (create-with-relationships, narrow-field updates).
"""
from sqlalchemy import (
    Column, Text, Integer, Float, Boolean, DateTime, JSON, ForeignKey,
    UniqueConstraint,
)

from directory.database import Base, new_id, utcnow


class Business(Base):
    __tablename__ = 'businesses'

    id = Column(Text, primary_key=True, default=new_id)
    slug = Column(Text, nullable=False, unique=True)
    legal_name = Column(Text, nullable=False)
    trading_name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    phone = Column(Text, nullable=False, default='')
    normalized_phone = Column(Text, nullable=True, index=True)   # +61412345678
    email = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    website_domain = Column(Text, nullable=True, index=True)     # host, no www.
    street_address = Column(Text, nullable=True)
    suburb = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    postcode = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    years_experience = Column(Integer, nullable=True)
    emergency_available = Column(Boolean, nullable=False, default=False)
    raw_business_hours = Column(JSON, nullable=True)
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, nullable=True)
    external_place_id = Column(Text, nullable=True, index=True)
    edit_token_hash = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default='draft')  # draft/pending_review/published/suspended
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'legal_name': self.legal_name,
            'trading_name': self.trading_name,
            'description': self.description,
            'phone': self.phone,
            'email': self.email,
            'website': self.website,
            'street_address': self.street_address,
            'suburb': self.suburb,
            'state': self.state,
            'postcode': self.postcode,
            'years_experience': self.years_experience,
            'emergency_available': self.emergency_available,
            'raw_business_hours': self.raw_business_hours,
            'rating': self.rating,
            'review_count': self.review_count,
            'external_place_id': self.external_place_id,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class ServiceType(Base):
    __tablename__ = 'service_types'

    id = Column(Text, primary_key=True, default=new_id)
    slug = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)


class ServiceArea(Base):
    __tablename__ = 'service_areas'

    id = Column(Text, primary_key=True, default=new_id)
    slug = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)


class BusinessService(Base):
    __tablename__ = 'business_services'

    business_id = Column(Text, ForeignKey('businesses.id'), primary_key=True)
    service_type_id = Column(Text, ForeignKey('service_types.id'), primary_key=True)


class BusinessServiceArea(Base):
    __tablename__ = 'business_service_areas'

    business_id = Column(Text, ForeignKey('businesses.id'), primary_key=True)
    service_area_id = Column(Text, ForeignKey('service_areas.id'), primary_key=True)


class Credential(Base):
    """Licence record. Never verified automatically."""
    __tablename__ = 'credentials'

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Text, ForeignKey('businesses.id'), nullable=False)
    credential_type = Column(Text, nullable=False, default='plumbing_license')
    credential_number = Column(Text, nullable=False)
    issuing_authority = Column(Text, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    verification_notes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('business_id', 'credential_type', name='uq_credential_business_type'),
    )
