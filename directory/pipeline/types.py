"""
Closed value sets and result records shared across the ingestion pipeline.

Every enum is a str subclass so values round-trip through JSON and Text
columns unchanged; always persist `.value`.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional


class IngestionSource(str, Enum):
    SEED = 'seed'
    DATAFORSEO_SERP_MAPS = 'dataforseo_serp_maps'
    DATAFORSEO_BUSINESS_LISTINGS = 'dataforseo_business_listings'
    GOOGLE_PLACES = 'google_places'


class IngestionStatus(str, Enum):
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


class ClaimType(str, Enum):
    NAME = 'name'
    PHONE = 'phone'
    ADDRESS = 'address'
    WEBSITE = 'website'
    CATEGORY = 'category'
    HOURS = 'hours'
    RATING = 'rating'
    REVIEW_COUNT = 'review_count'
    EMERGENCY_AVAILABLE = 'emergency_available'


class MatchStrategy(str, Enum):
    EXTERNAL_ID = 'external_id'
    DOMAIN = 'domain'
    PHONE = 'phone'
    NAME_SUBURB = 'name_suburb'
    NEW_CREATION = 'new_creation'
    NONE = 'none'


class IngestionAction(str, Enum):
    CREATED = 'created'
    UPDATED_DRAFT = 'updated_draft'
    SUGGESTED_UPDATES = 'suggested_updates'
    SKIPPED_PUBLISHED = 'skipped_published'


class UpdateStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class BusinessStatus(str, Enum):
    DRAFT = 'draft'
    PENDING_REVIEW = 'pending_review'
    PUBLISHED = 'published'
    SUSPENDED = 'suspended'


@dataclass(frozen=True)
class MatchResult:
    """Matcher verdict: business_id is None when no tier matched."""
    business_id: Optional[str]
    strategy: MatchStrategy
    confidence: float

    @classmethod
    def no_match(cls) -> 'MatchResult':
        return cls(business_id=None, strategy=MatchStrategy.NONE, confidence=0.0)


@dataclass
class IngestionResult:
    """Outcome of applying one lead."""
    success: bool
    action: IngestionAction
    business_id: Optional[str]
    lifecycle_state: str
    raw_lead_id: Optional[str]
    suggestions_count: Optional[int] = None
    match_strategy: Optional[MatchStrategy] = None
    error: Optional[str] = None

    def to_dict(self):
        d = asdict(self)
        d['action'] = self.action.value
        d['match_strategy'] = self.match_strategy.value if self.match_strategy else None
        return d


@dataclass
class ReviewOutcome:
    """Result of an approve call that did not raise."""
    suggestion_id: str
    status: UpdateStatus
    applied: bool
    reason: str = ''

    def to_dict(self):
        return {
            'suggestion_id': self.suggestion_id,
            'status': self.status.value,
            'applied': self.applied,
            'reason': self.reason,
        }
