"""
Suggestion review gate: pending → approved | rejected.

Both outcomes are terminal. Status writes are conditional on the row still
being pending, so a second reviewer gets AlreadyReviewedError instead of
overwriting reviewed_at / reviewed_by.
"""
import logging

from directory.config import REVIEW_ALLOWED_FIELDS
from directory.errors import (
    AlreadyReviewedError, BusinessNotFoundError, FieldNotAllowedError, StorageError,
    SuggestionNotFoundError,
)
from directory.pipeline.types import BusinessStatus, ReviewOutcome, UpdateStatus
from directory.services.business_registry import BusinessRegistry

logger = logging.getLogger('pipeline.review')


class SuggestionReviewGate:

    def __init__(self, store, registry: BusinessRegistry = None,
                 allowed_fields=REVIEW_ALLOWED_FIELDS):
        self.store = store
        self.registry = registry or BusinessRegistry(store)
        self.allowed_fields = frozenset(allowed_fields)

    def reject(self, suggestion_id: str, reviewer: str) -> ReviewOutcome:
        _require_reviewer(reviewer)
        self._pending(suggestion_id)
        self._transition(suggestion_id, UpdateStatus.REJECTED, reviewer)
        logger.info("Suggestion %s rejected by %s", suggestion_id, reviewer)
        return ReviewOutcome(suggestion_id=suggestion_id, status=UpdateStatus.REJECTED, applied=False)

    def approve(self, suggestion_id: str, reviewer: str) -> ReviewOutcome:
        """
        Apply a pending suggestion to its draft business.

        A business that has left draft gets the suggestion auto-rejected; the
        returned outcome says so (applied=False). Raises SuggestionNotFoundError,
        AlreadyReviewedError, FieldNotAllowedError or BusinessNotFoundError.
        """
        _require_reviewer(reviewer)
        suggestion = self._pending(suggestion_id)

        if suggestion.field_name not in self.allowed_fields:
            raise FieldNotAllowedError(suggestion.field_name)

        business = self.store.get_business(suggestion.business_id)
        if business is None:
            raise BusinessNotFoundError(suggestion.business_id)

        if business.status != BusinessStatus.DRAFT.value:
            self._transition(suggestion_id, UpdateStatus.REJECTED, reviewer)
            reason = f"Business is {business.status}, not draft; suggestion auto-rejected"
            logger.info("Suggestion %s: %s", suggestion_id, reason)
            return ReviewOutcome(
                suggestion_id=suggestion_id,
                status=UpdateStatus.REJECTED,
                applied=False,
                reason=reason,
            )

        if not self.registry.update_business(business.id, {suggestion.field_name: suggestion.suggested_value}):
            raise BusinessNotFoundError(business.id)

        # The business patch stands even if the audit write below does not.
        try:
            marked = self.store.set_suggestion_status(suggestion_id, UpdateStatus.APPROVED, reviewer)
        except StorageError as e:
            marked = False
            logger.error("Suggestion %s applied to business %s but not marked approved: %s",
                         suggestion_id, business.id, e)
        else:
            if not marked:
                logger.error("Suggestion %s applied to business %s but was reviewed concurrently",
                             suggestion_id, business.id)

        logger.info("Suggestion %s approved by %s: %s on %s",
                    suggestion_id, reviewer, suggestion.field_name, business.id)
        return ReviewOutcome(
            suggestion_id=suggestion_id,
            status=UpdateStatus.APPROVED,
            applied=True,
            reason='' if marked else 'business updated; approval not recorded',
        )

    def _pending(self, suggestion_id):
        suggestion = self.store.get_suggestion(suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(suggestion_id)
        if suggestion.status != UpdateStatus.PENDING.value:
            raise AlreadyReviewedError(suggestion_id, suggestion.status)
        return suggestion

    def _transition(self, suggestion_id, status, reviewer):
        if not self.store.set_suggestion_status(suggestion_id, status, reviewer):
            current = self.store.get_suggestion(suggestion_id)
            raise AlreadyReviewedError(suggestion_id, current.status if current else 'gone')


def _require_reviewer(reviewer):
    if not reviewer or not str(reviewer).strip():
        raise ValueError('reviewer is required')
