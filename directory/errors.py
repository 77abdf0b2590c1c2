"""
Domain exceptions for the ingestion pipeline and the suggestion review gate.
"""


class DirectoryError(Exception):
    """Base class for all domain errors raised by this package."""


class LeadValidationError(DirectoryError):
    """A lead (or a business submission built from it) failed schema checks."""

    def __init__(self, message, errors=None):
        self.errors = errors or []
        super().__init__(message)


class StorageError(DirectoryError):
    """A storage round-trip failed. Treated as transient for a single lead."""


class RunStateError(DirectoryError):
    """Terminal transition attempted on a run that is missing or not running."""

    def __init__(self, run_id, status=None):
        self.run_id = run_id
        self.status = status
        if status is None:
            msg = f"Ingestion run {run_id} not found"
        else:
            msg = f"Ingestion run {run_id} is already {status}"
        super().__init__(msg)


# ── Review gate ──────────────────────────────────────────────────────────────

class ReviewError(DirectoryError):
    """Base for errors surfaced to the admin reviewing a suggestion."""


class SuggestionNotFoundError(ReviewError):
    def __init__(self, suggestion_id):
        self.suggestion_id = suggestion_id
        super().__init__(f"Suggestion {suggestion_id} not found")


class AlreadyReviewedError(ReviewError):
    def __init__(self, suggestion_id, status):
        self.suggestion_id = suggestion_id
        self.status = status
        super().__init__(f"Suggestion is already {status}")


class FieldNotAllowedError(ReviewError):
    def __init__(self, field_name):
        self.field_name = field_name
        super().__init__(f'Field "{field_name}" is not in the allowed update list')


class BusinessNotFoundError(ReviewError):
    def __init__(self, business_id):
        self.business_id = business_id
        super().__init__(f"Target business {business_id} not found")
