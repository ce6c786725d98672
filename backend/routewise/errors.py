"""
Workflow error taxonomy.

Every failure raised by the services is a rejected operation on an
otherwise untouched document. Routes translate them to HTTP responses
using ``status_code``; nothing here is retried automatically.
"""


class WorkflowError(Exception):
    """Base class for all domain failures surfaced to callers."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(WorkflowError):
    """400-level input problem (missing field, zero rate, bad unit)."""
    status_code = 400


class StateError(WorkflowError):
    """Operation attempted against a document in an illegal state."""
    status_code = 409


class ConflictError(WorkflowError):
    """409-level duplicate creation (e.g., second itinerary for a quotation)."""
    status_code = 409


class LimitError(WorkflowError):
    """Tenant inactive or plan ceiling reached."""
    status_code = 403


class NotFoundError(WorkflowError):
    """Referenced id does not resolve within the tenant."""
    status_code = 404
