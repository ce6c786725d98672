# Overview: Document lifecycle state machines; closed status enums with explicit transition tables.

"""
RouteWise Document Lifecycles

================================================================================
PURPOSE: One closed status set and one transition table per document type
================================================================================

QUOTATION:
    draft -> sent -> {approved, rejected, expired}
    draft -> approved (direct approval, e.g. over the phone)

ITINERARY:
    scheduled -> {in_progress, cancelled}
    in_progress -> {completed, cancelled}

INVOICE:
    draft -> {sent, cancelled}
    sent -> {paid, cancelled, void}
    paid -> void (correction path)

EXPENSE ADVANCE:
    draft -> pending -> approved -> disbursed -> settled
    draft/pending/approved/disbursed -> cancelled

RULES:
1. Anything not in a table is rejected, including self-transitions.
2. Terminal states have no outgoing edges.
3. Services never compare status strings ad hoc; they call require().

================================================================================
"""

from __future__ import annotations

from enum import Enum

from ..errors import StateError, ValidationError


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ItineraryStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"
    VOID = "void"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class AdvanceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    SETTLED = "settled"
    CANCELLED = "cancelled"


# Account states; billing owns the changes, so there is no transition table
class TenantStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    TRIAL_EXPIRED = "trial_expired"


class StateMachine:
    """Transition table for one document type."""

    def __init__(self, document: str, status_enum, transitions: dict):
        self.document = document
        self.status_enum = status_enum
        self.transitions = {src: frozenset(dsts) for src, dsts in transitions.items()}

    def coerce(self, status) -> Enum:
        try:
            return self.status_enum(status.value if isinstance(status, Enum) else status)
        except ValueError:
            allowed = ", ".join(s.value for s in self.status_enum)
            raise ValidationError(f"Invalid {self.document} status '{status}'. Must be one of: {allowed}")

    def can_transition(self, current, target) -> bool:
        src = self.coerce(current)
        dst = self.coerce(target)
        return dst in self.transitions.get(src, frozenset())

    def require(self, current, target) -> Enum:
        """Return the target status or raise StateError for an illegal edge."""
        if not self.can_transition(current, target):
            src = self.coerce(current).value
            dst = self.coerce(target).value
            raise StateError(f"Cannot transition {self.document} from {src} to {dst}")
        return self.coerce(target)

    def is_terminal(self, status) -> bool:
        return not self.transitions.get(self.coerce(status))

    def edges(self) -> set[tuple[Enum, Enum]]:
        return {(src, dst) for src, dsts in self.transitions.items() for dst in dsts}


QUOTATION_MACHINE = StateMachine(
    "quotation",
    QuotationStatus,
    {
        QuotationStatus.DRAFT: {QuotationStatus.SENT, QuotationStatus.APPROVED},
        QuotationStatus.SENT: {QuotationStatus.APPROVED, QuotationStatus.REJECTED, QuotationStatus.EXPIRED},
    },
)

ITINERARY_MACHINE = StateMachine(
    "itinerary",
    ItineraryStatus,
    {
        ItineraryStatus.SCHEDULED: {ItineraryStatus.IN_PROGRESS, ItineraryStatus.CANCELLED},
        ItineraryStatus.IN_PROGRESS: {ItineraryStatus.COMPLETED, ItineraryStatus.CANCELLED},
    },
)

INVOICE_MACHINE = StateMachine(
    "invoice",
    InvoiceStatus,
    {
        InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.CANCELLED},
        InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.VOID},
        InvoiceStatus.PAID: {InvoiceStatus.VOID},
    },
)

ADVANCE_MACHINE = StateMachine(
    "expense advance",
    AdvanceStatus,
    {
        AdvanceStatus.DRAFT: {AdvanceStatus.PENDING, AdvanceStatus.CANCELLED},
        AdvanceStatus.PENDING: {AdvanceStatus.APPROVED, AdvanceStatus.CANCELLED},
        AdvanceStatus.APPROVED: {AdvanceStatus.DISBURSED, AdvanceStatus.CANCELLED},
        AdvanceStatus.DISBURSED: {AdvanceStatus.SETTLED, AdvanceStatus.CANCELLED},
    },
)
