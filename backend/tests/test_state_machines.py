# Overview: Pytest coverage for document lifecycle transition tables.

import itertools

import pytest

from routewise.errors import StateError, ValidationError
from routewise.services.state_machines import (
    ADVANCE_MACHINE,
    INVOICE_MACHINE,
    ITINERARY_MACHINE,
    QUOTATION_MACHINE,
    AdvanceStatus,
    InvoiceStatus,
    ItineraryStatus,
    QuotationStatus,
)

Q, I, F, A = QuotationStatus, ItineraryStatus, InvoiceStatus, AdvanceStatus

EXPECTED = [
    (
        QUOTATION_MACHINE,
        {(Q.DRAFT, Q.SENT), (Q.DRAFT, Q.APPROVED), (Q.SENT, Q.APPROVED), (Q.SENT, Q.REJECTED), (Q.SENT, Q.EXPIRED)},
    ),
    (
        ITINERARY_MACHINE,
        {(I.SCHEDULED, I.IN_PROGRESS), (I.SCHEDULED, I.CANCELLED), (I.IN_PROGRESS, I.COMPLETED), (I.IN_PROGRESS, I.CANCELLED)},
    ),
    (
        INVOICE_MACHINE,
        {(F.DRAFT, F.SENT), (F.DRAFT, F.CANCELLED), (F.SENT, F.PAID), (F.SENT, F.CANCELLED), (F.SENT, F.VOID), (F.PAID, F.VOID)},
    ),
    (
        ADVANCE_MACHINE,
        {
            (A.DRAFT, A.PENDING), (A.PENDING, A.APPROVED), (A.APPROVED, A.DISBURSED), (A.DISBURSED, A.SETTLED),
            (A.DRAFT, A.CANCELLED), (A.PENDING, A.CANCELLED), (A.APPROVED, A.CANCELLED), (A.DISBURSED, A.CANCELLED),
        },
    ),
]


@pytest.mark.parametrize("machine,edges", EXPECTED, ids=lambda v: getattr(v, "document", None))
def test_transition_table_is_exact(machine, edges):
    assert machine.edges() == edges
    for src, dst in itertools.product(machine.status_enum, repeat=2):
        assert machine.can_transition(src, dst) == ((src, dst) in edges)


@pytest.mark.parametrize("machine,edges", EXPECTED, ids=lambda v: getattr(v, "document", None))
def test_illegal_edges_raise_state_error(machine, edges):
    for src, dst in itertools.product(machine.status_enum, repeat=2):
        if (src, dst) in edges:
            assert machine.require(src.value, dst.value) == dst
        else:
            with pytest.raises(StateError):
                machine.require(src.value, dst.value)


def test_terminal_states():
    assert {s for s in Q if QUOTATION_MACHINE.is_terminal(s)} == {Q.APPROVED, Q.REJECTED, Q.EXPIRED}
    assert {s for s in I if ITINERARY_MACHINE.is_terminal(s)} == {I.COMPLETED, I.CANCELLED}
    assert {s for s in F if INVOICE_MACHINE.is_terminal(s)} == {F.CANCELLED, F.VOID}
    assert {s for s in A if ADVANCE_MACHINE.is_terminal(s)} == {A.SETTLED, A.CANCELLED}


def test_unknown_status_is_validation_error():
    with pytest.raises(ValidationError):
        QUOTATION_MACHINE.coerce("archived")
    with pytest.raises(ValidationError):
        INVOICE_MACHINE.can_transition("draft", "refunded")
