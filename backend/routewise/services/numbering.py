# Overview: Service-layer operations for document numbering; per-tenant sequence allocation and formatting.

from __future__ import annotations

import re
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import DocumentSequence, ExpenseAdvance, Invoice, Itinerary, Quotation
from ..time_utils import utcnow
from .concurrency import SequenceContentionError, lock_for_update

"""
Numbering invariants

- Format: {YYMM}-{Letter}{seq:05d}, e.g. 2512-F00005.
- Long form appends client code, leader name and group size:
  2512-C00005-HOTR-Carlos_Perez_x_08
- Sequences are per tenant and document type, never per month.
- next = max(every parseable number on record, high-water mark) + 1.
  Legacy numbers (QT-/IT-/INV-/ADV-YYYY-NNNN) count towards the max.
- Allocation happens inside the caller's transaction under a lock on the
  DocumentSequence row; the number is only real once the document commits.
"""

QUOTATION = "quotation"
ITINERARY = "itinerary"
INVOICE = "invoice"
EXPENSE_ADVANCE = "expense_advance"

TYPE_LETTERS = {
    QUOTATION: "C",
    ITINERARY: "I",
    INVOICE: "F",
    EXPENSE_ADVANCE: "A",
}

LEGACY_PREFIXES = {
    QUOTATION: "QT",
    ITINERARY: "IT",
    INVOICE: "INV",
    EXPENSE_ADVANCE: "ADV",
}

# (model, number column) per document type
DOCUMENT_MODELS = {
    QUOTATION: (Quotation, Quotation.quotation_number),
    ITINERARY: (Itinerary, Itinerary.itinerary_number),
    INVOICE: (Invoice, Invoice.invoice_number),
    EXPENSE_ADVANCE: (ExpenseAdvance, ExpenseAdvance.advance_number),
}

LEADER_NAME_MAX = 25
LEADER_NAME_PLACEHOLDER = "SIN_NOMBRE"

_CURRENT_RE = re.compile(r"^(\d{4})-([A-Z])(\d{5,})(?:-|$)")
_LEGACY_RE = re.compile(r"^(QT|IT|INV|ADV)-(\d{4})-(\d+)$")
_NAME_INVALID_RE = re.compile(r"[^A-Za-zÁÉÍÓÚáéíóúÑñÜü\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_COMPANY_SUFFIX_RE = re.compile(r"\s+(S\.?\s*A\.?|Inc\.?|LLC|Ltd\.?|Corp\.?|Company|Co\.?)$", re.IGNORECASE)


def _require_type(document_type: str) -> None:
    if document_type not in TYPE_LETTERS:
        raise ValidationError(f"Unknown document type: {document_type}")


def format_document_number(document_type: str, sequence: int, when: datetime | None = None) -> str:
    _require_type(document_type)
    when = when or utcnow()
    return f"{when:%y%m}-{TYPE_LETTERS[document_type]}{sequence:05d}"


def sanitize_leader_name(name: str | None) -> str:
    """
    Keep Latin letters (with Spanish diacritics) and whitespace, turn
    whitespace runs into underscores and cap at 25 characters.
    """
    cleaned = _NAME_INVALID_RE.sub("", name or "").strip()
    cleaned = _WHITESPACE_RE.sub("_", cleaned)[:LEADER_NAME_MAX].strip("_")
    return cleaned or LEADER_NAME_PLACEHOLDER


def client_code_from_name(name: str | None) -> str:
    """Four-letter client code derived from a display name."""
    cleaned = _COMPANY_SUFFIX_RE.sub("", (name or "").strip()).strip()
    words = [w for w in cleaned.split() if w]
    if not words:
        return "XXXX"
    if len(words) == 1:
        code = words[0][:4]
    elif len(words) == 2:
        code = words[0][:2] + words[1][:2]
    elif len(words) == 3:
        code = words[0][:2] + words[1][0] + words[2][0]
    else:
        code = "".join(w[0] for w in words[:4])
    return code.upper()


def format_long_document_number(
    short_number: str,
    *,
    client_code: str,
    leader_name: str | None,
    group_size: int,
) -> str:
    code = re.sub(r"[^A-Za-z0-9]", "", client_code or "").upper() or "XXXX"
    size = max(0, int(group_size or 0))
    return f"{short_number}-{code}-{sanitize_leader_name(leader_name)}_x_{size:02d}"


def extract_sequence(number: str | None, document_type: str | None = None) -> int | None:
    """
    Numeric sequence from a current or legacy document number.

    With `document_type`, numbers of another type (wrong letter or legacy
    prefix) are ignored. Unrecognized strings return None.
    """
    if not number:
        return None
    value = number.strip()

    m = _CURRENT_RE.match(value)
    if m:
        if document_type and m.group(2) != TYPE_LETTERS[document_type]:
            return None
        return int(m.group(3))

    m = _LEGACY_RE.match(value)
    if m:
        if document_type and m.group(1) != LEGACY_PREFIXES[document_type]:
            return None
        return int(m.group(3))

    return None


def scan_max_sequence(tenant_id: int, document_type: str) -> int:
    _require_type(document_type)
    model, column = DOCUMENT_MODELS[document_type]
    numbers = db.session.query(column).filter(model.tenant_id == tenant_id).all()
    best = 0
    for (number,) in numbers:
        seq = extract_sequence(number, document_type)
        if seq is not None and seq > best:
            best = seq
    return best


def _locked_sequence_row(tenant_id: int, document_type: str) -> DocumentSequence:
    query = db.session.query(DocumentSequence).filter_by(tenant_id=tenant_id, document_type=document_type)
    seq = lock_for_update(query).first()
    if seq:
        return seq

    seq = DocumentSequence(tenant_id=tenant_id, document_type=document_type, last_number=0)
    db.session.add(seq)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Lost the creation race; the retry wrapper re-runs the whole unit.
        raise SequenceContentionError(str(exc)) from exc
    return seq


def allocate_sequence(tenant_id: int, document_type: str) -> int:
    """
    Reserve the next sequence number for (tenant, type).

    Must run inside the caller's transaction (see run_unit); a rollback
    releases the number again.
    """
    _require_type(document_type)
    if not tenant_id:
        raise ValidationError("tenant_id is required")

    seq = _locked_sequence_row(tenant_id, document_type)
    next_number = max(scan_max_sequence(tenant_id, document_type), seq.last_number or 0) + 1
    seq.last_number = next_number
    db.session.flush()
    return next_number


def allocate_document_number(
    tenant_id: int,
    document_type: str,
    *,
    client=None,
    leader_name: str | None = None,
    group_size: int | None = None,
    when: datetime | None = None,
) -> tuple[str, int]:
    """
    Allocate a sequence and format the document number.

    The long form is used when a client is attached; the client's own code
    wins over one derived from its name.
    """
    sequence = allocate_sequence(tenant_id, document_type)
    number = format_document_number(document_type, sequence, when)
    if client is not None:
        code = client.code or client_code_from_name(client.display_name)
        number = format_long_document_number(
            number,
            client_code=code,
            leader_name=leader_name,
            group_size=group_size or 0,
        )
    return number, sequence
