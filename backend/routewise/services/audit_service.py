# Overview: Service-layer operations for the document audit trail; append-only.

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import DocumentEvent
"""
Audit Trail Invariants

- Append-only: events are never updated or deleted.
- Written inside the same transaction as the change they describe, so an
  event exists if and only if the change committed.
- Payloads are small JSON objects (ids, amounts in cents, reasons); the
  document row stays the source of truth.
"""


def record_event(
    *,
    tenant_id: int,
    entity_type: str,
    entity_id: int,
    event_type: str,
    from_status: str | None = None,
    to_status: str | None = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
    occurred_at: Optional[datetime] = None,
) -> DocumentEvent:
    ev = DocumentEvent(
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        event_type=event_type,
        from_status=from_status,
        to_status=to_status,
        note=note[:255] if note else None,
        payload=json.dumps(payload, default=str, sort_keys=True) if payload else None,
    )
    if occurred_at is not None:
        ev.occurred_at = occurred_at
    db.session.add(ev)
    return ev


def record_transition(doc, entity_type: str, from_status, to_status, *, note: str | None = None, payload: dict | None = None) -> DocumentEvent:
    """Shorthand for a status change on a document row."""
    src = getattr(from_status, "value", from_status)
    dst = getattr(to_status, "value", to_status)
    return record_event(
        tenant_id=doc.tenant_id,
        entity_type=entity_type,
        entity_id=doc.id,
        event_type=f"{entity_type.upper()}_{dst.upper()}",
        from_status=src,
        to_status=dst,
        note=note,
        payload=payload,
    )


def list_events(tenant_id: int, entity_type: str, entity_id: int) -> list[DocumentEvent]:
    return (
        db.session.query(DocumentEvent)
        .filter_by(tenant_id=tenant_id, entity_type=entity_type, entity_id=entity_id)
        .order_by(DocumentEvent.occurred_at.asc(), DocumentEvent.id.asc())
        .all()
    )
