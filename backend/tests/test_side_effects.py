# Overview: Pytest coverage for transactional units and post-commit side effects.

import logging

import pytest
from sqlalchemy.orm.exc import StaleDataError

from routewise.collaborators import Notifier
from routewise.errors import ValidationError
from routewise.models import Driver
from routewise.services import quotation_service
from routewise.services.concurrency import fire_side_effect, run_unit


class BrokenNotifier(Notifier):
    def notify(self, event):
        raise RuntimeError("SMTP relay unreachable")


def test_failed_notification_keeps_transition(caplog, make_quotation, tenant_a):
    quotation = make_quotation()
    with caplog.at_level(logging.ERROR):
        approved = quotation_service.approve_quotation(tenant_a.id, quotation.id, notifier=BrokenNotifier())

    assert approved.status == "approved"
    assert quotation_service.get_quotation(tenant_a.id, quotation.id).status == "approved"
    assert "Side effect notify_quotation_approved failed" in caplog.text


def test_side_effect_failure_returns_none(app, db_session):
    def explode():
        raise RuntimeError("boom")

    assert fire_side_effect("explode", explode) is None
    assert fire_side_effect("answer", lambda: 42) == 42


def test_unit_rolls_back_on_domain_error(db_session, tenant_a):
    def _op():
        db_session.add(Driver(tenant_id=tenant_a.id, first_name="Luis", last_name="Mejia"))
        db_session.flush()
        raise ValidationError("license expired")

    with pytest.raises(ValidationError):
        run_unit(_op)
    assert db_session.query(Driver).count() == 0


def test_unit_retries_stale_data(db_session):
    calls = []

    def _op():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("row changed underneath")
        return "ok"

    assert run_unit(_op, backoff_base=0) == "ok"
    assert len(calls) == 2


def test_unit_gives_up_after_attempts(db_session):
    def _op():
        raise StaleDataError("always stale")

    with pytest.raises(StaleDataError):
        run_unit(_op, attempts=2, backoff_base=0)
