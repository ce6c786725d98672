# Overview: Pytest coverage for itinerary conversion, scheduling and lifecycle.

from datetime import datetime
from decimal import Decimal

import pytest

from routewise.errors import ConflictError, NotFoundError, StateError, ValidationError
from routewise.models import Driver, Itinerary
from routewise.services import advance_service, itinerary_service, quotation_service

START = datetime(2026, 11, 2, 7, 0)


class TestFromQuotation:
    def test_copies_frozen_price_and_rate(self, itinerary, approved_quotation, notifier):
        assert itinerary.status == "scheduled"
        assert itinerary.quotation_id == approved_quotation.id
        assert itinerary.agreed_price_cents == 732000
        assert itinerary.agreed_price_usd_cents == 29280
        assert itinerary.exchange_rate == Decimal("25")
        assert itinerary.local_currency == "HNL"
        assert itinerary.start_date == START
        assert itinerary.end_date == START
        assert itinerary.itinerary_number.endswith("-I00001")
        assert notifier.types() == ["quotation_approved", "itinerary_created"]

    def test_second_conversion_conflicts(self, itinerary, approved_quotation, tenant_a, notifier):
        with pytest.raises(ConflictError) as exc:
            itinerary_service.create_itinerary_from_quotation(
                tenant_a.id, approved_quotation.id, start_date=START, notifier=notifier
            )
        assert exc.value.details == {"itinerary_id": itinerary.id}

    def test_requires_approved_quotation(self, db_session, make_quotation, tenant_a, notifier):
        quotation = make_quotation()
        with pytest.raises(StateError):
            itinerary_service.create_itinerary_from_quotation(
                tenant_a.id, quotation.id, start_date=START, notifier=notifier
            )
        assert db_session.query(Itinerary).count() == 0

    def test_end_date_before_start_rejected(self, approved_quotation, tenant_a, notifier):
        with pytest.raises(ValidationError):
            itinerary_service.create_itinerary_from_quotation(
                tenant_a.id,
                approved_quotation.id,
                start_date=START,
                end_date=datetime(2026, 11, 1),
                notifier=notifier,
            )

    def test_multi_day_end_date(self, make_quotation, tenant_a, notifier):
        quotation = make_quotation(estimated_days=3)
        quotation_service.approve_quotation(tenant_a.id, quotation.id, notifier=notifier)
        itinerary = itinerary_service.create_itinerary_from_quotation(
            tenant_a.id, quotation.id, start_date=START, notifier=notifier
        )
        assert itinerary.end_date == datetime(2026, 11, 4, 7, 0)


class TestManualItinerary:
    def test_explicit_rate(self, tenant_a):
        itinerary = itinerary_service.create_itinerary(
            tenant_a.id,
            origin="Tegucigalpa",
            destination="Comayagua",
            start_date=START,
            total_distance_km=90,
            agreed_price_cents=500000,
            exchange_rate=Decimal("25"),
        )
        assert itinerary.quotation_id is None
        assert itinerary.agreed_price_usd_cents == 20000
        assert itinerary.base_location == "Tegucigalpa"

    def test_rate_from_provider(self, tenant_a, collaborators):
        itinerary = itinerary_service.create_itinerary(
            tenant_a.id,
            origin="Tegucigalpa",
            destination="Comayagua",
            start_date=START,
            total_distance_km=90,
            agreed_price_cents=500000,
            rate_provider=collaborators.rate_provider,
        )
        assert itinerary.exchange_rate == Decimal("25")

    def test_rate_required(self, tenant_a):
        with pytest.raises(ValidationError):
            itinerary_service.create_itinerary(
                tenant_a.id,
                origin="Tegucigalpa",
                destination="Comayagua",
                start_date=START,
                total_distance_km=90,
                agreed_price_cents=500000,
            )

    @pytest.mark.parametrize("price", [0, -100, None])
    def test_price_must_be_positive(self, tenant_a, price):
        with pytest.raises(ValidationError):
            itinerary_service.create_itinerary(
                tenant_a.id,
                origin="Tegucigalpa",
                destination="Comayagua",
                start_date=START,
                total_distance_km=90,
                agreed_price_cents=price,
                exchange_rate=25,
            )


class TestLifecycle:
    def test_start_and_complete(self, itinerary, tenant_a):
        started = itinerary_service.start_itinerary(tenant_a.id, itinerary.id)
        assert started.status == "in_progress"
        assert started.started_at is not None

        completed = itinerary_service.complete_itinerary(tenant_a.id, itinerary.id)
        assert completed.status == "completed"
        assert completed.completed_at is not None

    def test_cannot_complete_from_scheduled(self, itinerary, tenant_a):
        with pytest.raises(StateError):
            itinerary_service.complete_itinerary(tenant_a.id, itinerary.id)

    def test_cancel_records_reason(self, itinerary, tenant_a):
        cancelled = itinerary_service.cancel_itinerary(tenant_a.id, itinerary.id, reason="Group postponed")
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "Group postponed"

    def test_completed_is_terminal(self, completed_itinerary, tenant_a):
        with pytest.raises(StateError):
            itinerary_service.cancel_itinerary(tenant_a.id, completed_itinerary.id)


class TestAssignments:
    def test_assign_driver(self, itinerary, tenant_a, driver):
        updated = itinerary_service.assign_driver(tenant_a.id, itinerary.id, driver.id)
        assert updated.driver_id == driver.id

    def test_foreign_driver_not_found(self, db_session, itinerary, tenant_a, tenant_b):
        foreign = Driver(tenant_id=tenant_b.id, first_name="Ana", last_name="Lopez")
        db_session.add(foreign)
        db_session.commit()
        with pytest.raises(NotFoundError):
            itinerary_service.assign_driver(tenant_a.id, itinerary.id, foreign.id)

    def test_no_reassignment_after_completion(self, completed_itinerary, tenant_a, driver):
        with pytest.raises(StateError):
            itinerary_service.assign_driver(tenant_a.id, completed_itinerary.id, driver.id)


class TestDeleteAndList:
    def test_delete_scheduled(self, db_session, itinerary, tenant_a):
        itinerary_service.delete_itinerary(tenant_a.id, itinerary.id)
        assert db_session.query(Itinerary).count() == 0

    def test_delete_blocked_by_advance(self, itinerary, tenant_a):
        advance_service.create_expense_advance(tenant_a.id, itinerary.id, amount_cents=100000)
        with pytest.raises(StateError):
            itinerary_service.delete_itinerary(tenant_a.id, itinerary.id)

    def test_delete_blocked_once_started(self, itinerary, tenant_a):
        itinerary_service.start_itinerary(tenant_a.id, itinerary.id)
        with pytest.raises(StateError):
            itinerary_service.delete_itinerary(tenant_a.id, itinerary.id)

    def test_list_filters_by_status(self, itinerary, tenant_a):
        assert [i.id for i in itinerary_service.list_itineraries(tenant_a.id, status="scheduled")] == [itinerary.id]
        assert itinerary_service.list_itineraries(tenant_a.id, status="completed") == []
        with pytest.raises(ValidationError):
            itinerary_service.list_itineraries(tenant_a.id, status="parked")
