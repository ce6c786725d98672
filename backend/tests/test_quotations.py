# Overview: Pytest coverage for quotation pricing, freezing and lifecycle.

"""
Quotation Service Tests

Test Coverage:
- Creation freezes every cost component in local and USD cents
- Later parameter changes do not touch existing quotations
- Reprice is explicit, draft-only and audited
- Lifecycle transitions, follow-up reminders and approval notification
- Plan limits and tenant status gate creation
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from routewise.collaborators import StaticRateProvider
from routewise.errors import LimitError, NotFoundError, StateError, ValidationError
from routewise.models import DocumentSequence, Quotation, Vehicle
from routewise.services import audit_service, quotation_service, reminder_service
from routewise.services.tenant_service import set_parameters
from routewise.time_utils import utcnow


class TestCreateQuotation:
    def test_snapshot_is_frozen_in_cents(self, make_quotation):
        quotation = make_quotation()

        assert quotation.status == "draft"
        assert quotation.local_currency == "HNL"
        assert quotation.exchange_rate == Decimal("25")
        assert quotation.estimated_days == 1
        assert quotation.fuel_cost_cents == 250000
        assert quotation.refueling_cost_cents == 0
        assert quotation.driver_meals_cost_cents == 15000
        assert quotation.driver_incentive_cost_cents == 20000
        assert quotation.vehicle_distance_cost_cents == 125000
        assert quotation.vehicle_daily_cost_cents == 200000
        assert quotation.total_cost_cents == 610000
        assert quotation.total_cost_usd_cents == 24400
        assert quotation.selected_markup_bps == 2000
        assert quotation.sale_price_cents == 732000
        assert quotation.sale_price_usd_cents == 29280

    def test_number_without_client_is_short_form(self, make_quotation):
        quotation = make_quotation()
        assert quotation.quotation_number.endswith("-C00001")
        assert len(quotation.quotation_number) == len("2610-C00001")

    def test_client_discount_and_long_number(self, db_session, make_quotation, hotel_client):
        hotel_client.discount_percentage = Decimal("10")
        db_session.commit()

        quotation = make_quotation(client_id=hotel_client.id, group_leader_name="Carlos Perez", group_size=8)
        assert quotation.client_discount_bps == 1000
        assert quotation.sale_price_cents == 658800
        assert quotation.quotation_number.endswith("-C00001-HOTR-Carlos_Perez_x_08")

    def test_explicit_markup(self, make_quotation):
        quotation = make_quotation(markup_percentage=30)
        assert quotation.sale_price_cents == 793000

    def test_negative_markup_rejected(self, make_quotation):
        with pytest.raises(ValidationError):
            make_quotation(markup_percentage=-5)

    def test_missing_origin_rejected(self, make_quotation):
        with pytest.raises(ValidationError):
            make_quotation(origin="  ")

    def test_missing_base_location_rejected(self, db_session, tenant_a, make_quotation):
        bare = Vehicle(tenant_id=tenant_a.id, name="Sin base", fuel_efficiency=Decimal("10"))
        db_session.add(bare)
        db_session.commit()
        with pytest.raises(ValidationError):
            make_quotation(vehicle_id=bare.id)

    def test_missing_rate_rejected_without_consuming_number(self, db_session, make_quotation):
        with pytest.raises(ValidationError):
            make_quotation(rate_provider=StaticRateProvider({}))
        assert db_session.query(Quotation).count() == 0
        assert db_session.query(DocumentSequence).count() == 0

    def test_custom_tenant_rate_wins(self, db_session, tenant_a, params, make_quotation):
        set_parameters(tenant_a.id, use_custom_exchange_rate=True, custom_exchange_rate=Decimal("24.5"))
        db_session.commit()
        quotation = make_quotation()
        assert quotation.exchange_rate == Decimal("24.5")

    def test_requires_active_parameters(self, db_session, tenant_b, vehicle_b, collaborators, plan_limits):
        with pytest.raises(ValidationError):
            quotation_service.create_quotation(
                tenant_b.id,
                vehicle_id=vehicle_b.id,
                plan_limits=plan_limits,
                rate_provider=collaborators.rate_provider,
                origin="San Pedro Sula",
                destination="Tela",
                total_distance_km=100,
            )

    def test_foreign_vehicle_not_found(self, make_quotation, vehicle_b):
        with pytest.raises(NotFoundError):
            make_quotation(vehicle_id=vehicle_b.id)

    def test_created_event_recorded(self, make_quotation, tenant_a):
        quotation = make_quotation()
        events = audit_service.list_events(tenant_a.id, "quotation", quotation.id)
        assert [e.event_type for e in events] == ["QUOTATION_CREATED"]


class TestPlanLimits:
    def test_monthly_limit(self, db_session, tenant_a, make_quotation):
        tenant_a.max_quotations_per_month = 1
        db_session.commit()

        make_quotation()
        with pytest.raises(LimitError) as exc:
            make_quotation()
        assert exc.value.details == {"current_count": 1, "limit": 1}

    @pytest.mark.parametrize("status", ["suspended", "cancelled", "trial_expired"])
    def test_inactive_tenant(self, db_session, tenant_a, make_quotation, status):
        tenant_a.status = status
        db_session.commit()
        with pytest.raises(LimitError):
            make_quotation()

    def test_expired_trial(self, db_session, tenant_a, make_quotation):
        tenant_a.plan = "trial"
        tenant_a.trial_ends_at = utcnow() - timedelta(days=1)
        db_session.commit()
        with pytest.raises(LimitError):
            make_quotation()


class TestFreezeAndReprice:
    def test_parameter_change_does_not_alter_existing(self, db_session, tenant_a, make_quotation):
        quotation = make_quotation()
        set_parameters(tenant_a.id, fuel_price=Decimal("200"))
        db_session.commit()

        reloaded = quotation_service.get_quotation(tenant_a.id, quotation.id)
        assert reloaded.fuel_cost_cents == 250000
        assert reloaded.sale_price_cents == 732000

    def test_reprice_uses_current_parameters_and_keeps_rate(self, db_session, tenant_a, make_quotation, collaborators):
        quotation = make_quotation()
        set_parameters(tenant_a.id, fuel_price=Decimal("200"))
        db_session.commit()

        repriced = quotation_service.reprice_quotation(
            tenant_a.id, quotation.id, rate_provider=StaticRateProvider({"HNL": "20"}), reason="Fuel up"
        )
        assert repriced.exchange_rate == Decimal("25")
        assert repriced.fuel_cost_cents == 500000
        assert repriced.total_cost_cents == 860000
        assert repriced.sale_price_cents == 1032000

        events = audit_service.list_events(tenant_a.id, "quotation", quotation.id)
        assert events[-1].event_type == "QUOTATION_REPRICED"
        assert events[-1].note == "Fuel up"

    def test_reprice_refreshes_rate_on_request(self, tenant_a, make_quotation):
        quotation = make_quotation()
        repriced = quotation_service.reprice_quotation(
            tenant_a.id, quotation.id, rate_provider=StaticRateProvider({"HNL": "20"}), refresh_rate=True
        )
        assert repriced.exchange_rate == Decimal("20")
        assert repriced.sale_price_usd_cents == 36600

    def test_reprice_only_drafts(self, tenant_a, make_quotation, collaborators):
        quotation = make_quotation()
        quotation_service.send_quotation(tenant_a.id, quotation.id)
        with pytest.raises(StateError):
            quotation_service.reprice_quotation(tenant_a.id, quotation.id, rate_provider=collaborators.rate_provider)


class TestLifecycle:
    def test_send_sets_validity_and_schedules_followups(self, tenant_a, make_quotation):
        quotation = make_quotation()
        now = utcnow()
        sent = quotation_service.send_quotation(tenant_a.id, quotation.id, now=now)

        assert sent.status == "sent"
        assert sent.valid_until == now + timedelta(days=30)
        reminders = reminder_service.list_reminders(tenant_a.id, "quotation", quotation.id)
        assert [r.reminder_day for r in reminders] == [3, 7, 14]
        assert all(not r.processed for r in reminders)

    def test_approve_skips_followups_and_notifies(self, tenant_a, make_quotation, notifier):
        quotation = make_quotation()
        quotation_service.send_quotation(tenant_a.id, quotation.id)
        approved = quotation_service.approve_quotation(tenant_a.id, quotation.id, notifier=notifier)

        assert approved.status == "approved"
        assert approved.approved_at is not None
        reminders = reminder_service.list_reminders(tenant_a.id, "quotation", quotation.id)
        assert all(r.skipped for r in reminders)
        assert notifier.types() == ["quotation_approved"]
        assert notifier.events[0].amount_cents == 732000

    def test_direct_approval_from_draft(self, tenant_a, make_quotation, notifier):
        quotation = make_quotation()
        approved = quotation_service.approve_quotation(tenant_a.id, quotation.id, notifier=notifier)
        assert approved.status == "approved"

    def test_reject_requires_sent(self, tenant_a, make_quotation):
        quotation = make_quotation()
        with pytest.raises(StateError):
            quotation_service.reject_quotation(tenant_a.id, quotation.id)

        quotation_service.send_quotation(tenant_a.id, quotation.id)
        rejected = quotation_service.reject_quotation(tenant_a.id, quotation.id, reason="Too expensive")
        assert rejected.status == "rejected"

    def test_terminal_states_are_final(self, tenant_a, make_quotation, notifier):
        quotation = make_quotation()
        quotation_service.approve_quotation(tenant_a.id, quotation.id, notifier=notifier)
        with pytest.raises(StateError):
            quotation_service.send_quotation(tenant_a.id, quotation.id)

    def test_transition_events(self, tenant_a, make_quotation, notifier):
        quotation = make_quotation()
        quotation_service.send_quotation(tenant_a.id, quotation.id)
        quotation_service.approve_quotation(tenant_a.id, quotation.id, notifier=notifier)
        events = audit_service.list_events(tenant_a.id, "quotation", quotation.id)
        assert [e.event_type for e in events] == ["QUOTATION_CREATED", "QUOTATION_SENT", "QUOTATION_APPROVED"]
        assert (events[2].from_status, events[2].to_status) == ("sent", "approved")

    def test_expire_stale(self, tenant_a, make_quotation):
        stale = make_quotation()
        fresh = make_quotation()
        quotation_service.send_quotation(tenant_a.id, stale.id, now=utcnow() - timedelta(days=40))
        quotation_service.send_quotation(tenant_a.id, fresh.id)

        expired = quotation_service.expire_stale_quotations(tenant_a.id)
        assert [q.id for q in expired] == [stale.id]
        assert quotation_service.get_quotation(tenant_a.id, stale.id).status == "expired"
        assert quotation_service.get_quotation(tenant_a.id, fresh.id).status == "sent"

    def test_delete_only_drafts(self, db_session, tenant_a, make_quotation):
        draft = make_quotation()
        sent = make_quotation()
        quotation_service.send_quotation(tenant_a.id, sent.id)

        quotation_service.delete_quotation(tenant_a.id, draft.id)
        with pytest.raises(StateError):
            quotation_service.delete_quotation(tenant_a.id, sent.id)
        assert db_session.query(Quotation).count() == 1


class TestPreview:
    def test_preview_persists_nothing(self, db_session, tenant_a, vehicle, params, collaborators):
        preview = quotation_service.preview_quotation(
            tenant_a.id,
            vehicle_id=vehicle.id,
            rate_provider=collaborators.rate_provider,
            origin="San Pedro Sula",
            destination="Tela",
            total_distance_km=250,
            total_time_minutes=240,
        )
        assert preview["cost_breakdown"]["total_cost"] == 6100.0
        assert preview["exchange_rate"] == 25.0
        assert preview["suggested_markup"] == 22
        assert len(preview["pricing_options"]) == 5
        assert db_session.query(Quotation).count() == 0
        assert db_session.query(DocumentSequence).count() == 0
