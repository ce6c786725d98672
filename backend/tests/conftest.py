"""
Pytest fixtures for RouteWise backend tests.

Provides test database setup, two tenants with operating parameters, fleet
rows, a recording notifier and helpers that walk documents through the
quote-to-cash chain.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from routewise import create_app
from routewise.collaborators import Notifier, StaticRateProvider, TenantPlanLimits
from routewise.extensions import db
from routewise.models import Client, Driver, Vehicle
from routewise.services import invoice_service, itinerary_service, quotation_service
from routewise.services.tenant_service import create_tenant, set_parameters


class RecordingNotifier(Notifier):
    """Keeps every event in memory instead of writing Notification rows."""

    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)

    def types(self):
        return [e.event_type for e in self.events]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        },
        rate_provider=StaticRateProvider({"HNL": "25"}),
        notifier=RecordingNotifier(),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions["routewise"].notifier.events.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def collaborators(app):
    return app.extensions["routewise"]


@pytest.fixture(scope='function')
def notifier(collaborators):
    return collaborators.notifier


@pytest.fixture(scope='function')
def plan_limits():
    return TenantPlanLimits()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first operator)."""
    tenant = create_tenant(company_name="Transportes Lopez", slug="lopez")
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second operator)."""
    tenant = create_tenant(company_name="Viajes Beta", slug="beta")
    db_session.commit()
    return tenant


def _parameters(tenant_id):
    return set_parameters(
        tenant_id,
        fuel_price=Decimal("100"),
        meal_cost_per_day=Decimal("150"),
        hotel_cost_per_night=Decimal("500"),
        driver_incentive_per_day=Decimal("200"),
        default_markup_percentage=Decimal("20"),
        tax_percentage=Decimal("15"),
        payment_terms_days=30,
        quotation_validity_days=30,
    )


@pytest.fixture(scope='function')
def params(db_session, tenant_a):
    """Active operating parameters for Tenant A (no toll fees)."""
    parameters = _parameters(tenant_a.id)
    db_session.commit()
    return parameters


@pytest.fixture(scope='function')
def params_b(db_session, tenant_b):
    parameters = _parameters(tenant_b.id)
    db_session.commit()
    return parameters


def _vehicle(tenant_id, name):
    return Vehicle(
        tenant_id=tenant_id,
        name=name,
        passenger_capacity=15,
        fuel_capacity=Decimal("100"),
        fuel_capacity_unit="gal",
        fuel_efficiency=Decimal("10"),
        fuel_efficiency_unit="km/gal",
        cost_per_distance=Decimal("5"),
        cost_per_day=Decimal("2000"),
        base_location="San Pedro Sula",
    )


@pytest.fixture(scope='function')
def vehicle(db_session, tenant_a):
    """Coaster: 100 gal tank, 10 km/gal, 5/km, 2000/day, based in San Pedro Sula."""
    row = _vehicle(tenant_a.id, "Coaster 01")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def vehicle_b(db_session, tenant_b):
    row = _vehicle(tenant_b.id, "Coaster B")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def driver(db_session, tenant_a):
    row = Driver(tenant_id=tenant_a.id, first_name="Carlos", last_name="Perez")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def hotel_client(db_session, tenant_a):
    row = Client(
        tenant_id=tenant_a.id,
        type="company",
        company_name="Hotel Real",
        code="HOTR",
        discount_percentage=Decimal("0"),
        payment_terms_days=15,
    )
    db_session.add(row)
    db_session.commit()
    return row


# Trip used throughout: 250 km, 4 hours -> 1 day.
# fuel 2500 + meals 150 + incentive 200 + distance 1250 + daily 2000 = 6100
TRIP = {
    "origin": "San Pedro Sula",
    "destination": "Tela",
    "total_distance_km": 250,
    "total_time_minutes": 240,
}


@pytest.fixture(scope='function')
def make_quotation(db_session, tenant_a, params, vehicle, collaborators, plan_limits):
    """Factory: draft quotation for Tenant A priced at the HNL 25 test rate."""

    def _make(**overrides):
        fields = dict(TRIP)
        fields.update(overrides)
        return quotation_service.create_quotation(
            tenant_a.id,
            vehicle_id=fields.pop("vehicle_id", vehicle.id),
            plan_limits=fields.pop("plan_limits", plan_limits),
            rate_provider=fields.pop("rate_provider", collaborators.rate_provider),
            **fields,
        )

    return _make


@pytest.fixture(scope='function')
def approved_quotation(make_quotation, tenant_a, notifier):
    quotation = make_quotation()
    quotation_service.send_quotation(tenant_a.id, quotation.id)
    return quotation_service.approve_quotation(tenant_a.id, quotation.id, notifier=notifier)


@pytest.fixture(scope='function')
def itinerary(approved_quotation, tenant_a, notifier):
    return itinerary_service.create_itinerary_from_quotation(
        tenant_a.id,
        approved_quotation.id,
        start_date=datetime(2026, 11, 2, 7, 0),
        notifier=notifier,
    )


@pytest.fixture(scope='function')
def completed_itinerary(itinerary, tenant_a):
    itinerary_service.start_itinerary(tenant_a.id, itinerary.id)
    return itinerary_service.complete_itinerary(tenant_a.id, itinerary.id)


@pytest.fixture(scope='function')
def sent_invoice(db_session, tenant_a, params):
    """Manual invoice: subtotal 5340.00 at 15% tax -> total 6141.00, sent."""
    invoice = invoice_service.create_invoice(
        tenant_a.id,
        subtotal_cents=534000,
        exchange_rate=Decimal("25"),
        tax_percentage=15,
    )
    return invoice_service.send_invoice(tenant_a.id, invoice.id)


@pytest.fixture(scope='function')
def headers_a(tenant_a):
    """X-Tenant-ID headers for Tenant A."""
    return {'X-Tenant-ID': str(tenant_a.id)}


@pytest.fixture(scope='function')
def headers_b(tenant_b):
    return {'X-Tenant-ID': str(tenant_b.id)}
