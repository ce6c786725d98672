"""Initial schema: tenants, fleet, quotations, itineraries, invoices, advances

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. Tenants, yearly operating parameters, exchange-rate snapshots
2. Vehicles, drivers, clients
3. Quotations (frozen cost breakdown + sale price, local and USD cents)
4. Itineraries (one per quotation at most)
5. Invoices and the invoice payment ledger
6. Driver expense advances
7. Document sequences and the document event log
8. Scheduled reminders and in-app notifications
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()))
    return cols


def upgrade():
    # ==========================================================================
    # 1. TENANCY
    # ==========================================================================
    op.create_table('tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('plan', sa.String(length=32), nullable=False, server_default='starter'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('trial_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_quotations_per_month', sa.Integer(), nullable=False, server_default='-1'),
        sa.Column('country', sa.String(length=64), nullable=False, server_default='Honduras'),
        sa.Column('local_currency', sa.String(length=3), nullable=False, server_default='HNL'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)
    op.create_index('ix_tenants_status', 'tenants', ['status'])

    op.create_table('tenant_parameters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('local_currency', sa.String(length=3), nullable=False, server_default='HNL'),
        sa.Column('use_custom_exchange_rate', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('custom_exchange_rate', sa.Numeric(14, 6), nullable=True),
        sa.Column('fuel_price', sa.Numeric(12, 4), nullable=False),
        sa.Column('fuel_price_unit', sa.String(length=8), nullable=False, server_default='gal'),
        sa.Column('meal_cost_per_day', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('hotel_cost_per_night', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('driver_incentive_per_day', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('toll_sap_yojoa', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('toll_sap_siguatepeque', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('toll_sap_zambrano', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('toll_salida_sap', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('toll_salida_ptz', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('toll_san_manuel', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('default_markup_percentage', sa.Numeric(6, 2), nullable=False, server_default='20'),
        sa.Column('rounding_local', sa.Numeric(12, 2), nullable=False, server_default='100'),
        sa.Column('rounding_usd', sa.Numeric(12, 2), nullable=False, server_default='5'),
        sa.Column('quotation_validity_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('tax_percentage', sa.Numeric(6, 2), nullable=False, server_default='15'),
        sa.Column('payment_terms_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('quotation_reminder_days', sa.JSON(), nullable=True),
        sa.Column('invoice_reminder_days', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'year', name='uq_tenant_parameters_tenant_year'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_tenant_parameters_tenant_id', 'tenant_parameters', ['tenant_id'])
    op.create_index('ix_tenant_parameters_is_active', 'tenant_parameters', ['is_active'])

    op.create_table('exchange_rates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('base_currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('rates', sa.JSON(), nullable=False),
        sa.Column('source', sa.String(length=64), nullable=False, server_default='manual'),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_exchange_rates_fetched_at', 'exchange_rates', ['fetched_at'])

    # ==========================================================================
    # 2. FLEET AND CLIENTS
    # ==========================================================================
    op.create_table('vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('license_plate', sa.String(length=32), nullable=True),
        sa.Column('passenger_capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fuel_capacity', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('fuel_capacity_unit', sa.String(length=8), nullable=False, server_default='gal'),
        sa.Column('fuel_efficiency', sa.Numeric(10, 3), nullable=False, server_default='0'),
        sa.Column('fuel_efficiency_unit', sa.String(length=8), nullable=False, server_default='km/gal'),
        sa.Column('cost_per_distance', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('cost_per_day', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('base_location', sa.String(length=255), nullable=True),
        sa.Column('ownership', sa.String(length=16), nullable=False, server_default='owned'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_vehicles_tenant_id', 'vehicles', ['tenant_id'])
    op.create_index('ix_vehicles_tenant_status', 'vehicles', ['tenant_id', 'status'])

    op.create_table('drivers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=False),
        sa.Column('last_name', sa.String(length=120), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('license_number', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_drivers_tenant_id', 'drivers', ['tenant_id'])

    op.create_table('clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='company'),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=120), nullable=True),
        sa.Column('last_name', sa.String(length=120), nullable=True),
        sa.Column('code', sa.String(length=16), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('pricing_level', sa.String(length=16), nullable=False, server_default='standard'),
        sa.Column('discount_percentage', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('payment_terms_days', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_clients_tenant_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_clients_tenant_id', 'clients', ['tenant_id'])

    # ==========================================================================
    # 3. QUOTATIONS
    # ==========================================================================
    cost_columns = []
    for component in (
        'fuel_cost', 'refueling_cost', 'driver_meals_cost', 'driver_lodging_cost',
        'driver_incentive_cost', 'vehicle_distance_cost', 'vehicle_daily_cost',
        'toll_cost', 'total_cost',
    ):
        cost_columns.append(sa.Column(f'{component}_cents', sa.Integer(), nullable=False, server_default='0'))
        cost_columns.append(sa.Column(f'{component}_usd_cents', sa.Integer(), nullable=False, server_default='0'))

    op.create_table('quotations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('quotation_number', sa.String(length=96), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('origin', sa.String(length=255), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=False),
        sa.Column('base_location', sa.String(length=255), nullable=False),
        sa.Column('group_size', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('group_leader_name', sa.String(length=120), nullable=True),
        sa.Column('extra_mileage_km', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('estimated_days', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('departure_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_distance_km', sa.Numeric(12, 3), nullable=False),
        sa.Column('total_time_minutes', sa.Integer(), nullable=False, server_default='0'),
        *cost_columns,
        sa.Column('local_currency', sa.String(length=3), nullable=False, server_default='HNL'),
        sa.Column('exchange_rate', sa.Numeric(14, 6), nullable=False),
        sa.Column('selected_markup_bps', sa.Integer(), nullable=False, server_default='2000'),
        sa.Column('client_discount_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sale_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sale_price_usd_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('include_fuel', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('include_meals', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('include_tolls', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('include_driver_incentive', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'quotation_number', name='uq_quotations_tenant_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_quotations_tenant_id', 'quotations', ['tenant_id'])
    op.create_index('ix_quotations_client_id', 'quotations', ['client_id'])
    op.create_index('ix_quotations_vehicle_id', 'quotations', ['vehicle_id'])
    op.create_index('ix_quotations_status', 'quotations', ['status'])
    op.create_index('ix_quotations_tenant_status_created', 'quotations', ['tenant_id', 'status', 'created_at'])

    # ==========================================================================
    # 4. ITINERARIES
    # ==========================================================================
    op.create_table('itineraries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('itinerary_number', sa.String(length=96), nullable=False),
        sa.Column('quotation_id', sa.Integer(), nullable=True),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('driver_id', sa.Integer(), nullable=True),
        sa.Column('origin', sa.String(length=255), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=False),
        sa.Column('base_location', sa.String(length=255), nullable=False),
        sa.Column('group_size', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('group_leader_name', sa.String(length=120), nullable=True),
        sa.Column('total_distance_km', sa.Numeric(12, 3), nullable=False),
        sa.Column('total_time_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_days', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('pickup_location', sa.String(length=255), nullable=True),
        sa.Column('pickup_time', sa.String(length=16), nullable=True),
        sa.Column('pickup_notes', sa.Text(), nullable=True),
        sa.Column('dropoff_location', sa.String(length=255), nullable=True),
        sa.Column('dropoff_time', sa.String(length=16), nullable=True),
        sa.Column('dropoff_notes', sa.Text(), nullable=True),
        sa.Column('agreed_price_cents', sa.Integer(), nullable=False),
        sa.Column('agreed_price_usd_cents', sa.Integer(), nullable=False),
        sa.Column('local_currency', sa.String(length=3), nullable=False, server_default='HNL'),
        sa.Column('exchange_rate', sa.Numeric(14, 6), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='scheduled'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id']),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id']),
        sa.ForeignKeyConstraint(['driver_id'], ['drivers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'itinerary_number', name='uq_itineraries_tenant_number'),
        sa.UniqueConstraint('quotation_id', name='uq_itineraries_quotation'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_itineraries_tenant_id', 'itineraries', ['tenant_id'])
    op.create_index('ix_itineraries_quotation_id', 'itineraries', ['quotation_id'])
    op.create_index('ix_itineraries_client_id', 'itineraries', ['client_id'])
    op.create_index('ix_itineraries_vehicle_id', 'itineraries', ['vehicle_id'])
    op.create_index('ix_itineraries_driver_id', 'itineraries', ['driver_id'])
    op.create_index('ix_itineraries_status', 'itineraries', ['status'])
    op.create_index('ix_itineraries_tenant_status_start', 'itineraries', ['tenant_id', 'status', 'start_date'])

    # ==========================================================================
    # 5. INVOICES AND PAYMENTS
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=96), nullable=False),
        sa.Column('itinerary_id', sa.Integer(), nullable=True),
        sa.Column('quotation_id', sa.Integer(), nullable=True),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('invoice_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('description', sa.String(length=512), nullable=False),
        sa.Column('local_currency', sa.String(length=3), nullable=False, server_default='HNL'),
        sa.Column('exchange_rate', sa.Numeric(14, 6), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('subtotal_usd_cents', sa.Integer(), nullable=False),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default='1500'),
        sa.Column('tax_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_amount_usd_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('total_usd_cents', sa.Integer(), nullable=False),
        sa.Column('additional_charges', sa.JSON(), nullable=True),
        sa.Column('discounts', sa.JSON(), nullable=True),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_due_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='unpaid'),
        sa.Column('overdue_flagged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['itinerary_id'], ['itineraries.id']),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id']),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'invoice_number', name='uq_invoices_tenant_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_invoices_tenant_id', 'invoices', ['tenant_id'])
    op.create_index('ix_invoices_itinerary_id', 'invoices', ['itinerary_id'])
    op.create_index('ix_invoices_quotation_id', 'invoices', ['quotation_id'])
    op.create_index('ix_invoices_client_id', 'invoices', ['client_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_payment_status', 'invoices', ['payment_status'])
    op.create_index('ix_invoices_tenant_status', 'invoices', ['tenant_id', 'status'])
    op.create_index('ix_invoices_tenant_payment_status', 'invoices', ['tenant_id', 'payment_status'])

    op.create_table('invoice_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_invoice_payments_tenant_id', 'invoice_payments', ['tenant_id'])
    op.create_index('ix_invoice_payments_invoice_id', 'invoice_payments', ['invoice_id'])
    op.create_index('ix_invoice_payments_created_at', 'invoice_payments', ['created_at'])

    # ==========================================================================
    # 6. EXPENSE ADVANCES
    # ==========================================================================
    op.create_table('expense_advances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('advance_number', sa.String(length=96), nullable=False),
        sa.Column('itinerary_id', sa.Integer(), nullable=False),
        sa.Column('driver_id', sa.Integer(), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('amount_usd_cents', sa.Integer(), nullable=False),
        sa.Column('local_currency', sa.String(length=3), nullable=False, server_default='HNL'),
        sa.Column('exchange_rate', sa.Numeric(14, 6), nullable=False),
        sa.Column('purpose', sa.String(length=255), nullable=False),
        sa.Column('estimated_fuel_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_meals_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_lodging_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_tolls_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_other_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.String(length=120), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disbursed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disbursement_method', sa.String(length=16), nullable=True),
        sa.Column('disbursement_reference', sa.String(length=128), nullable=True),
        sa.Column('actual_fuel_cents', sa.Integer(), nullable=True),
        sa.Column('actual_meals_cents', sa.Integer(), nullable=True),
        sa.Column('actual_lodging_cents', sa.Integer(), nullable=True),
        sa.Column('actual_tolls_cents', sa.Integer(), nullable=True),
        sa.Column('actual_other_cents', sa.Integer(), nullable=True),
        sa.Column('actual_expenses_cents', sa.Integer(), nullable=True),
        sa.Column('receipts_count', sa.Integer(), nullable=True),
        sa.Column('balance_cents', sa.Integer(), nullable=True),
        sa.Column('balance_settled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('settlement_notes', sa.Text(), nullable=True),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('settled_by', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['itinerary_id'], ['itineraries.id']),
        sa.ForeignKeyConstraint(['driver_id'], ['drivers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'advance_number', name='uq_expense_advances_tenant_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_expense_advances_tenant_id', 'expense_advances', ['tenant_id'])
    op.create_index('ix_expense_advances_itinerary_id', 'expense_advances', ['itinerary_id'])
    op.create_index('ix_expense_advances_driver_id', 'expense_advances', ['driver_id'])
    op.create_index('ix_expense_advances_status', 'expense_advances', ['status'])
    op.create_index('ix_expense_advances_tenant_status', 'expense_advances', ['tenant_id', 'status'])

    # ==========================================================================
    # 7. DOCUMENT SEQUENCES AND EVENTS
    # ==========================================================================
    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'document_type', name='uq_doc_sequences_tenant_type'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_document_sequences_tenant_id', 'document_sequences', ['tenant_id'])
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])

    op.create_table('document_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('from_status', sa.String(length=16), nullable=True),
        sa.Column('to_status', sa.String(length=16), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_document_events_tenant_id', 'document_events', ['tenant_id'])
    op.create_index('ix_document_events_event_type', 'document_events', ['event_type'])
    op.create_index('ix_document_events_occurred_at', 'document_events', ['occurred_at'])
    op.create_index('ix_document_events_entity', 'document_events', ['tenant_id', 'entity_type', 'entity_id'])

    # ==========================================================================
    # 8. REMINDERS AND NOTIFICATIONS
    # ==========================================================================
    op.create_table('scheduled_reminders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('reminder_type', sa.String(length=32), nullable=False),
        sa.Column('reminder_day', sa.Integer(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('skipped', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('skip_reason', sa.String(length=255), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_scheduled_reminders_tenant_id', 'scheduled_reminders', ['tenant_id'])
    op.create_index('ix_scheduled_reminders_entity', 'scheduled_reminders', ['tenant_id', 'entity_type', 'entity_id'])
    op.create_index('ix_scheduled_reminders_due', 'scheduled_reminders', ['processed', 'scheduled_for'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=True),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default='0'),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_notifications_tenant_id', 'notifications', ['tenant_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])


def downgrade():
    for table in (
        'notifications',
        'scheduled_reminders',
        'document_events',
        'document_sequences',
        'expense_advances',
        'invoice_payments',
        'invoices',
        'itineraries',
        'quotations',
        'clients',
        'drivers',
        'vehicles',
        'exchange_rates',
        'tenant_parameters',
        'tenants',
    ):
        op.drop_table(table)
