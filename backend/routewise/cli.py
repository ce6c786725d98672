# Overview: Flask CLI command groups for bootstrap, rates, and scheduled maintenance.

# backend/routewise/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management (MULTI-TENANT):
# - python -m flask tenants list
# - python -m flask tenants create --name "Transportes Lopez" --slug lopez --fuel-price 98.5
#   Create a tenant, optionally with its first operating parameters.
#
# Exchange rates:
# - python -m flask rates set HNL=26.31 GTQ=7.66
#   Store a new snapshot; existing documents keep their frozen rates.
# - python -m flask rates show
#
# Scheduled jobs (cron):
# - python -m flask quotations expire-stale [--tenant-id 1]
# - python -m flask reminders scan-overdue [--tenant-id 1]
# - python -m flask reminders process-due [--tenant-id 1]

import click
from flask.cli import with_appcontext

from .collaborators import get_collaborators
from .errors import WorkflowError
from .extensions import db
from .models import Tenant
from .services import exchange_rate_service, quotation_service, reminder_service, tenant_service
from .services.state_machines import TenantStatus


def _tenant_ids(tenant_id):
    if tenant_id is not None:
        return [tenant_id]
    return [t.id for t in db.session.query(Tenant).filter_by(status=TenantStatus.ACTIVE.value).order_by(Tenant.id).all()]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('tenants')
def tenants_group():
    """Tenant (operator company) management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants_cli():
    """List all tenants."""
    tenants = tenant_service.list_tenants()
    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Company':<30} {'Slug':<15} {'Plan':<12} {'Status':<10} {'Currency'}")
    click.echo("=" * 80)
    for t in tenants:
        click.echo(f"{t.id:<5} {t.company_name:<30} {t.slug:<15} {t.plan:<12} {t.status:<10} {t.local_currency}")
    click.echo("=" * 80 + "\n")


@tenants_group.command('create')
@click.option('--name', 'company_name', required=True, help='Company name')
@click.option('--slug', required=True, help='Unique short slug')
@click.option('--plan', default='starter', show_default=True)
@click.option('--currency', 'local_currency', default=None, help='Local currency (default from config)')
@click.option('--max-quotations', type=int, default=-1, show_default=True, help='-1 = unlimited')
@click.option('--fuel-price', type=float, default=None, help='Create active parameters with this fuel price')
@with_appcontext
def create_tenant_cli(company_name, slug, plan, local_currency, max_quotations, fuel_price):
    """Create a new tenant."""
    try:
        tenant = tenant_service.create_tenant(
            company_name=company_name,
            slug=slug,
            plan=plan,
            local_currency=local_currency,
            max_quotations_per_month=max_quotations,
        )
        if fuel_price is not None:
            tenant_service.set_parameters(tenant.id, fuel_price=fuel_price, local_currency=tenant.local_currency)
        db.session.commit()
    except WorkflowError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created tenant: {tenant.company_name} (ID: {tenant.id}, Slug: {tenant.slug})")


@click.group('rates')
def rates_group():
    """Exchange rate snapshots."""


@rates_group.command('set')
@click.argument('pairs', nargs=-1, required=True)
@click.option('--source', default='manual', show_default=True)
@with_appcontext
def set_rates_cli(pairs, source):
    """Store a snapshot from CODE=RATE pairs (local units per USD)."""
    rates = {}
    for pair in pairs:
        code, sep, value = pair.partition("=")
        if not sep:
            click.echo(f"FAIL Expected CODE=RATE, got '{pair}'")
            return
        rates[code] = value

    try:
        snapshot = exchange_rate_service.store_rates(rates, source=source)
        db.session.commit()
    except WorkflowError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Stored exchange rate snapshot {snapshot.id}: {snapshot.rates}")


@rates_group.command('show')
@with_appcontext
def show_rates_cli():
    """Show the latest snapshot."""
    snapshot = exchange_rate_service.latest_snapshot()
    if not snapshot:
        click.echo("No exchange rate snapshot stored; built-in defaults apply.")
        return
    click.echo(f"Snapshot {snapshot.id} ({snapshot.source}, {snapshot.fetched_at.isoformat()}Z)")
    for code, rate in sorted(snapshot.rates.items()):
        click.echo(f"  1 USD = {rate} {code}")


@click.group('quotations')
def quotations_group():
    """Quotation maintenance jobs."""


@quotations_group.command('expire-stale')
@click.option('--tenant-id', type=int, default=None, help='Limit to one tenant')
@with_appcontext
def expire_stale_cli(tenant_id):
    """Expire sent quotations past their validity date."""
    total = 0
    for tid in _tenant_ids(tenant_id):
        expired = quotation_service.expire_stale_quotations(tid)
        total += len(expired)
        for q in expired:
            click.echo(f"  EXPIRED {q.quotation_number} (tenant {tid})")
    click.echo(f"PASS Expired {total} quotation(s)")


@click.group('reminders')
def reminders_group():
    """Reminder scheduling and delivery jobs."""


@reminders_group.command('scan-overdue')
@click.option('--tenant-id', type=int, default=None, help='Limit to one tenant')
@with_appcontext
def scan_overdue_cli(tenant_id):
    """Flag overdue invoices and schedule their reminders."""
    for tid in _tenant_ids(tenant_id):
        result = reminder_service.scan_overdue_invoices(tid)
        db.session.commit()
        click.echo(
            f"PASS Tenant {tid}: processed={result['processed']} "
            f"flagged={result['flagged']} scheduled={result['scheduled']}"
        )


@reminders_group.command('process-due')
@click.option('--tenant-id', type=int, default=None, help='Limit to one tenant')
@with_appcontext
def process_due_cli(tenant_id):
    """Deliver reminders whose scheduled time has passed."""
    notifier = get_collaborators().notifier
    for tid in _tenant_ids(tenant_id):
        delivered = reminder_service.process_due_reminders(tid, notifier)
        db.session.commit()
        click.echo(f"PASS Tenant {tid}: delivered {delivered} reminder(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(rates_group)
    app.cli.add_command(quotations_group)
    app.cli.add_command(reminders_group)
