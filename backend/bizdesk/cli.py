# Overview: Flask CLI command groups for bootstrap, tenant management and stock maintenance.

# backend/bizdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--enterprise "Name"] [--email owner@bizdesk.local]
#   Idempotent bootstrap: creates tables, one enterprise and its owner.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Enterprise management (MULTI-TENANT):
# - python -m flask enterprises list
# - python -m flask enterprises create --name "Acme"
#
# Users:
# - python -m flask users create --enterprise-id 1 --name "Ana" --email ana@acme.local --password "Password123"
#
# Stock ledger:
# - python -m flask stock reconcile --enterprise-id 1 [--fix]
#   Report (and optionally repair) products whose stored quantity differs from their movements.
#
# Budgets:
# - python -m flask budgets expire [--enterprise-id 1]
#   Mark offered budgets past their validity as expired.

import click
from flask.cli import with_appcontext

from .errors import ActionError
from .extensions import db
from .models import Enterprise, User
from .services import budget_service, enterprise_service, stock_ledger_service
from .services.auth_service import create_user, normalize_email


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--enterprise', 'enterprise_name', default='Default Enterprise', help='Enterprise name')
@click.option('--name', 'owner_name', default='Owner', help='Owner display name')
@click.option('--email', default='owner@bizdesk.local', help='Owner e-mail')
@click.option('--password', default='Password123', help='Owner password')
@with_appcontext
def init_system(enterprise_name, owner_name, email, password):
    """
    Create the schema, an enterprise and its owner account.

    Re-running is safe: an enterprise with the same name and a user with the
    same e-mail are reused.
    """
    click.echo("START Initializing bizdesk...")
    db.create_all()

    enterprise = db.session.query(Enterprise).filter_by(name=enterprise_name).first()
    if enterprise is None:
        enterprise = enterprise_service.create_enterprise({"name": enterprise_name})
        click.echo(f"PASS Created enterprise: {enterprise.name} (ID: {enterprise.id})")
    else:
        click.echo(f"PASS Using existing enterprise: {enterprise.name} (ID: {enterprise.id})")

    existing = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if existing is not None:
        click.echo(f"WARN  User '{existing.email}' already exists, skipping...")
    else:
        try:
            user = create_user(owner_name, email, password, enterprise_id=enterprise.id)
        except ActionError as e:
            raise click.ClickException(f"Failed to create owner: {e.message}")
        click.echo(f"PASS Created owner: {user.email}")

    click.echo("DONE bizdesk initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('enterprises')
def enterprises_group():
    """Enterprise (tenant) management."""


@enterprises_group.command('list')
@with_appcontext
def list_enterprises():
    enterprises = enterprise_service.list_enterprises()
    if not enterprises:
        click.echo("No enterprises found.")
        return
    for enterprise in enterprises:
        status = "active" if enterprise.is_active else "inactive"
        click.echo(f"{enterprise.id:>4}  {enterprise.name}  [{status}]")


@enterprises_group.command('create')
@click.option('--name', required=True, help='Enterprise name')
@click.option('--owner-id', type=int, default=None, help='Existing user to attach as owner')
@with_appcontext
def create_enterprise(name, owner_id):
    try:
        enterprise = enterprise_service.create_enterprise({"name": name}, owner_user_id=owner_id)
    except ActionError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created enterprise: {enterprise.name} (ID: {enterprise.id})")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--enterprise-id', type=int, default=None, help='Enterprise the user belongs to')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_command(enterprise_id, name, email, password):
    if enterprise_id is not None and db.session.get(Enterprise, enterprise_id) is None:
        raise click.ClickException(f"Enterprise {enterprise_id} not found")
    try:
        user = create_user(name, email, password, enterprise_id=enterprise_id)
    except ActionError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@click.group('stock')
def stock_group():
    """Stock ledger maintenance."""


@stock_group.command('reconcile')
@click.option('--enterprise-id', type=int, required=True)
@click.option('--fix', is_flag=True, help='Rewrite drifted quantities from the ledger')
@with_appcontext
def reconcile_stock(enterprise_id, fix):
    """
    Compare stored quantities against the movement ledger.

    Exits with status 1 when drift remains (not fixed).
    """
    if db.session.get(Enterprise, enterprise_id) is None:
        raise click.ClickException(f"Enterprise {enterprise_id} not found")

    report = stock_ledger_service.reconcile_enterprise_stock(enterprise_id, fix=fix)
    click.echo(f"Checked {report['checked']} product(s)")
    for row in report["drifted"]:
        click.echo(
            f"DRIFT product {row['product_id']}: recorded={row['recorded']} "
            f"ledger={row['ledger']} drift={row['drift']}"
        )

    if not report["drifted"]:
        click.echo("PASS No drift")
    elif report["fixed"]:
        click.echo(f"PASS Repaired {len(report['drifted'])} product(s)")
    else:
        raise click.exceptions.Exit(1)


@click.group('budgets')
def budgets_group():
    """Budget maintenance."""


@budgets_group.command('expire')
@click.option('--enterprise-id', type=int, default=None)
@with_appcontext
def expire_budgets(enterprise_id):
    count = budget_service.expire_overdue_budgets(enterprise_id)
    click.echo(f"PASS Expired {count} budget(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(enterprises_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(budgets_group)
