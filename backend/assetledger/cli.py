# Overview: Flask CLI command groups for bootstrap, office/user setup and catalog maintenance.

# backend/assetledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables and the default roles (Admin, User). Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Offices:
# - python -m flask offices create --name "Head Office" --code HQ
# - python -m flask offices create --name "North Branch" --code NB --parent-id 1
# - python -m flask offices list
#
# Users:
# - python -m flask users create --username admin --email admin@example.com --password "Password123!" --office-id 1 --role Admin
#
# Catalog:
# - python -m flask catalog add-item --name Stapler --category Stationery --unit pcs
# - python -m flask catalog list-items

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Category, Office, Unit
from .models.auth import ROLE_ADMIN, ROLE_USER
from .services import auth_service, catalog_service, office_service
from .services.concurrency import commit_with_retry


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and default roles."""
    click.echo("START Initializing asset ledger...")
    db.create_all()
    roles = auth_service.create_default_roles()
    commit_with_retry()
    click.echo(f"PASS Roles ready: {', '.join(r.name for r in roles)}")
    if not db.session.query(Office).first():
        click.echo("NEXT Create the first office: python -m flask offices create --name ... --code ...")


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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('offices')
def offices_group():
    """Office hierarchy commands."""


@offices_group.command('create')
@click.option('--name', required=True, help='Office name')
@click.option('--code', required=True, help='Unique office code')
@click.option('--parent-id', type=int, default=None, help='Parent office ID (omit for a root office)')
@with_appcontext
def create_office_cli(name, code, parent_id):
    try:
        office = office_service.bootstrap_office(name, code, parent_id)
        commit_with_retry()
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created office {office.code} (ID: {office.id}, inventory ID: {office.inventory.id})")


@offices_group.command('list')
@with_appcontext
def list_offices_cli():
    offices = office_service.list_offices()
    if not offices:
        click.echo("No offices found.")
        return
    for office in offices:
        parent = office.parent.code if office.parent else "-"
        click.echo(f"{office.id:>4}  {office.code:<12} {office.name:<30} parent={parent}")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--full-name', default=None, help='Full name')
@click.option('--office-id', type=int, prompt=True, help='Office ID')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_USER], case_sensitive=False), default=ROLE_USER, help='Role')
@with_appcontext
def create_user_cli(username, email, password, full_name, office_id, role):
    """
    Create a user in an office.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.create_user(
            username=username,
            email=email,
            password=password,
            office_id=office_id,
            role_name=role,
            full_name=full_name,
        )
        commit_with_retry()
    except auth_service.PasswordValidationError as e:
        db.session.rollback()
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise click.ClickException(f"Password validation failed: {e.message}")
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {username} ({email}) with role '{user.role.name}' in office {user.office.code}")


@click.group('catalog')
def catalog_group():
    """Catalog commands."""


def _get_or_create_named(model, name):
    if not name:
        return None
    row = db.session.query(model).filter_by(name=name).first()
    if row is None:
        row = model(name=name)
        db.session.add(row)
        db.session.flush()
    return row


@catalog_group.command('add-item')
@click.option('--name', required=True, help='Item name (unique)')
@click.option('--description', default=None)
@click.option('--category', default=None, help='Category name (created if missing)')
@click.option('--unit', default=None, help='Unit name (created if missing)')
@with_appcontext
def add_item_cli(name, description, category, unit):
    try:
        category_row = _get_or_create_named(Category, category)
        unit_row = _get_or_create_named(Unit, unit)
        item = catalog_service.add_item(
            name,
            description,
            category_row.id if category_row else None,
            unit_row.id if unit_row else None,
        )
        commit_with_retry()
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created item {item.name} (ID: {item.id})")


@catalog_group.command('list-items')
@with_appcontext
def list_items_cli():
    items = catalog_service.list_items()
    if not items:
        click.echo("No items found.")
        return
    for item in items:
        category = item.category.name if item.category else "-"
        click.echo(f"{item.id:>4}  {item.name:<30} category={category}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(offices_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
