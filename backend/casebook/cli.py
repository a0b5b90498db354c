# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/casebook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app casebook <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --username admin --password "changeme123"
#   Idempotent bootstrap: creates tables, seeds default visit limits, creates the admin employee.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Employee inspection/bootstrap:
# - python -m flask employees list
#   List employees with their permissions.
# - python -m flask employees create --username jdoe --password "temporary1" -p food_visit_entry -p customer_creation
#   Create an employee (must change password at first login).
#
# Settings:
# - python -m flask settings show
#   Print visit limits and appearance.
# - python -m flask settings set food_min_days_between 21
#   Change one visit limit or appearance value.
#
# Maintenance:
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.
# - python -m flask maintenance cleanup-sessions
#   Delete expired or revoked sessions older than 30 days.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Employee
from .permissions import get_all_permission_codes
from .services import auth_service, maintenance_service, settings_service
from .services.settings_service import COMPANY_NAME, PARTNER_STORE_NAME, VISIT_LIMIT_DEFAULTS
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='admin', show_default=True, help='Administrator username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Administrator password')
@with_appcontext
def init_system(username, password):
    """
    Initialize the case-management database.

    Creates:
    - All tables (for development; production uses flask db upgrade)
    - Default visit limit settings for any missing key
    - The administrator employee, with every permission row
    """
    click.echo("START Initializing casebook...")

    db.create_all()
    click.echo("PASS Tables created")

    added = settings_service.seed_default_settings(settings_service.get_settings())
    click.echo(f"PASS Seeded {added} default settings")

    existing = db.session.query(Employee).filter_by(username=username).first()
    if existing:
        click.echo(f"WARN  Employee '{username}' already exists, skipping...")
    else:
        try:
            employee = auth_service.create_employee(
                username,
                password,
                get_all_permission_codes(),
                password_reset_required=False,
            )
            click.echo(f"PASS Created employee: {employee.username} (ID: {employee.id})")
        except ValidationError as e:
            click.echo(f"FAIL Could not create '{username}': {str(e)}")
            return

    if username not in current_app.config["ADMIN_ACCOUNTS"]:
        click.echo(f"WARN  '{username}' is not in ADMIN_ACCOUNTS; it will not be able to manage employees or settings")

    click.echo("\n" + "="*60)
    click.echo("DONE casebook initialized")
    click.echo("="*60 + "\n")


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

    settings_service.get_settings().invalidate()
    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('employees')
def employees_group():
    """Employee management commands."""


@employees_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Temporary password')
@click.option('--permission', '-p', 'permissions', multiple=True,
              type=click.Choice(get_all_permission_codes()), help='Permission code (repeatable)')
@with_appcontext
def create_employee_cli(username, password, permissions):
    """Create an employee who must choose a new password at first login."""
    try:
        employee = auth_service.create_employee(username, password, list(permissions))
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create '{username}': {str(e)}")
        return

    click.echo(f"PASS Created employee: {employee.username} (ID: {employee.id})")
    click.echo(f"     Permissions: {', '.join(employee.permission_codes()) or 'none'}")


@employees_group.command('list')
@with_appcontext
def list_employees_cli():
    """List all employees with their permissions."""
    employees = auth_service.list_employees()

    if not employees:
        click.echo("No employees found.")
        return

    admins = set(current_app.config["ADMIN_ACCOUNTS"])

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Admin':<6} {'Reset':<6} {'Permissions'}")
    click.echo("="*100)

    for employee in employees:
        admin_str = "Yes" if employee.username in admins else "No"
        reset_str = "Yes" if employee.password_reset_required else "No"
        perms_str = ", ".join(employee.permission_codes()) or "none"
        click.echo(f"{employee.id:<5} {employee.username:<20} {admin_str:<6} {reset_str:<6} {perms_str}")

    click.echo("="*100 + "\n")


@click.group('settings')
def settings_group():
    """Runtime settings commands."""


@settings_group.command('show')
@with_appcontext
def show_settings():
    """Print visit limits and appearance."""
    limits = settings_service.get_visit_limits()
    appearance = settings_service.get_appearance()

    click.echo("\nVisit limits")
    for key, value in limits.to_dict().items():
        click.echo(f"  {key:<28} {value}")
    click.echo("\nAppearance")
    for key, value in appearance.items():
        click.echo(f"  {key:<28} {value}")
    click.echo("")


@settings_group.command('set')
@click.argument('key', type=click.Choice(list(VISIT_LIMIT_DEFAULTS) + [COMPANY_NAME, PARTNER_STORE_NAME]))
@click.argument('value')
@with_appcontext
def set_setting(key, value):
    """Change one visit limit or appearance value."""
    settings = settings_service.get_settings()

    try:
        if key in VISIT_LIMIT_DEFAULTS:
            values = settings_service.get_visit_limits(settings).to_dict()
            values[key] = value
            settings_service.update_visit_limits(settings, values)
        else:
            appearance = settings_service.get_appearance(settings)
            appearance[key] = value
            settings_service.update_appearance(settings, appearance[COMPANY_NAME], appearance[PARTNER_STORE_NAME])
    except ValidationError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS {key} = {value}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = maintenance_service.cleanup_sessions()
    click.echo(f"Deleted {deleted} stale sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(employees_group)
    app.cli.add_command(settings_group)
    app.cli.add_command(maintenance_group)
