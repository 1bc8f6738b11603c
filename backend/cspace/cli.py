# Overview: Flask CLI command groups for bootstrap, kiosk setup, PINs and maintenance.

# backend/cspace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--branch-id yunusabad --branch-name "Yunusabad"]
#   Idempotent: creates tables, a first branch and a general manager account.
#
# Users:
# - python -m flask users list [--branch-id yunusabad]
# - python -m flask users create --name "Aziza K" --email aziza@cspace.uz --password "..." --role hr --branch-id yunusabad
#
# Branches / kiosk:
# - python -m flask branches list
# - python -m flask branches set-kiosk-password yunusabad
#   Prompts for the password. --disable clears it (kiosk mode off).
#
# Operator PINs:
# - python -m flask pins bulk-assign [--branch-id yunusabad] [--overwrite]
#   Prints the generated PINs ONCE. They cannot be retrieved later.
# - python -m flask pins set 42
#   Prompts for the PIN. Rejects weak PINs and PINs already used in the home branch.
# - python -m flask pins clear 42
#
# Maintenance:
# - python -m flask maintenance cleanup-refresh-tokens --retention-days 30
# - python -m flask maintenance cleanup-branch-access

import click
from flask.cli import with_appcontext

from .errors import AuthError
from .extensions import db
from .models import Branch
from .permissions import ROLES
from .services import auth_service, branch_access_service, kiosk_service, operator_switch_service, session_service
from .services.auth_service import PasswordValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--branch-id', default='yunusabad', show_default=True, help='Slug of the first branch')
@click.option('--branch-name', default='Yunusabad', show_default=True, help='Display name of the first branch')
@click.option('--admin-email', default='admin@cspace.local', show_default=True)
@click.option('--admin-password', default='Password123', show_default=True)
@with_appcontext
def init_system(branch_id, branch_name, admin_email, admin_password):
    """
    Initialize the database with a first branch and a general manager.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing C-Space authorization backend...")

    db.create_all()
    click.echo("PASS Tables created")

    branch = db.session.get(Branch, branch_id)
    if branch is None:
        branch = Branch(id=branch_id, name=branch_name)
        db.session.add(branch)
        db.session.commit()
        click.echo(f"PASS Created branch: {branch.name} ({branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} ({branch.id})")

    try:
        admin = auth_service.create_employee(
            full_name="General Manager",
            email=admin_email,
            password=admin_password,
            role="general_manager",
            branch_id=branch.id,
        )
        click.echo(f"PASS Created general manager: {admin.email}")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
    except AuthError as e:
        click.echo(f"WARN  {e.message}, skipping...")

    click.echo("DONE System initialized")


@click.group('users')
def users_group():
    """Employee account commands."""


@users_group.command('list')
@click.option('--branch-id', help='Only employees of this home branch')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive employees')
@with_appcontext
def list_users_cli(branch_id, include_inactive):
    employees = auth_service.list_employees(branch_id=branch_id, include_inactive=include_inactive)
    if not employees:
        click.echo("No employees found")
        return

    for e in employees:
        pin = "PIN" if e.has_pin else "-"
        click.echo(f"{e.id:>5}  {e.full_name:<30} {e.email or '-':<30} {e.role:<18} {e.branch_id or '-':<14} {e.status:<8} {pin}")


@users_group.command('create')
@click.option('--name', 'full_name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='employee', show_default=True)
@click.option('--branch-id', help='Home branch slug')
@with_appcontext
def create_user_cli(full_name, email, password, role, branch_id):
    """
    Create an employee with dashboard login.

    Password must be at least 8 characters with a letter and a digit.
    """
    try:
        employee = auth_service.create_employee(
            full_name=full_name,
            email=email,
            password=password,
            role=role,
            branch_id=branch_id,
        )
    except AuthError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created employee {employee.id}: {employee.email} ({employee.role})")


@click.group('branches')
def branches_group():
    """Branch and kiosk commands."""


@branches_group.command('list')
@with_appcontext
def list_branches_cli():
    branches = db.session.query(Branch).order_by(Branch.name.asc()).all()
    if not branches:
        click.echo("No branches found")
        return

    for b in branches:
        kiosk = "kiosk" if b.kiosk_enabled else "-"
        active = "active" if b.is_active else "inactive"
        click.echo(f"{b.id:<16} {b.name:<30} {active:<8} {kiosk}")


@branches_group.command('set-kiosk-password')
@click.argument('branch_id')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, default='', help='Branch reception password')
@click.option('--disable', is_flag=True, help='Clear the password and disable kiosk mode')
@with_appcontext
def set_kiosk_password_cli(branch_id, password, disable):
    try:
        branch = kiosk_service.set_branch_password(branch_id, None if disable else password or None)
    except AuthError as e:
        click.echo(f"FAIL {e.message}")
        return

    state = "enabled" if branch.kiosk_enabled else "disabled"
    click.echo(f"PASS Kiosk mode {state} for {branch.name}")


@click.group('pins')
def pins_group():
    """Operator PIN commands."""


@pins_group.command('bulk-assign')
@click.option('--branch-id', help='Limit to employees of one home branch')
@click.option('--overwrite', is_flag=True, help='Replace existing PINs too')
@with_appcontext
def bulk_assign_pins_cli(branch_id, overwrite):
    """Generate PINs and print them once for out-of-band distribution."""
    try:
        outcome = operator_switch_service.bulk_assign_pins(branch_id=branch_id, overwrite=overwrite)
    except AuthError as e:
        click.echo(f"FAIL {e.message}")
        return

    if not outcome["assigned"] and not outcome["skipped"]:
        click.echo("No employees need PIN assignment")
        return

    for row in outcome["assigned"]:
        click.echo(f"{row['branchId']:<16} {row['employeeId']:>5}  {row['employeeName']:<30} {row['pin']}")
    for row in outcome["skipped"]:
        click.echo(f"WARN  Skipped employee {row['employeeId']} ({row['employeeName']}): {row['reason']}")

    click.echo(f"PASS Assigned {len(outcome['assigned'])} PINs")


@pins_group.command('set')
@click.argument('employee_id', type=int)
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='6-digit operator PIN')
@with_appcontext
def set_pin_cli(employee_id, pin):
    """Set one employee's PIN (unique within the home branch)."""
    try:
        employee = operator_switch_service.set_operator_pin(employee_id, pin)
    except AuthError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS PIN set for {employee.full_name}")


@pins_group.command('clear')
@click.argument('employee_id', type=int)
@with_appcontext
def clear_pin_cli(employee_id):
    """Remove an employee's PIN; they can no longer switch in at reception."""
    try:
        employee = operator_switch_service.clear_operator_pin(employee_id)
    except AuthError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS PIN cleared for {employee.full_name}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-refresh-tokens')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_refresh_tokens_cli(retention_days):
    """Delete refresh tokens expired or revoked before the retention window."""
    deleted = session_service.cleanup_expired_refresh_tokens(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} refresh tokens")


@maintenance_group.command('cleanup-branch-access')
@with_appcontext
def cleanup_branch_access_cli():
    """Delete expired cross-branch access grants."""
    deleted = branch_access_service.cleanup_expired_grants()
    click.echo(f"PASS Deleted {deleted} expired grants")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(pins_group)
    app.cli.add_command(maintenance_group)
