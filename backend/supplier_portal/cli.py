# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/supplier_portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --email admin@example.com --name "Admin"
#   Create tables and the first admin account (prompts for the password).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff accounts:
# - python -m flask users list
# - python -m flask users create --email ana@example.com --name "Ana" --role user
# - python -m flask users set-role ana@example.com admin
# - python -m flask users set-status ana@example.com inactive
#
# Suppliers:
# - python -m flask suppliers list [--status under_review]
# - python -m flask suppliers preview 12
#   Print the Sienge creditor payload approval would send (no HTTP call).
# - python -m flask suppliers resend 12 --as admin@example.com
#   Retry the Sienge push for an approved supplier.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Supplier, USER_ROLES, USER_STATUSES
from .services import auth_service, lifecycle_service, sienge_service
from .services.access_service import PermissionDeniedError
from .services.auth_service import PasswordValidationError
from .services.lifecycle_service import LifecycleError, SupplierNotFoundError
from .services.sienge_service import IntegrationConfigError
from .services.session_service import revoke_all_user_sessions
from .validation import ValidationError, ConflictError


def _user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=auth_service.normalize_email(email)).first()


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--name', prompt=True, help='Admin display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def init_system(email, name, password):
    """
    Create all tables and bootstrap the first admin account.

    Idempotent: an existing account with the same email is promoted to admin
    instead of being recreated.
    """
    click.echo("START Initializing supplier portal...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = _user_by_email(email)
    if existing:
        if existing.role != "admin":
            auth_service.set_user_role(existing.id, "admin")
            click.echo(f"PASS Promoted existing user {existing.email} to admin")
        else:
            click.echo(f"PASS Admin {existing.email} already exists")
        return

    try:
        user = auth_service.create_user(
            email=email, name=name, role="admin", password=password, created_by="cli",
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create admin: {str(e)}")
        raise SystemExit(1)

    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


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


@click.group('users')
def users_group():
    """Staff account commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='user', show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, name, password, role):
    """
    Create a staff account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.create_user(
            email=email, name=name, role=role, password=password, created_by="cli",
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all staff accounts."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<8} {'Status'}")
    click.echo("="*90)

    for user in users:
        click.echo(f"{user.id:<5} {user.email:<35} {user.name:<25} {user.role:<8} {user.status}")

    click.echo("="*90 + "\n")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(list(USER_ROLES)))
@with_appcontext
def set_role_cli(email, role):
    """Change a user's role (e.g. promote to admin)."""
    user = _user_by_email(email)
    if not user:
        click.echo(f"FAIL User {email} not found")
        raise SystemExit(1)
    auth_service.set_user_role(user.id, role)
    click.echo(f"PASS {user.email} is now '{role}'")


@users_group.command('set-status')
@click.argument('email')
@click.argument('status', type=click.Choice(list(USER_STATUSES)))
@with_appcontext
def set_status_cli(email, status):
    """Activate or deactivate a user. Deactivation revokes open sessions."""
    user = _user_by_email(email)
    if not user:
        click.echo(f"FAIL User {email} not found")
        raise SystemExit(1)

    user.status = status
    revoked = 0
    if status != "active":
        revoked = revoke_all_user_sessions(user.id, reason="User account deactivated", commit=False)
    db.session.commit()
    click.echo(f"PASS {user.email} is now {status} ({revoked} sessions revoked)")


@click.group('suppliers')
def suppliers_group():
    """Supplier inspection and Sienge integration commands."""


@suppliers_group.command('list')
@click.option('--status', help='Filter by status')
@with_appcontext
def list_suppliers(status):
    """List suppliers, newest first."""
    query = db.session.query(Supplier)
    if status:
        query = query.filter_by(status=status)
    suppliers = query.order_by(Supplier.created_at.desc(), Supplier.id.desc()).all()

    if not suppliers:
        click.echo("No suppliers found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'CNPJ':<15} {'Company':<35} {'Status':<18} {'Sienge ID'}")
    click.echo("="*100)

    for s in suppliers:
        click.echo(
            f"{s.id:<5} {s.cnpj:<15} {s.company_name[:34]:<35} {s.status:<18} {s.sienge_creditor_id or '-'}"
        )

    click.echo("="*100 + "\n")


@suppliers_group.command('preview')
@click.argument('supplier_id', type=int)
@with_appcontext
def preview_supplier(supplier_id):
    """Print the creditor payload for a supplier without calling Sienge."""
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        click.echo(f"FAIL Supplier {supplier_id} not found")
        raise SystemExit(1)
    try:
        payload = sienge_service.map_with_app_defaults(supplier)
    except ValidationError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@suppliers_group.command('resend')
@click.argument('supplier_id', type=int)
@click.option('--as', 'actor_email', required=True, help='Email of the admin performing the resend')
@with_appcontext
def resend_supplier(supplier_id, actor_email):
    """Retry the Sienge push for an approved supplier."""
    actor = _user_by_email(actor_email)
    if not actor:
        click.echo(f"FAIL User {actor_email} not found")
        raise SystemExit(1)

    try:
        result = lifecycle_service.resend_integration(actor, supplier_id)
    except (SupplierNotFoundError, LifecycleError, ValidationError, ConflictError, IntegrationConfigError) as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)
    except PermissionDeniedError as e:
        click.echo(f"FAIL Permission denied: {str(e)}")
        raise SystemExit(1)

    if result.error is not None:
        click.echo(f"FAIL {result.message} (kind={result.error.kind})")
        raise SystemExit(1)
    click.echo(f"PASS {result.outcome}: creditor id {result.creditor_id or 'not returned'}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(suppliers_group)
