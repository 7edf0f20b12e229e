# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables if missing and report whether first-run setup is pending.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users bootstrap-admin --display-name "Ana" --username ana.silva
#   Create the first administrator (only while no users exist).
# - python -m flask users list
#   List all users with role and active status.
#
# Maintenance:
# - python -m flask sessions cleanup --older-than-days 30
#   Delete expired/revoked sessions.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.
# - python -m flask maintenance ledger-issues
#   Show recent ledger inconsistencies that may need manual stock repair.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import auth_service, bootstrap_service, maintenance_service, session_service
from .services.bootstrap_service import BootstrapError
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create missing tables and report bootstrap state.

    Idempotent. Users are never seeded: the first administrator is created
    through the first-run screen or `flask users bootstrap-admin`.
    """
    click.echo("START Initializing PharmaPOS...")
    db.create_all()
    click.echo("PASS Tables ready.")

    if bootstrap_service.has_any_users():
        click.echo(f"INFO {bootstrap_service.count_users()} user(s) present; bootstrap already done.")
    else:
        click.echo("WARN No users yet. Run 'python -m flask users bootstrap-admin' or open the app.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users bootstrap-admin' next.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('bootstrap-admin')
@click.option('--display-name', prompt=True, help='Display name')
@click.option('--username', prompt=True, help='Login handle')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def bootstrap_admin_cli(display_name, username, password):
    """Create the first administrator. Fails once any user exists."""
    try:
        user = bootstrap_service.create_first_administrator(display_name, username, password)
    except BootstrapError as e:
        raise click.ClickException(f"{e.reason}: {e}")
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Administrator '{user.username}' created (id={user.id}).")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = auth_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Display name':<30} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user["is_active"] else "No"
        role_str = user["role"] or "none"
        click.echo(f"{user['id']:<5} {user['username']:<20} {user['display_name']:<30} {active_str:<8} {role_str}")

    click.echo("="*90 + "\n")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked sessions created before the cutoff."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Ledger inconsistency and bootstrap events are kept.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('ledger-issues')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def ledger_issues_cli(limit):
    """Show recent ledger inconsistencies."""
    events = maintenance_service.list_ledger_inconsistencies(limit=limit)
    if not events:
        click.echo("No ledger inconsistencies recorded.")
        return

    for event in events:
        click.echo(f"{event.occurred_at.isoformat()}  user={event.user_id}  {event.reason}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(maintenance_group)
