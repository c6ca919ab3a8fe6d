# Overview: Flask CLI command groups for bootstrap, user management, Freshbooks sync and maintenance.

# backend/portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` with migrations otherwise).
#
# Users:
# - python -m flask users create --username admin --email admin@example.com --name "Site Admin" --password "..." --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users list
#   List all users with role and status.
# - python -m flask users set-role alice admin
#   Change a user's role.
# - python -m flask users link-client alice 3
#   Link client profile 3 to alice (drives the client dashboard).
#
# Freshbooks:
# - python -m flask freshbooks authorize-url
#   Print the consent URL to start the OAuth flow.
# - python -m flask freshbooks sync [--entity all|clients|projects|invoices]
#   Pull data from Freshbooks into local storage.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired session records.

import click
from flask.cli import with_appcontext

from .errors import PortalError
from .extensions import db, get_freshbooks, get_storage
from .models import ROLES
from .services import activity_service, auth_service, session_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_cli():
    """Create all tables for the database storage backend."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='client', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, name, password, role):
    """Create a new user."""
    storage = get_storage()
    try:
        user = auth_service.register_user(storage, {
            "username": username,
            "email": email,
            "name": name,
            "password": password,
            "role": role,
        })
    except PortalError as e:
        raise click.ClickException(f"Failed to create user: {e.message}")

    activity_service.log_activity(
        storage,
        user_id=user.id,
        action="User Registration",
        details=f"User {user.username} created from the CLI with role {user.role}",
        entity_type="user",
        entity_id=user.id,
    )
    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with their roles."""
    users = get_storage().list_users()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        click.echo(f"{user.id:>4}  {user.username:<20} {user.email:<30} {user.role:<8} {user.status}")


@users_group.command('set-role')
@click.argument('username')
@click.argument('role', type=click.Choice(list(ROLES)))
@with_appcontext
def set_role_cli(username, role):
    """Change a user's role."""
    storage = get_storage()
    try:
        user = auth_service.change_role(storage, username, role)
    except PortalError as e:
        raise click.ClickException(e.message)

    activity_service.log_activity(
        storage,
        user_id=None,
        action="User Role Changed",
        details=f"User {user.username} role set to {role} from the CLI",
        entity_type="user",
        entity_id=user.id,
    )
    click.echo(f"PASS {user.username} is now '{role}'")


@users_group.command('link-client')
@click.argument('username')
@click.argument('client_id', type=int)
@with_appcontext
def link_client_cli(username, client_id):
    """Attach a client profile to a user so the client dashboard can show it."""
    storage = get_storage()
    user = storage.get_user_by_username(username)
    if user is None:
        raise click.ClickException(f"User '{username}' not found")
    client = storage.get_client(client_id)
    if client is None:
        raise click.ClickException(f"Client {client_id} not found")

    storage.update_client(client.id, user_id=user.id)
    activity_service.log_activity(
        storage,
        user_id=None,
        action="Client Linked",
        details=f"Client {client.name} linked to user {user.username} from the CLI",
        entity_type="client",
        entity_id=client.id,
    )
    click.echo(f"PASS {client.name} is now linked to {user.username}")


@click.group('freshbooks')
def freshbooks_group():
    """Freshbooks integration commands."""


@freshbooks_group.command('authorize-url')
@with_appcontext
def authorize_url_cli():
    """Print the Freshbooks consent URL."""
    click.echo(get_freshbooks().authorization_url())


@freshbooks_group.command('sync')
@click.option('--entity', type=click.Choice(['all', 'clients', 'projects', 'invoices']), default='all', show_default=True)
@with_appcontext
def sync_cli(entity):
    """Pull clients, projects and invoices from Freshbooks."""
    try:
        summary = get_freshbooks().sync(entity)
    except PortalError as e:
        raise click.ClickException(f"Sync failed: {e.message}")

    for result in summary.results:
        click.echo(
            f"{result.entity:<9} created={result.created} updated={result.updated} skipped={result.skipped}"
        )
    activity_service.log_activity(
        get_storage(),
        user_id=None,
        action="Freshbooks Sync",
        details=f"CLI sync ({entity})",
        entity_type="api_connection",
    )


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired session records."""
    deleted = session_service.cleanup_expired_sessions(get_storage().session_store)
    click.echo(f"PASS Deleted {deleted} expired session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(freshbooks_group)
    app.cli.add_command(maintenance_group)
