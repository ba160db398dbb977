# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/kpi_portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin account
#   (DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD), and makes sure that
#   account still has the admin role.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and products.
# - python -m flask users create --email ops@example.com --name "Ops" --password "secret1" --role operator --product sams
#   Create a user (prompts if options are omitted).
#
# Deck generation maintenance:
# - python -m flask decks reap
#   Mark pending/in-progress generations older than DECK_GENERATION_TIMEOUT_SECONDS as failed.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models.auth import ROLE_ADMIN, ROLES
from .services import auth_service
from .services.identity_store import DuplicateEmailError
from .stores import get_stores
from .validation import ValidationError, enforce_rules_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and the default admin account."""
    click.echo("START Initializing KPI portal...")

    db.create_all()
    click.echo("PASS Tables ready")

    identities = get_stores().identities
    email = current_app.config["DEFAULT_ADMIN_EMAIL"]
    admin = identities.get_by_email(email)

    if admin is None:
        admin = auth_service.create_user(
            identities,
            email=email,
            password=current_app.config["DEFAULT_ADMIN_PASSWORD"],
            name=current_app.config["DEFAULT_ADMIN_NAME"],
            role=ROLE_ADMIN,
        )
        click.echo(f"PASS Created admin: {admin.email}")
    elif admin.role != ROLE_ADMIN:
        identities.update(admin.id, {"role": ROLE_ADMIN})
        click.echo(f"PASS Restored admin role for: {admin.email}")
    else:
        click.echo(f"WARN  Admin '{admin.email}' already exists, skipping...")

    click.echo("DONE KPI portal initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destroying all data')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and products."""
    users = get_stores().identities.list_all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        products = ", ".join(user.products or []) or "-"
        click.echo(f"{user.id}  {user.email:<32} {user.role:<9} {user.name}  [{products}]")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--name', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='operator', show_default=True)
@click.option('--product', 'products', multiple=True, help='Product id (repeatable)')
@with_appcontext
def create_user(email, name, password, role, products):
    """Create a user."""
    patch = {"email": email.strip(), "password": password, "role": role, "products": list(products)}
    try:
        enforce_rules_user(patch)
        user = auth_service.create_user(
            get_stores().identities,
            email=patch["email"],
            password=password,
            name=name,
            role=role,
            products=patch["products"],
        )
    except (ValidationError, DuplicateEmailError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.email} ({user.role}) id={user.id}")


@click.group('decks')
def decks_group():
    """Deck generation maintenance commands."""


@decks_group.command('reap')
@with_appcontext
def reap_decks():
    """Fail generations whose job never finished."""
    count = get_stores().deck_jobs.reap_stale()
    click.echo(f"PASS Marked {count} stale generation(s) as failed")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(decks_group)
