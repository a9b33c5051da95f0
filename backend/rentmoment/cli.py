# Overview: Flask CLI command groups for bootstrap and catalog maintenance.

# backend/rentmoment/cli.py
# Usage, from backend/ with the virtualenv active and FLASK_APP=wsgi.py:
#
#   flask system init-db                 create missing tables
#   flask system reset-db --yes          drop + recreate every table (local/dev only)
#   flask system create-admin --name "Admin" --email admin@example.com --password "Password123!"
#   flask system cleanup-sessions        purge expired and revoked session tokens
#
# Catalog repairs for rows written before products could have several categories:
#
#   flask catalog migrate-categories     seed the category set from the legacy category
#   flask catalog fix-slugs              regenerate missing or duplicated product slugs

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.auth_service import create_admin, PasswordValidationError
from .services import maintenance_service
from .services import session_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. All users, products and orders are lost."""
    if not yes:
        click.confirm("WARN Every user, product and order will be deleted. Continue?", abort=True)

    db.drop_all()
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system create-admin' to add an admin.")


@system_group.command('create-admin')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(name, email, password):
    """Create an admin account. The password must pass the same policy as registration."""
    try:
        user = create_admin(name=name, email=email, password=password)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password rejected: {e}")
    except ConflictError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created admin {user.email} (ID: {user.id})")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked session tokens."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


@click.group('catalog')
def catalog_group():
    """Catalog maintenance commands."""


@catalog_group.command('migrate-categories')
@with_appcontext
def migrate_categories_cli():
    """Copy the legacy category into the category set where the set is empty."""
    click.echo("START Migrating products to multiple categories...")
    migrated, remaining = maintenance_service.migrate_categories()

    for product in migrated:
        click.echo(f"  Updated product: {product.name} (ID: {product.id}) -> categories {product.category_ids}")

    click.echo(f"PASS Migration completed. Updated {len(migrated)} products.")
    click.echo(f"Products without categories after migration: {remaining}")


@catalog_group.command('fix-slugs')
@with_appcontext
def fix_slugs_cli():
    """Oldest product keeps a slug; later duplicates and missing slugs are regenerated."""
    click.echo("START Fixing duplicate slugs...")
    try:
        fixes = maintenance_service.fix_duplicate_slugs()
    except ValidationError as e:
        raise click.ClickException(f"{e.message}. Run 'flask catalog migrate-categories' first.")

    for fix in fixes:
        click.echo(f'  Updated product "{fix.name}" ({fix.product_id}) from "{fix.old_slug}" to "{fix.new_slug}"')

    click.echo(f"PASS Fixed {len(fixes)} product slugs.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
