# Overview: Flask CLI command groups for bootstrap, seeding and tracking snapshots.

# backend/exportops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-sample [--force]
#   Load sample lots and sales orders when the store is empty.
#
# Tracking snapshots:
# - python -m flask tracking publish
#   Publish one snapshot per lot tracking token right now.
# - python -m flask tracking show TOKEN
#   Print the public tracking view a token resolves to.

import json

import click
from flask.cli import with_appcontext

from .errors import ExportOpsError
from .extensions import db
from .services.app_services import get_repository, get_snapshot_source, get_store
from .services.public_tracking_service import build_tracking_view, resolve_snapshot
from .services.sample_data import seed_sample_data
from .services.sync_service import SnapshotPublisher


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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
    get_store().reload()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-sample' for demo data.")


@system_group.command('seed-sample')
@click.option('--force', is_flag=True, help='Overwrite existing collections')
@with_appcontext
def seed_sample(force):
    """Load sample lots and sales orders."""
    if seed_sample_data(get_repository(), force=force):
        click.echo("PASS Sample lots and sales orders loaded.")
    else:
        click.echo("SKIP Store already holds data (use --force to overwrite).")


@click.group('tracking')
def tracking_group():
    """Tracking snapshot commands."""


@tracking_group.command('publish')
@with_appcontext
def publish_snapshots():
    """Publish the current collections once per lot tracking token."""
    snapshot = get_repository().snapshot()
    tokens = {lot["trackingToken"] for lot in snapshot["inventory"] if lot.get("trackingToken")}
    published = SnapshotPublisher(get_snapshot_source()).publish_all(
        snapshot["inventory"], snapshot["salesOrders"], snapshot["assignments"],
    )
    click.echo(f"Published {published}/{len(tokens)} snapshots.")
    if published < len(tokens):
        raise click.ClickException("Some snapshots failed to publish; see the log.")


@tracking_group.command('show')
@click.argument('token')
@with_appcontext
def show_tracking(token):
    """Print the public view for TOKEN as JSON."""
    try:
        snapshot = resolve_snapshot(token, get_repository(), get_snapshot_source())
        view = build_tracking_view(token, snapshot)
    except ExportOpsError as e:
        raise click.ClickException(f"Invalid link: {e}")
    click.echo(json.dumps(view, indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tracking_group)
