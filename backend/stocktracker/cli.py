# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stocktracker/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to stocktracker (PowerShell: $env:FLASK_APP="stocktracker").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin/guest users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles.
# - python -m flask users create --username alice --password secret1 --role guest
#   Create a user (prompts if options are omitted).
# - python -m flask users reset-defaults --yes
#   Force admin/admin123 and guest/guest123 back to their factory state.
#
# Inventory maintenance:
# - python -m flask inventory summary
#   Print totals, this month's sales and stock alerts.
# - python -m flask inventory reset --scope inventory|ledger|all --yes
#   Clear products, transactions or both.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import auth_service, inventory_service, reporting_service
from .validation import ValidationError, DuplicateUserError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the tracker: create tables and the default users.

    Creates:
    - Users: admin (admin role) and guest (guest role)
    - Passwords default to admin123 / guest123

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing stock tracker...")

    db.create_all()
    click.echo("PASS Tables ready")

    created = auth_service.seed_default_users()
    if created:
        for username in created:
            click.echo(f"PASS Created user: {username}")
    else:
        click.echo("PASS Default users already exist")

    click.echo("DONE System initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA! Default users are re-created afterwards.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    auth_service.seed_default_users()
    click.echo("DONE Database reset complete")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = auth_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'Username':<24} {'Role':<8} {'Last login'}")
    click.echo("="*60)

    for user in users:
        data = user.to_dict()
        click.echo(f"{user.username:<24} {user.role:<8} {data['last_login_at'] or '-'}")

    click.echo("="*60 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'guest']), default='guest', show_default=True)
@with_appcontext
def create_user_command(username, password, role):
    """Create a user."""
    try:
        user = auth_service.create_user(username, password, role)
    except (ValidationError, DuplicateUserError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.username} ({user.role})")


@users_group.command('reset-defaults')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_default_users(yes):
    """Force the default admin and guest accounts back to their factory passwords."""
    if not yes:
        click.confirm("WARN Reset admin and guest passwords to their defaults?", abort=True)

    auth_service.reset_default_users()
    for username, password, role in auth_service.DEFAULT_USERS:
        click.echo(f"PASS {username} / {password} ({role})")


@click.group('inventory')
def inventory_group():
    """Inventory inspection and maintenance commands."""


@inventory_group.command('summary')
@with_appcontext
def inventory_summary():
    """Print stock totals and alerts."""
    try:
        summary = reporting_service.dashboard_summary()
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"Total items:   {summary['total_items']}")
    click.echo(f"Total value:   {summary['total_value']:.2f}")
    click.echo(f"Monthly sales: {summary['monthly_sales']:.2f}")
    click.echo(f"Low stock (<= {summary['low_stock_threshold']}): {len(summary['low_stock'])}")
    for product in summary['low_stock']:
        click.echo(f"  - {product['name']}: {product['quantity']}")
    click.echo(f"Out of stock: {len(summary['out_of_stock'])}")
    for product in summary['out_of_stock']:
        click.echo(f"  - {product['name']}")


@inventory_group.command('reset')
@click.option('--scope', type=click.Choice(['inventory', 'ledger', 'all']), default='all', show_default=True)
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_inventory(scope, yes):
    """
    Clear stock data.

    inventory: products only (history kept)
    ledger:    transactions only (products kept)
    all:       both
    """
    if not yes:
        click.confirm(f"WARN This will clear {scope} data. Are you sure?", abort=True)

    if scope == 'inventory':
        removed = inventory_service.reset_inventory()
        click.echo(f"DELETE  Removed {removed} products")
    elif scope == 'ledger':
        removed = inventory_service.reset_ledger()
        click.echo(f"DELETE  Removed {removed} transactions")
    else:
        removed = inventory_service.reset_all()
        click.echo(
            f"DELETE  Removed {removed['products']} products and {removed['transactions']} transactions"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
