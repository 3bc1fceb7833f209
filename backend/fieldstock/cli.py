# Overview: Flask CLI command groups for bootstrap and data entry.

# backend/fieldstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create tables and a default admin user (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Hierarchy:
# - python -m flask users create --name "Jane RM" --email jane@example.com --role regional_manager --region Nairobi
#   Create a hierarchy member. Field officers take --team-leader-id and --regional-manager-id.
#
# Catalog and stock:
# - python -m flask products create --name "Phone X" --category phone --price-cents 1500000 --fo-commission-cents 50000
# - python -m flask devices register --imei 356938035643809 --product-id 1 --registered-by 1

import click
from flask.cli import with_appcontext

from .constants import ROLES, ROLE_ADMIN, DEVICE_SOURCES
from .extensions import db
from .models import User
from .services import device_service, directory_service
from .services.errors import CustodyError
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@fieldstock.local', help='Email for the default admin')
@with_appcontext
def init_system(admin_email):
    """Create all tables and a default admin user if none exists."""
    click.echo("START Initializing FieldStock...")

    db.create_all()
    click.echo("PASS Tables created")

    admin = db.session.query(User).filter_by(role=ROLE_ADMIN).first()
    if admin:
        click.echo(f"PASS Using existing admin: {admin.name} (ID: {admin.id})")
        return

    admin = directory_service.create_user(name="Admin", email=admin_email, role=ROLE_ADMIN)
    db.session.commit()
    click.echo(f"PASS Created admin: {admin.email} (ID: {admin.id})")


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
    """Hierarchy member commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--region', default=None, help='Region (regional managers and their teams)')
@click.option('--team-leader-id', type=int, default=None, help='Team leader (field officers only)')
@click.option('--regional-manager-id', type=int, default=None, help='Regional manager override')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_user_cli(name, email, role, region, team_leader_id, regional_manager_id, phone):
    """Create a hierarchy member."""
    try:
        user = directory_service.create_user(
            name=name,
            email=email,
            role=role,
            region=region,
            team_leader_id=team_leader_id,
            regional_manager_id=regional_manager_id,
            phone=phone,
        )
        db.session.commit()
        click.echo(f"PASS Created {user.role} {user.name} (ID: {user.id})")
    except (CustodyError, ValidationError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with roles, regions and active status."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.role:<17} {user.name:<30} {user.region or '-':<12} {status}")


@click.group('products')
def products_group():
    """Catalog commands."""


@products_group.command('create')
@click.option('--name', prompt=True, help='Product name')
@click.option('--category', prompt=True, help='Category (e.g. phone, accessory)')
@click.option('--price-cents', type=int, prompt=True, help='List price in cents')
@click.option('--brand', default=None, help='Brand')
@click.option('--fo-commission-cents', type=int, default=None)
@click.option('--team-leader-commission-cents', type=int, default=None)
@click.option('--regional-manager-commission-cents', type=int, default=None)
@with_appcontext
def create_product_cli(name, category, price_cents, brand, fo_commission_cents,
                       team_leader_commission_cents, regional_manager_commission_cents):
    """Create a catalog product with default commission amounts."""
    try:
        product = directory_service.create_product(
            name=name,
            category=category,
            price_cents=price_cents,
            brand=brand,
            fo_commission_cents=fo_commission_cents,
            team_leader_commission_cents=team_leader_commission_cents,
            regional_manager_commission_cents=regional_manager_commission_cents,
        )
        db.session.commit()
        click.echo(f"PASS Created product {product.name} (ID: {product.id})")
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")


@click.group('devices')
def devices_group():
    """Device inventory commands."""


@devices_group.command('register')
@click.option('--imei', prompt=True, help='15-digit IMEI')
@click.option('--product-id', type=int, prompt=True, help='Product ID')
@click.option('--registered-by', type=int, prompt=True, help='Registering user ID')
@click.option('--imei2', default=None, help='Second IMEI (dual-SIM)')
@click.option('--price-cents', type=int, default=None, help='Price override in cents')
@click.option('--source', type=click.Choice(list(DEVICE_SOURCES)), default='watu')
@with_appcontext
def register_device_cli(imei, product_id, registered_by, imei2, price_cents, source):
    """Register a handset into the depot (IN_STOCK)."""
    try:
        device = device_service.register_device(
            imei=imei,
            product_id=product_id,
            registered_by_user_id=registered_by,
            imei2=imei2,
            price_cents=price_cents,
            source=source,
        )
        db.session.commit()
        click.echo(f"PASS Registered device {device.imei} (ID: {device.id})")
    except (CustodyError, ValidationError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(devices_group)
