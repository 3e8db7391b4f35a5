# Overview: Flask CLI command groups for bootstrap, demo data, and scheduled checks.

# backend/shopkeep/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin, manager and staff users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions --older-than-days 30
#   Delete expired or revoked session tokens.
#
# Users:
# - python -m flask users create --username jane --email jane@shop.local --password secret1 --role staff
# - python -m flask users list
#
# Demo data:
# - python -m flask seed demo
#   Sample catalogue, inventory and sales (skips products whose SKU exists).
#
# Scheduled jobs (invoke from cron or a task scheduler):
# - python -m flask stock check
#   Daily stock sweep: raises missing low-stock, out-of-stock and overstock alerts.
# - python -m flask reports weekly
#   Seven-day sales summary.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .models.auth import ROLES
from .services import alert_service, reporting_service
from .services.auth_service import create_user
from .services.products_service import create_product
from .services.sales_service import record_sale
from .services.session_service import cleanup_expired_sessions
from .validation import ValidationError, ConflictError


DEFAULT_USERS = [
    ("admin", "admin@shopkeep.local", "admin", "admin123", "Admin", "User"),
    ("manager", "manager@shopkeep.local", "manager", "manager123", "Store", "Manager"),
    ("staff", "staff@shopkeep.local", "staff", "staff123", "Store", "Staff"),
]

# name, category, supplier, cost, price, description, sku, on hand, reorder level, shelf
DEMO_PRODUCTS = [
    ("Campus Hoodie - Crimson", "Apparel", "College Bookstore Supply", "35.00", "65.00",
     "Crimson hoodie with embroidered logo. 80% cotton, 20% polyester.", "CMP-HOO-001", 25, 10, "A-1"),
    ("Campus Mug - Classic White", "Accessories", "Campus Store Inc", "6.50", "12.95",
     "White ceramic mug with the campus seal. Dishwasher safe.", "CMP-MUG-001", 5, 15, "B-3"),
    ("Campus T-Shirt - Navy Blue", "Apparel", "College Bookstore Supply", "12.00", "24.99",
     "Navy t-shirt with logo. 100% pre-shrunk cotton.", "CMP-TSH-001", 45, 20, "A-2"),
    ("Campus Notebook Set", "Stationery", "Academic Supplies Co", "9.25", "18.50",
     "Set of 3 spiral-bound notebooks. College-ruled, 80 sheets each.", "CMP-NOT-001", 8, 12, "C-1"),
    ("Shield Keychain", "Accessories", "Campus Store Inc", "4.50", "8.99",
     "Metal keychain with the shield in antique brass finish.", "CMP-KEY-001", 78, 25, "B-1"),
    ("Campus Sweatpants - Gray", "Apparel", "College Bookstore Supply", "25.00", "45.00",
     "Sweatpants in heather gray.", "CMP-SWP-001", 15, 8, "A-3"),
    ("Water Bottle - Stainless", "Accessories", "Campus Store Inc", "8.00", "16.99",
     "20oz stainless steel bottle with logo.", "CMP-WTR-001", 32, 15, "B-2"),
    ("Pennant - Traditional", "Accessories", "Academic Supplies Co", "3.00", "7.99",
     "Felt pennant flag with gold lettering.", "CMP-PEN-001", 12, 10, "C-2"),
    ("Campus Baseball Cap", "Apparel", "College Bookstore Supply", "15.00", "28.99",
     "Adjustable cap with embroidered logo.", "CMP-CAP-001", 22, 12, "A-4"),
    ("Laptop Sticker Pack", "Stationery", "Academic Supplies Co", "2.50", "5.99",
     "Pack of 5 weather-resistant vinyl stickers.", "CMP-STK-001", 150, 50, "C-3"),
]

# sku, quantity, cashier, payment method
DEMO_SALES = [
    ("CMP-HOO-001", 3, "John D.", "card"),
    ("CMP-MUG-001", 2, "Sarah M.", "cash"),
    ("CMP-TSH-001", 5, "Mike R.", "card"),
    ("CMP-NOT-001", 1, "Lisa K.", "cash"),
    ("CMP-KEY-001", 4, "Tom B.", "card"),
    ("CMP-SWP-001", 2, "Emma W.", "card"),
    ("CMP-WTR-001", 1, "Alex P.", "cash"),
    ("CMP-CAP-001", 3, "Chris L.", "card"),
    ("CMP-STK-001", 8, "Jordan M.", "cash"),
]


def _cents(amount: str) -> int:
    return int(Decimal(amount) * 100)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize Shopkeep: tables plus default users.

    Creates:
    - All tables (no-op for tables that exist)
    - Users: admin/admin123, manager/manager123, staff/staff123

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Shopkeep...")

    db.create_all()
    click.echo("PASS Tables ready")

    for username, email, role, password, first_name, last_name in DEFAULT_USERS:
        existing = db.session.query(User).filter_by(username=username).first()
        if existing:
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(
                username=username,
                email=email,
                password=password,
                role=role,
                first_name=first_name,
                last_name=last_name,
            )
        except (ValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {e}")
            continue
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")

    click.echo("\n" + "="*60)
    click.echo("DONE Shopkeep initialized")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, _email, _role, password, _first, _last in DEFAULT_USERS:
        click.echo(f"   {username:<8} / {password}")
    click.echo("")


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


@system_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions(older_than_days):
    """Delete expired or revoked session tokens."""
    deleted = cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} session tokens older than {older_than_days} days.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """Create a user."""
    try:
        user = create_user(username=username, email=email, password=password, role=role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*80 + "\n")


@click.group('seed')
def seed_group():
    """Demo data commands."""


@seed_group.command('demo')
@with_appcontext
def seed_demo():
    """
    Load the demo catalogue and a handful of sales.

    Products are created with enough stock that the listed on-hand levels
    remain after the demo sales. Finishes with a stock check so the low
    items show up as alerts.
    """
    actor = db.session.query(User).filter_by(role="admin").order_by(User.id.asc()).first()

    sold_by_sku = {}
    for sku, quantity, _cashier, _method in DEMO_SALES:
        sold_by_sku[sku] = sold_by_sku.get(sku, 0) + quantity

    created = 0
    for (name, category, supplier, cost, price, description, sku,
         on_hand, reorder_level, shelf) in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product {sku} already exists, skipping...")
            continue
        create_product(
            patch={
                "name": name,
                "category": category,
                "supplier": supplier,
                "description": description,
                "sku": sku,
                "cost_price_cents": _cents(cost),
                "sell_price_cents": _cents(price),
            },
            inventory={
                "quantity": on_hand + sold_by_sku.get(sku, 0),
                "reorder_level": reorder_level,
                "shelf_location": shelf,
            },
            actor=actor,
        )
        created += 1

    if created == 0:
        click.echo("PASS Demo catalogue already present; no sales recorded.")
        return
    click.echo(f"PASS Created {created} products")

    for sku, quantity, cashier, method in DEMO_SALES:
        product = db.session.query(Product).filter_by(sku=sku).first()
        record_sale(
            product_id=product.id,
            quantity_sold=quantity,
            unit_price_cents=product.sell_price_cents,
            cashier_name=cashier,
            payment_method=method,
            actor=actor,
        )
    click.echo(f"PASS Recorded {len(DEMO_SALES)} sales")

    summary = alert_service.run_stock_sweep()
    click.echo(f"PASS Stock check raised {summary['alerts_created']} alerts")


@click.group('stock')
def stock_group():
    """Inventory checks."""


@stock_group.command('check')
@with_appcontext
def stock_check():
    """Raise alerts for every product at or below its reorder level or at max stock."""
    click.echo("Running stock check...")
    summary = alert_service.run_stock_sweep()

    if summary["low_stock"] == 0 and summary["overstock"] == 0:
        click.echo("PASS Stock check complete. No items need attention.")
        return

    click.echo(
        f"PASS Stock check complete. {summary['low_stock']} low, "
        f"{summary['overstock']} overstocked, {summary['alerts_created']} new alerts."
    )
    if summary["failures"]:
        click.echo(f"FAIL {summary['failures']} products could not be evaluated (see log)")


@click.group('reports')
def reports_group():
    """Sales reports."""


@reports_group.command('weekly')
@with_appcontext
def weekly_report():
    """Seven-day sales summary."""
    stats = reporting_service.weekly_summary()
    click.echo("Weekly Sales Summary:")
    click.echo(f"   Transactions: {stats['total_transactions']}")
    click.echo(f"   Items Sold: {stats['total_items_sold']}")
    click.echo(f"   Revenue: {stats['total_revenue']}")
    click.echo(f"   Avg Transaction: {stats['avg_transaction_value']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(seed_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(reports_group)
