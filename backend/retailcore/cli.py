# Overview: Flask CLI command groups for bootstrap, catalog setup, reconciliation and ledger maintenance.

# backend/retailcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (use "flask db upgrade" for migration-managed databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog add-product --code PRD1 --name "Paneer" --rate 400.00
#   Create or update a product (rate is currency per kg).
# - python -m flask catalog add-staff --staff-id S1 --name "Asha"
#
# Reconciliation:
# - python -m flask reconcile count --date 2024-04-03
# - python -m flask reconcile day --date 2024-04-03 [--page-size 100]
#   Rebuild every aggregate of the day from its SOLD transactions.
#
# Stock ledger:
# - python -m flask ledger show --month 2024-04
# - python -m flask ledger sync [--month 2024-04] [--product PRD1 --product PRD2]
#
# Targets:
# - python -m flask targets evaluate --month 2024-04

import click
from flask.cli import with_appcontext

from .errors import EngineError
from .extensions import db
from .models import Product, Staff
from .services import event_store, incentive_service, reconcile_service, stock_ledger_service
from .validation import require_decimal, round_half_up


def _cents(value: float | None, field: str) -> int | None:
    if value is None:
        return None
    amount = require_decimal(value, field)
    if amount < 0:
        raise click.BadParameter(f"{field} cannot be negative")
    return round_half_up(amount * 100)


def _money(cents: int) -> str:
    return f"{cents / 100:.2f}"


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

    click.echo("PASS Database reset complete.")


@click.group('catalog')
def catalog_group():
    """Product and staff directory commands."""


@catalog_group.command('add-product')
@click.option('--code', required=True, help='Product code (article number)')
@click.option('--name', required=True)
@click.option('--rate', type=float, required=True, help='Selling rate per kg')
@click.option('--purchase-price', type=float, default=None, help='Purchase price per kg')
@with_appcontext
def add_product(code, name, rate, purchase_price):
    """Create a product, or update name and rates of an existing one."""
    product = db.session.query(Product).filter_by(product_code=code).first()
    created = product is None
    if created:
        product = Product(product_code=code)
        db.session.add(product)
    product.name = name
    product.selling_rate_per_kg_cents = _cents(rate, "rate")
    product.purchase_price_per_kg_cents = _cents(purchase_price, "purchase_price")
    db.session.commit()
    click.echo(f"PASS {'Created' if created else 'Updated'} product {code} ({name}) at {_money(product.selling_rate_per_kg_cents)}/kg")


@catalog_group.command('add-staff')
@click.option('--staff-id', required=True)
@click.option('--name', required=True)
@with_appcontext
def add_staff(staff_id, name):
    staff = db.session.query(Staff).filter_by(staff_id=staff_id).first()
    if staff:
        staff.name = name
    else:
        db.session.add(Staff(staff_id=staff_id, name=name))
    db.session.commit()
    click.echo(f"PASS Staff {staff_id} -> {name}")


@click.group('reconcile')
def reconcile_group():
    """Rebuild daily aggregates from the transaction log."""


@reconcile_group.command('count')
@click.option('--date', 'sale_date', required=True, help='Business day YYYY-MM-DD')
@with_appcontext
def count_day(sale_date):
    try:
        count = event_store.count_transactions(sale_date)
    except EngineError as e:
        raise click.ClickException(str(e))
    click.echo(f"{sale_date}: {count} SOLD transactions")


@reconcile_group.command('day')
@click.option('--date', 'sale_date', required=True, help='Business day YYYY-MM-DD')
@click.option('--page-size', type=int, default=None)
@with_appcontext
def reconcile_day(sale_date, page_size):
    """Run a full reconciliation of one business day."""
    try:
        summary = reconcile_service.reconcile_day(sale_date, page_size)
    except EngineError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS {summary['date']}: pages={summary['pages']} processed={summary['processed']} "
        f"skipped={summary['skipped']} aggregates_touched={summary['aggregates_touched']}"
    )
    for error in summary["errors"]:
        click.echo(f"WARN  transaction {error['id']}: {error['error']}")


@click.group('ledger')
def ledger_group():
    """Monthly stock ledger commands."""


@ledger_group.command('show')
@click.option('--month', required=True, help='YYYY-MM')
@with_appcontext
def show_ledgers(month):
    """List (and initialize) every product's ledger for a month."""
    try:
        result = stock_ledger_service.list_monthly_ledgers(month)
    except EngineError as e:
        raise click.ClickException(str(e))

    if not result["items"]:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'Code':<12} {'Name':<30} {'Opening':>10} {'Restocked':>10} {'Sold':>10} {'Closing':>10} {'Synced':<10}")
    click.echo("="*96)
    for item in result["items"]:
        click.echo(
            f"{item['product_code']:<12} {(item['product_name'] or '')[:30]:<30} "
            f"{item['opening_stock_kg']:>10.3f} {item['total_restocked_kg']:>10.3f} "
            f"{item['total_sold_kg']:>10.3f} {item['closing_stock_kg']:>10.3f} "
            f"{item['last_sales_sync_date'] or '-':<10}"
        )


@ledger_group.command('sync')
@click.option('--month', default=None, help='YYYY-MM (default: current business month)')
@click.option('--product', 'products', multiple=True, help='Limit to product code (repeatable)')
@with_appcontext
def sync_ledgers(month, products):
    """Replace total sold with the month's product aggregates."""
    try:
        result = stock_ledger_service.sync_sales(month, list(products) or None)
    except EngineError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {result['month']}: processed={result['processed']} skipped={result['skipped']}")
    for error in result["errors"]:
        click.echo(f"WARN  {error['product_code']}: {error['error']}")


@click.group('targets')
def targets_group():
    """Weekly target and incentive commands."""


@targets_group.command('evaluate')
@click.option('--month', required=True, help='YYYY-MM')
@with_appcontext
def evaluate_targets(month):
    try:
        result = incentive_service.evaluate_incentives(month)
    except EngineError as e:
        raise click.ClickException(str(e))

    for week in result["weeks"]:
        click.echo(f"\n{week['key']} {week['label']}  sales={_money(week['overall']['sales_cents'])} "
                   f"target={_money(week['overall']['target_cents'])}")
        for staff_id, row in week["staff"].items():
            outcome = _money(row["incentive_cents"]) if row["eligible"] else row["reason"]
            click.echo(f"  {staff_id:<10} {row['name'][:24]:<24} sales={_money(row['sales_cents']):>12} "
                       f"target={_money(row['target_cents']):>12} incentive={outcome}")
    click.echo(f"\nTotal incentives: {_money(result['total_incentives_cents'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(reconcile_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(targets_group)
