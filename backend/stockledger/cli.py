# Overview: Flask CLI command group for schema bootstrap, demo data, and ledger verification.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask ledger seed-demo
#   Idempotent demo catalog: products, two salesmen, shops, and opening stock.
# - python -m flask ledger verify [--product-id 1]
#   Replay the transaction log against every stock account; exits 1 on drift.
# - python -m flask ledger alerts [--status OPEN] [--ack 3]
#   List low-stock alerts, optionally acknowledging one.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Product, Salesman, Shop, StockAccount, TransactionType
from .services import alert_service, inventory_service
from .services.concurrency import run_with_retry

# Demo actor id used for opening-stock movements
SYSTEM_ACTOR_ID = 1

DEMO_PRODUCTS = (
    # code, name, retail, wholesale, cost, min level, opening stock
    ("SOAP-100", "Bath Soap 100g", 150, 120, 80, 20, 200),
    ("TEA-250", "Black Tea 250g", 450, 380, 260, 10, 120),
    ("RICE-5K", "Rice 5kg", 1800, 1550, 1200, None, 60),
)
DEMO_SALESMEN = (
    ("asanka", "Asanka Perera"),
    ("dilini", "Dilini Fernando"),
)


@click.group('ledger')
def ledger_group():
    """Inventory ledger bootstrap and verification commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create every ledger table that does not exist yet."""
    db.create_all()
    click.echo("PASS Tables created")


@ledger_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Create demo products, salesmen and shops, and receive opening stock.

    Safe to re-run: existing codes/usernames are skipped and opening stock
    is only received for products without a stock account.
    """
    click.echo("START Seeding demo data...")

    salesmen = []
    for username, full_name in DEMO_SALESMEN:
        salesman = db.session.query(Salesman).filter_by(username=username).first()
        if salesman is None:
            salesman = Salesman(username=username, full_name=full_name, is_active=True)
            db.session.add(salesman)
            db.session.flush()
            click.echo(f"PASS Created salesman: {full_name} (ID: {salesman.id})")
        salesmen.append(salesman)

    for index, salesman in enumerate(salesmen, start=1):
        name = f"Corner Shop {index}"
        if db.session.query(Shop).filter_by(name=name).first() is None:
            db.session.add(Shop(name=name, assigned_salesman_id=salesman.id, is_active=True))
            click.echo(f"PASS Created shop: {name} (salesman {salesman.username})")

    opening = []
    for code, name, retail, wholesale, cost, min_level, stock in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(code=code).first()
        if product is None:
            product = Product(
                code=code,
                name=name,
                retail_price_cents=retail,
                wholesale_price_cents=wholesale,
                cost_price_cents=cost,
                min_stock_level=min_level,
                is_active=True,
            )
            db.session.add(product)
            db.session.flush()
            click.echo(f"PASS Created product: {name} (ID: {product.id})")
        opening.append((product.id, stock))

    db.session.commit()

    for product_id, stock in opening:
        if db.session.query(StockAccount).filter_by(product_id=product_id).first() is not None:
            continue
        run_with_retry(
            lambda: inventory_service.record_stock_movement(
                TransactionType.STOCK_IN,
                product_id,
                stock,
                actor_id=SYSTEM_ACTOR_ID,
                notes="Opening stock",
            )
        )
        click.echo(f"PASS Received {stock} units of product {product_id}")

    click.echo("DONE Demo data ready")


@ledger_group.command('verify')
@click.option('--product-id', type=int, default=None, help='Only verify this product')
@with_appcontext
def verify(product_id):
    """Replay the transaction log and report accounts that drifted from it."""
    q = db.session.query(StockAccount.product_id).order_by(StockAccount.product_id.asc())
    if product_id is not None:
        q = q.filter(StockAccount.product_id == product_id)
    product_ids = [row[0] for row in q.all()]

    if not product_ids:
        click.echo("No stock accounts found.")
        return

    drifted = 0
    for pid in product_ids:
        report = inventory_service.recompute_balances(pid)
        if report["consistent"]:
            click.echo(f"PASS product {pid}: {report['transaction_count']} transactions, no drift")
        else:
            drifted += 1
            click.echo(f"FAIL product {pid}: stored={report['stored']} replayed={report['replayed']}")

    if drifted:
        click.echo(f"\n{drifted} of {len(product_ids)} accounts drifted from the transaction log")
        raise SystemExit(1)
    click.echo(f"\nDONE {len(product_ids)} accounts consistent")


@ledger_group.command('alerts')
@click.option('--status', default=alert_service.ALERT_STATUS_OPEN, help='OPEN, ACKNOWLEDGED or RESOLVED')
@click.option('--ack', 'ack_id', type=int, default=None, help='Acknowledge this alert id first')
@with_appcontext
def alerts(status, ack_id):
    """List low-stock alerts."""
    if ack_id is not None:
        try:
            alert_service.acknowledge_alert(ack_id)
        except LedgerError as e:
            click.echo(f"FAIL {e.message}")
            raise SystemExit(1)
        click.echo(f"PASS Acknowledged alert {ack_id}")

    rows = alert_service.list_alerts(status=status.upper() if status else None)
    if not rows:
        click.echo("No alerts found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<6} {'Product':<10} {'Stock':<8} {'Threshold':<10} {'Status':<14} {'Raised'}")
    click.echo("="*70)
    for alert in rows:
        raised = alert.created_at.strftime("%Y-%m-%d %H:%M") if alert.created_at else "-"
        click.echo(
            f"{alert.id:<6} {alert.product_id:<10} {alert.current_stock:<8} "
            f"{alert.minimum_threshold:<10} {alert.status:<14} {raised}"
        )
    click.echo("="*70 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
