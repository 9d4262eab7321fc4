# Overview: Flask CLI command groups for bootstrap, stock inspection and kitchen queue.

# backend/venue_orders/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to venue_orders (PowerShell: $env:FLASK_APP="venue_orders").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - python -m flask inventory seed-demo
#   Create a small demo menu (Burger, Fries) with recipes and opening stock.
# - python -m flask inventory reconcile
#   Compare every ingredient's stock level with the replay of its stock log.
# - python -m flask inventory low-stock
#   List ingredients at or below their reorder threshold.
#
# Orders:
# - python -m flask orders kitchen
#   Print the active kitchen queue (Pending, Preparing, Ready).

import sys
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Ingredient, MenuItem, RecipeRequirement
from .services import order_service, stock_ledger_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


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
    click.echo("CREATE  Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('inventory')
def inventory_group():
    """Ingredient stock inspection and seeding."""


@inventory_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Idempotently create a demo menu with recipes and opening stock."""
    demo_ingredients = [
        ("Beef Patty", "g", Decimal("1000"), Decimal("300")),
        ("Burger Bun", "pcs", Decimal("20"), Decimal("5")),
        ("Potato", "g", Decimal("5000"), Decimal("1000")),
    ]
    by_name = {}
    for name, unit, opening, threshold in demo_ingredients:
        ingredient = db.session.query(Ingredient).filter_by(name=name).first()
        if ingredient is None:
            ingredient = stock_ledger_service.create_ingredient(
                name, unit, opening_stock=opening, reorder_threshold=threshold,
            )
            click.echo(f"PASS Created ingredient {name} ({opening} {unit})")
        by_name[name] = ingredient

    demo_menu = [
        ("Burger", "Mains", 18000, [("Beef Patty", Decimal("150")), ("Burger Bun", Decimal("1"))]),
        ("Fries", "Sides", 7500, [("Potato", Decimal("200"))]),
    ]
    for name, category, price_cents, recipe in demo_menu:
        if db.session.query(MenuItem).filter_by(name=name).first():
            click.echo(f"SKIP Menu item {name} already exists")
            continue
        item = MenuItem(name=name, category=category, price_cents=price_cents, is_available=True)
        db.session.add(item)
        db.session.flush()
        for ingredient_name, qty in recipe:
            db.session.add(RecipeRequirement(
                menu_item_id=item.id,
                ingredient_id=by_name[ingredient_name].id,
                quantity_per_unit=qty,
            ))
        db.session.commit()
        click.echo(f"PASS Created menu item {name} (ID: {item.id})")


@inventory_group.command('reconcile')
@with_appcontext
def reconcile_stock():
    """Exit non-zero if any stock level disagrees with its log."""
    mismatches = stock_ledger_service.reconcile()
    if not mismatches:
        click.echo("PASS All ingredient stock levels match their stock log")
        return
    for m in mismatches:
        click.echo(
            f"FAIL {m['ingredient_name']} (ID {m['ingredient_id']}): "
            f"stored {m['stock_level']} vs replayed {m['replayed_level']}"
        )
    sys.exit(1)


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    ingredients = stock_ledger_service.list_ingredients(low_stock_only=True)
    if not ingredients:
        click.echo("No ingredients at or below reorder threshold")
        return
    for ingredient in ingredients:
        click.echo(
            f"{ingredient.name:<24} {ingredient.stock_level} {ingredient.unit} "
            f"(reorder at {ingredient.reorder_threshold})"
        )


@click.group('orders')
def orders_group():
    """Order queue inspection."""


@orders_group.command('kitchen')
@with_appcontext
def kitchen_queue():
    orders = order_service.list_kitchen_orders()
    if not orders:
        click.echo("Kitchen queue is empty")
        return
    for order in orders:
        items = ", ".join(f"{line['quantity']} x {line['item_name']}" for line in order["lines"])
        click.echo(f"#{order['id']:<5} {order['status']:<10} {order['destination']:<12} {items}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(orders_group)
