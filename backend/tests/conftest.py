"""
Pytest fixtures for the venue order engine tests.

Provides an in-memory app, a per-test clean database, and a small menu:
Burger (150 g beef + 1 bun), Fries (200 g potato) and a Soda with no recipe.
"""

from decimal import Decimal

import pytest
from venue_orders import create_app
from venue_orders.extensions import db
from venue_orders.models import MenuItem, RecipeRequirement, Ingredient, StockChangeLog, Order
from venue_orders.services import order_service, stock_ledger_service
from venue_orders.validation import CreateOrderRequest, OrderItemRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SERVICE_CHARGE_RATE_BPS': 1000,
        'TAX_RATE_BPS': 1200,
        'LOCK_RETRY_BACKOFF': 0.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def beef(db_session):
    return stock_ledger_service.create_ingredient("Beef", "g", opening_stock=1000, reorder_threshold=200)


@pytest.fixture(scope='function')
def bun(db_session):
    return stock_ledger_service.create_ingredient("Bun", "pcs", opening_stock=10, reorder_threshold=2)


@pytest.fixture(scope='function')
def potato(db_session):
    return stock_ledger_service.create_ingredient("Potato", "g", opening_stock=5000, reorder_threshold=500)


def _menu_item(db_session, name, price_cents, recipe):
    item = MenuItem(name=name, category="Test", price_cents=price_cents, is_available=True)
    db_session.add(item)
    db_session.flush()
    for ingredient, qty in recipe:
        db_session.add(RecipeRequirement(
            menu_item_id=item.id,
            ingredient_id=ingredient.id,
            quantity_per_unit=Decimal(qty),
        ))
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def burger(db_session, beef, bun):
    return _menu_item(db_session, "Burger", 18000, [(beef, "150"), (bun, "1")])


@pytest.fixture(scope='function')
def fries(db_session, potato):
    return _menu_item(db_session, "Fries", 7500, [(potato, "200")])


@pytest.fixture(scope='function')
def soda(db_session):
    return _menu_item(db_session, "Soda", 4500, [])


@pytest.fixture(scope='function')
def place_order(db_session):
    """Factory: place_order((item, qty), ...) -> OrderCreated."""
    def _place(*items, destination="Table 4", order_kind="DINE_IN", customer_id=None):
        request = CreateOrderRequest(
            order_kind=order_kind,
            destination=destination,
            customer_id=customer_id,
            items=tuple(OrderItemRequest(menu_item_id=item.id, quantity=qty) for item, qty in items),
        )
        return order_service.create_order(request)
    return _place


def stock_of(ingredient_id) -> Decimal:
    db.session.expire_all()
    return db.session.get(Ingredient, ingredient_id).stock_level


def order_status(order_id) -> str:
    db.session.expire_all()
    return db.session.get(Order, order_id).status


def log_entries(order_id=None, action=None) -> list:
    q = db.session.query(StockChangeLog)
    if order_id is not None:
        q = q.filter(StockChangeLog.order_id == order_id)
    if action is not None:
        q = q.filter(StockChangeLog.action == action)
    return q.order_by(StockChangeLog.id).all()
