"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, directory/catalog fixtures, and test client.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Product, Salesman, Shop, TransactionType
from stockledger.services import inventory_service

# Warehouse user performing distributions, returns and manual movements
WAREHOUSE_ACTOR_ID = 900
SHOP_OWNER_USER_ID = 700


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
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
def make_product(db_session):
    """Factory for catalog products (prices in cents)."""
    counter = {"n": 0}

    def _make(name=None, retail=500, wholesale=400, cost=300, min_stock_level=10, is_active=True):
        counter["n"] += 1
        product = Product(
            code=f"P-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            retail_price_cents=retail,
            wholesale_price_cents=wholesale,
            cost_price_cents=cost,
            min_stock_level=min_stock_level,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product X: retail 500, wholesale 400, minimum stock 10."""
    return make_product(name="Product X")


@pytest.fixture(scope='function')
def make_salesman(db_session):
    counter = {"n": 0}

    def _make(is_active=True):
        counter["n"] += 1
        salesman = Salesman(
            username=f"salesman{counter['n']}",
            full_name=f"Salesman {counter['n']}",
            is_active=is_active,
        )
        db_session.add(salesman)
        db_session.commit()
        return salesman

    return _make


@pytest.fixture(scope='function')
def salesman(make_salesman):
    return make_salesman()


@pytest.fixture(scope='function')
def shop(db_session, salesman):
    """Shop T, owned by SHOP_OWNER_USER_ID and serviced by `salesman`."""
    shop = Shop(
        name="Shop T",
        owner_user_id=SHOP_OWNER_USER_ID,
        assigned_salesman_id=salesman.id,
        is_active=True,
    )
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def stock_in(db_session):
    """Receive units into the warehouse through the ledger."""
    def _stock_in(product, quantity):
        return inventory_service.record_stock_movement(
            TransactionType.STOCK_IN,
            product.id,
            quantity,
            actor_id=WAREHOUSE_ACTOR_ID,
            notes="Test receipt",
        )

    return _stock_in


@pytest.fixture(scope='function')
def stocked(product, stock_in):
    """Product X with warehouse_stock=100."""
    stock_in(product, 100)
    return product


def actor_headers(actor_id: int, role: str) -> dict:
    """Helper to create the pre-authenticated caller headers."""
    return {'X-Actor-Id': str(actor_id), 'X-Actor-Role': role}
