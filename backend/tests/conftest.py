"""
Pytest fixtures for Shopkeep backend tests.

Provides the test app (in-memory SQLite), a per-test table wipe, users with
session tokens, and a product factory.
"""

import pytest
from shopkeep import create_app
from shopkeep.extensions import db
from shopkeep.models import InventoryRecord
from shopkeep.services import auth_service, session_service
from shopkeep.services.products_service import create_product


TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before each test."""
    db.session.remove()
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


def _make_user(username: str, role: str):
    return auth_service.create_user(
        username=username,
        email=f"{username}@shopkeep.test",
        password="secret123",
        role=role,
    )


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("admin", "admin")


@pytest.fixture(scope='function')
def manager_user(db_session):
    return _make_user("manager", "manager")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return _make_user("staff", "staff")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(user) -> dict:
    _session, token = session_service.create_session(user)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return _headers_for(manager_user)


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    return _headers_for(staff_user)


@pytest.fixture(scope='function')
def make_product(db_session):
    """
    Factory: make_product(quantity=5, reorder_level=15) -> Product.

    Prices are cents; max_stock_level defaults to None (no overstock alerts).
    """
    counter = {"n": 0}

    def _make(
        *,
        quantity=0,
        reorder_level=10,
        max_stock_level=None,
        name=None,
        category="Accessories",
        sell_price_cents=1295,
        cost_price_cents=650,
        sku=None,
        actor=None,
    ):
        counter["n"] += 1
        n = counter["n"]
        return create_product(
            patch={
                "name": name or f"Test Product {n}",
                "category": category,
                "sku": sku or f"TST-{n:03d}",
                "sell_price_cents": sell_price_cents,
                "cost_price_cents": cost_price_cents,
            },
            inventory={
                "quantity": quantity,
                "reorder_level": reorder_level,
                "max_stock_level": max_stock_level,
            },
            actor=actor,
        )

    return _make


@pytest.fixture(scope='function')
def quantity_of(db_session):
    """quantity_of(product_id) -> committed quantity, bypassing the identity map."""
    def _read(product_id: int) -> int:
        db.session.expire_all()
        return db.session.query(InventoryRecord).filter_by(product_id=product_id).one().quantity

    return _read
