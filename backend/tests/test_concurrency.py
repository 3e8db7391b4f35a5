"""
Concurrent sales against one product.

Uses a file-backed SQLite database so that two threads really hold two
connections. Two sales of 6 against a stock of 10 must not both succeed.
"""

import threading

import pytest

from shopkeep import create_app
from shopkeep.errors import InsufficientStockError
from shopkeep.extensions import db
from shopkeep.models import InventoryRecord, Sale, StockMovement
from shopkeep.services.products_service import create_product
from shopkeep.services.sales_service import record_sale


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
        'BCRYPT_ROUNDS': 4,
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_two_concurrent_sales_cannot_oversell(file_app):
    with file_app.app_context():
        product = create_product(
            patch={"name": "Campus Hoodie", "category": "Apparel", "sell_price_cents": 3999},
            inventory={"quantity": 10, "reorder_level": 0, "max_stock_level": None},
        )
        product_id = product.id

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def sell():
        with file_app.app_context():
            barrier.wait()
            try:
                result = record_sale(product_id=product_id, quantity_sold=6, unit_price_cents=3999)
                outcome = ("ok", result.new_quantity)
            except InsufficientStockError as exc:
                outcome = ("rejected", exc.available)
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=sell) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == [("ok", 4), ("rejected", 4)]

    with file_app.app_context():
        record = db.session.query(InventoryRecord).filter_by(product_id=product_id).one()
        assert record.quantity == 4
        assert db.session.query(Sale).count() == 1
        assert db.session.query(StockMovement).filter_by(movement_type="sale").count() == 1
