"""
Sale Recorder tests.

Verifies:
- A sale decrements stock, writes one Sale and one matching StockMovement
- Insufficient stock writes nothing
- Low-stock / out-of-stock alerts follow a committed sale
- A failure inside the transaction leaves no partial state
- A failing alert evaluation never undoes the sale
"""

import pytest
from sqlalchemy.exc import IntegrityError

from shopkeep.errors import AlertEngineFailure, InsufficientStockError, NotFoundError, PersistenceFailure
from shopkeep.extensions import db
from shopkeep.models import Alert, Sale, StockMovement
from shopkeep.services import alert_service, inventory_service
from shopkeep.services.sales_service import record_sale
from shopkeep.validation import ValidationError


def _sell(product, quantity, actor=None, **kwargs):
    return record_sale(
        product_id=product.id,
        quantity_sold=quantity,
        unit_price_cents=kwargs.pop("unit_price_cents", product.sell_price_cents),
        actor=actor,
        **kwargs,
    )


class TestRecordSale:

    def test_low_stock_sale_raises_high_priority_alert(self, make_product, staff_user, quantity_of):
        product = make_product(quantity=5, reorder_level=15)

        result = _sell(product, 3, actor=staff_user)

        assert result.new_quantity == 2
        assert result.low_stock_alert_raised is True
        assert quantity_of(product.id) == 2

        alerts = db.session.query(Alert).filter_by(product_id=product.id).all()
        assert len(alerts) == 1
        assert alerts[0].alert_type == "low_stock"
        assert alerts[0].priority == "high"
        assert alerts[0].status == "active"
        assert alerts[0].message == f"{product.name} is running low (2 remaining, reorder at 15)"
        assert result.alert is not None and result.alert.id == alerts[0].id

    def test_insufficient_stock_writes_nothing(self, make_product, quantity_of):
        product = make_product(quantity=5)
        movements_before = db.session.query(StockMovement).count()

        with pytest.raises(InsufficientStockError) as exc_info:
            _sell(product, 10)

        assert exc_info.value.available == 5
        assert exc_info.value.requested == 10
        assert exc_info.value.to_dict() == {
            "error": "Insufficient inventory",
            "available": 5,
            "requested": 10,
        }
        assert quantity_of(product.id) == 5
        assert db.session.query(Sale).count() == 0
        assert db.session.query(StockMovement).count() == movements_before
        assert db.session.query(Alert).count() == 0

    def test_selling_last_units_raises_critical_out_of_stock(self, make_product, quantity_of):
        product = make_product(quantity=2, reorder_level=10)

        result = _sell(product, 2)

        assert result.new_quantity == 0
        assert quantity_of(product.id) == 0
        alert = db.session.query(Alert).filter_by(product_id=product.id).one()
        assert alert.alert_type == "out_of_stock"
        assert alert.priority == "critical"
        assert alert.message == f"{product.name} is out of stock"

    def test_sale_above_reorder_level_raises_no_alert(self, make_product):
        product = make_product(quantity=50, reorder_level=10)

        result = _sell(product, 5)

        assert result.new_quantity == 45
        assert result.low_stock_alert_raised is False
        assert result.alert is None
        assert db.session.query(Alert).count() == 0

    def test_landing_exactly_on_reorder_level_counts_as_low(self, make_product):
        product = make_product(quantity=12, reorder_level=10)

        result = _sell(product, 2)

        assert result.new_quantity == 10
        assert result.low_stock_alert_raised is True

    def test_sale_row_and_movement_are_paired(self, make_product, staff_user):
        product = make_product(quantity=20, sell_price_cents=1295)

        result = _sell(product, 3, actor=staff_user, payment_method="card")

        sale = db.session.get(Sale, result.sale.id)
        assert sale.quantity_sold == 3
        assert sale.unit_price_cents == 1295
        assert sale.total_amount_cents == 3885
        assert sale.payment_method == "card"
        assert sale.recorded_by_user_id == staff_user.id

        movement = db.session.query(StockMovement).filter_by(sale_id=sale.id).one()
        assert movement.movement_type == "sale"
        assert movement.quantity_delta == -3
        assert movement.previous_quantity == 20
        assert movement.new_quantity == 17
        assert movement.reason == f"Sale #{sale.id}"
        assert movement.actor_user_id == staff_user.id

    def test_cashier_defaults_to_actor_username(self, make_product, staff_user):
        product = make_product(quantity=5)

        result = _sell(product, 1, actor=staff_user)
        assert result.sale.cashier_name == "staff"

        named = _sell(product, 1, actor=staff_user, cashier_name="Sarah M.")
        assert named.sale.cashier_name == "Sarah M."

    def test_to_dict_exposes_contract_fields(self, make_product):
        product = make_product(quantity=5, reorder_level=15)

        body = _sell(product, 3).to_dict()

        assert body["newQuantity"] == 2
        assert body["lowStockAlertRaised"] is True
        assert body["id"] == body["sale"]["id"]
        assert body["sale"]["total_amount"] == "38.85"

    def test_unknown_product_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            record_sale(product_id=9999, quantity_sold=1, unit_price_cents=100)
        assert db.session.query(Sale).count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
    def test_rejects_non_positive_or_non_integer_quantity(self, make_product, quantity_of, quantity):
        product = make_product(quantity=5)

        with pytest.raises(ValidationError):
            _sell(product, quantity)

        assert quantity_of(product.id) == 5

    def test_rejects_unknown_payment_method(self, make_product):
        product = make_product(quantity=5)

        with pytest.raises(ValidationError):
            _sell(product, 1, payment_method="barter")

        assert db.session.query(Sale).count() == 0


class TestAtomicity:

    def test_failure_while_logging_movement_rolls_back_everything(
        self, make_product, monkeypatch, quantity_of
    ):
        product = make_product(quantity=10)
        movements_before = db.session.query(StockMovement).count()

        def _boom(**kwargs):
            raise IntegrityError("INSERT INTO stock_movements", {}, Exception("disk full"))

        monkeypatch.setattr(inventory_service, "log_movement", _boom)

        with pytest.raises(PersistenceFailure):
            _sell(product, 4)

        monkeypatch.undo()
        assert quantity_of(product.id) == 10
        assert db.session.query(Sale).count() == 0
        assert db.session.query(StockMovement).count() == movements_before

    def test_alert_failure_does_not_undo_sale(self, make_product, monkeypatch, quantity_of):
        product = make_product(quantity=5, reorder_level=15)

        def _fail(*args, **kwargs):
            raise AlertEngineFailure("alert store unavailable")

        monkeypatch.setattr(alert_service, "evaluate_and_raise", _fail)

        result = _sell(product, 3)

        assert result.new_quantity == 2
        assert result.low_stock_alert_raised is True
        assert result.alert is None
        assert quantity_of(product.id) == 2
        assert db.session.query(Sale).count() == 1
        assert db.session.query(Alert).count() == 0

    def test_unexpected_alert_error_is_logged_not_raised(self, make_product, monkeypatch, quantity_of):
        product = make_product(quantity=5, reorder_level=15)

        def _broken_lookup(product_id):
            raise KeyError("name")

        monkeypatch.setattr(alert_service, "_product_name", _broken_lookup)

        result = _sell(product, 3)

        assert result.new_quantity == 2
        assert result.alert is None
        assert quantity_of(product.id) == 2
        assert db.session.query(Sale).count() == 1
        assert db.session.query(Alert).count() == 0


class TestDeletedProducts:

    def test_deleted_product_cannot_be_sold(self, make_product, quantity_of):
        from shopkeep.services.products_service import delete_product

        product = make_product(quantity=5, reorder_level=10)
        delete_product(product_id=product.id)

        with pytest.raises(NotFoundError):
            _sell(product, 2)

        assert quantity_of(product.id) == 5
        assert db.session.query(Sale).count() == 0
        assert db.session.query(Alert).count() == 0
