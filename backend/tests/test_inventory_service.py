"""
Inventory Store and stock movement log tests.

Covers restock/adjust rules and the pairing invariant: every quantity
change has exactly one movement, and the movement chain replays to the
stored quantity.
"""

import pytest

from shopkeep.errors import ImmutabilityViolationError, InsufficientStockError, NotFoundError
from shopkeep.extensions import db
from shopkeep.models import Alert, InventoryRecord, Sale, StockMovement
from shopkeep.services import inventory_service, movement_service
from shopkeep.services.products_service import delete_product, update_product
from shopkeep.services.sales_service import record_sale
from shopkeep.validation import ValidationError


def _movements(product_id):
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.id.asc())
        .all()
    )


class TestRestockAndAdjust:

    def test_restock_adds_stock_and_logs_movement(self, make_product, manager_user):
        product = make_product(quantity=5)

        record = inventory_service.restock(
            product_id=product.id, quantity=20, reason="Supplier delivery", actor=manager_user
        )

        assert record.quantity == 25
        assert record.last_restocked_at is not None
        movement = _movements(product.id)[-1]
        assert movement.movement_type == "restock"
        assert movement.quantity_delta == 20
        assert movement.previous_quantity == 5
        assert movement.new_quantity == 25
        assert movement.reason == "Supplier delivery"
        assert movement.actor_user_id == manager_user.id

    def test_restock_requires_positive_quantity(self, make_product):
        product = make_product(quantity=5)

        with pytest.raises(ValidationError):
            inventory_service.restock(product_id=product.id, quantity=0, reason=None, actor=None)

    def test_restock_to_max_level_raises_overstock_alert(self, make_product):
        product = make_product(quantity=90, reorder_level=10, max_stock_level=100)

        inventory_service.restock(product_id=product.id, quantity=10, reason=None, actor=None)

        alert = db.session.query(Alert).filter_by(product_id=product.id).one()
        assert alert.alert_type == "overstock"
        assert alert.priority == "low"

    def test_damage_reduces_stock_and_can_raise_alert(self, make_product, quantity_of):
        product = make_product(quantity=12, reorder_level=10)

        inventory_service.adjust_stock(
            product_id=product.id, quantity_delta=-3, movement_type="damage",
            reason="Dropped box", actor=None,
        )

        assert quantity_of(product.id) == 9
        assert _movements(product.id)[-1].movement_type == "damage"
        alert = db.session.query(Alert).filter_by(product_id=product.id).one()
        assert alert.alert_type == "low_stock"

    def test_adjust_below_zero_is_rejected_without_writes(self, make_product, quantity_of):
        product = make_product(quantity=3)
        before = len(_movements(product.id))

        with pytest.raises(InsufficientStockError) as exc_info:
            inventory_service.adjust_stock(
                product_id=product.id, quantity_delta=-5, movement_type="adjustment",
                reason="Count", actor=None,
            )

        assert exc_info.value.available == 3
        assert exc_info.value.requested == 5
        assert quantity_of(product.id) == 3
        assert len(_movements(product.id)) == before

    @pytest.mark.parametrize(
        "delta,movement_type",
        [(0, "adjustment"), (4, "damage"), (-4, "return"), (1, "sale"), (1, "restock")],
    )
    def test_adjust_rejects_inconsistent_requests(self, make_product, delta, movement_type):
        product = make_product(quantity=10)

        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(
                product_id=product.id, quantity_delta=delta, movement_type=movement_type,
                reason=None, actor=None,
            )

    def test_unknown_product_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.restock(product_id=777, quantity=1, reason=None, actor=None)

    def test_set_quantity_refuses_negative_values(self, make_product):
        product = make_product(quantity=1)
        record = inventory_service.get_inventory(product.id)

        with pytest.raises(ValueError):
            inventory_service.set_quantity(record, -1)

    def test_list_low_stock_orders_emptiest_first(self, make_product):
        a = make_product(quantity=7, reorder_level=10)
        b = make_product(quantity=2, reorder_level=10)
        make_product(quantity=40, reorder_level=10)

        assert [r.product_id for r in inventory_service.list_low_stock()] == [b.id, a.id]

    def test_get_quantity_reads_stored_level(self, make_product):
        product = make_product(quantity=7)
        inventory_service.restock(product_id=product.id, quantity=3, reason=None, actor=None)

        assert inventory_service.get_quantity(product.id) == 10

    def test_deleted_product_cannot_be_restocked_or_adjusted(self, make_product, quantity_of):
        product = make_product(quantity=5)
        delete_product(product_id=product.id)
        before = len(_movements(product.id))

        with pytest.raises(NotFoundError):
            inventory_service.restock(product_id=product.id, quantity=3, reason=None, actor=None)
        with pytest.raises(NotFoundError):
            inventory_service.adjust_stock(
                product_id=product.id, quantity_delta=-1, movement_type="damage",
                reason=None, actor=None,
            )
        with pytest.raises(NotFoundError):
            inventory_service.get_quantity(product.id)

        assert quantity_of(product.id) == 5
        assert len(_movements(product.id)) == before
        assert inventory_service.get_inventory(product.id, include_inactive=True).quantity == 5


class TestPairingInvariant:

    def test_movement_chain_replays_to_stored_quantity(self, make_product, admin_user, quantity_of):
        product = make_product(quantity=30, reorder_level=5, actor=admin_user)

        record_sale(product_id=product.id, quantity_sold=4, unit_price_cents=1000, actor=admin_user)
        inventory_service.restock(product_id=product.id, quantity=10, reason=None, actor=admin_user)
        inventory_service.adjust_stock(
            product_id=product.id, quantity_delta=2, movement_type="return", reason=None, actor=admin_user
        )
        update_product(product_id=product.id, patch={}, inventory={"quantity": 25}, actor=admin_user)
        record_sale(product_id=product.id, quantity_sold=5, unit_price_cents=1000, actor=admin_user)

        movements = _movements(product.id)
        assert [m.movement_type for m in movements] == [
            "restock", "sale", "restock", "return", "adjustment", "sale"
        ]

        running = 0
        for m in movements:
            assert m.previous_quantity == running
            assert m.new_quantity == m.previous_quantity + m.quantity_delta
            running = m.new_quantity

        assert running == quantity_of(product.id) == 20
        assert sum(m.quantity_delta for m in movements) == 20

        sale_movements = [m for m in movements if m.movement_type == "sale"]
        sales = db.session.query(Sale).filter_by(product_id=product.id).all()
        assert len(sale_movements) == len(sales) == 2
        assert {m.sale_id for m in sale_movements} == {s.id for s in sales}

    def test_update_without_quantity_change_logs_nothing(self, make_product):
        product = make_product(quantity=10)
        before = len(_movements(product.id))

        update_product(product_id=product.id, patch={"name": "Renamed"}, inventory={"quantity": 10})

        assert len(_movements(product.id)) == before


class TestMovementLog:

    def test_log_movement_rejects_inconsistent_quantities(self, make_product):
        product = make_product(quantity=0)

        with pytest.raises(ValueError):
            movement_service.log_movement(
                product_id=product.id, movement_type="restock",
                quantity_delta=5, previous_quantity=0, new_quantity=6,
            )
        db.session.rollback()

    def test_list_movements_filters_and_orders_newest_first(self, make_product):
        product = make_product(quantity=10)
        other = make_product(quantity=3)
        record_sale(product_id=product.id, quantity_sold=1, unit_price_cents=100)

        movements = movement_service.list_movements(product_id=product.id)
        assert [m.movement_type for m in movements] == ["sale", "restock"]

        sales_only = movement_service.list_movements(movement_type="sale")
        assert {m.product_id for m in sales_only} == {product.id}

        assert other.id not in {m.product_id for m in movements}

    def test_list_movements_rejects_unknown_type(self, db_session):
        with pytest.raises(ValidationError):
            movement_service.list_movements(movement_type="theft")


class TestImmutability:

    def test_movement_cannot_be_updated(self, make_product):
        product = make_product(quantity=5)
        movement = _movements(product.id)[0]

        movement.reason = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            db.session.commit()
        db.session.rollback()

    def test_sale_cannot_be_deleted(self, make_product):
        product = make_product(quantity=5)
        result = record_sale(product_id=product.id, quantity_sold=1, unit_price_cents=100)

        db.session.delete(db.session.get(Sale, result.sale.id))
        with pytest.raises(ImmutabilityViolationError):
            db.session.commit()
        db.session.rollback()

        assert db.session.query(Sale).count() == 1

    def test_inventory_version_increments_on_change(self, make_product):
        product = make_product(quantity=5)
        before = db.session.query(InventoryRecord).filter_by(product_id=product.id).one().version_id

        inventory_service.restock(product_id=product.id, quantity=1, reason=None, actor=None)

        db.session.expire_all()
        after = db.session.query(InventoryRecord).filter_by(product_id=product.id).one().version_id
        assert after > before
