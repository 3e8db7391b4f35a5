"""
Alert Engine tests: deduplication, resolution lifecycle, ordering and the
scheduled stock sweep.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from shopkeep.errors import NotFoundError
from shopkeep.extensions import db
from shopkeep.models import Alert
from shopkeep.services import alert_service
from shopkeep.services.inventory_service import restock
from shopkeep.services.sales_service import record_sale
from shopkeep.validation import ValidationError


def _sell(product, quantity):
    return record_sale(product_id=product.id, quantity_sold=quantity, unit_price_cents=100)


class TestDeduplication:

    def test_repeated_low_stock_sales_keep_one_active_alert(self, make_product):
        product = make_product(quantity=20, reorder_level=15)

        _sell(product, 6)
        _sell(product, 2)
        second = _sell(product, 1)

        assert second.low_stock_alert_raised is True
        assert second.alert is None
        active = db.session.query(Alert).filter_by(product_id=product.id, status="active").all()
        assert len(active) == 1

    def test_active_low_stock_alert_suppresses_out_of_stock(self, make_product):
        product = make_product(quantity=5, reorder_level=10)

        _sell(product, 3)
        _sell(product, 2)

        alerts = db.session.query(Alert).filter_by(product_id=product.id).all()
        assert [a.alert_type for a in alerts] == ["low_stock"]

    def test_evaluate_is_idempotent(self, make_product):
        product = make_product(quantity=3, reorder_level=10)

        first = alert_service.evaluate_and_raise(product.id, 3, 10)
        second = alert_service.evaluate_and_raise(product.id, 3, 10)

        assert first is not None
        assert second is None
        assert db.session.query(Alert).count() == 1

    def test_quantity_above_reorder_level_raises_nothing(self, make_product):
        product = make_product(quantity=30, reorder_level=10)

        assert alert_service.evaluate_and_raise(product.id, 30, 10) is None
        assert db.session.query(Alert).count() == 0

    def test_database_rejects_second_active_alert_of_same_type(self, make_product):
        product = make_product(quantity=3, reorder_level=10)
        alert_service.evaluate_and_raise(product.id, 3, 10)

        db.session.add(Alert(
            product_id=product.id,
            alert_type="low_stock",
            priority="high",
            message="duplicate",
            status="active",
        ))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

        assert db.session.query(Alert).count() == 1

    def test_lost_insert_race_is_treated_as_already_raised(self, make_product, monkeypatch):
        product = make_product(quantity=3, reorder_level=10)
        alert_service.evaluate_and_raise(product.id, 3, 10)

        # Simulate a concurrent writer that passed the check before ours committed
        monkeypatch.setattr(alert_service, "_has_active", lambda product_id, alert_types: False)

        assert alert_service.evaluate_and_raise(product.id, 3, 10) is None
        assert db.session.query(Alert).count() == 1

    def test_new_alert_after_previous_one_resolved(self, make_product):
        product = make_product(quantity=5, reorder_level=10)
        first = _sell(product, 1).alert

        alert_service.resolve_alert(first.id, "manager", "Reordered")
        second = _sell(product, 1).alert

        assert second is not None
        assert second.id != first.id


class TestResolution:

    def test_resolve_records_who_and_why(self, make_product):
        product = make_product(quantity=5, reorder_level=10)
        alert = _sell(product, 1).alert

        resolved = alert_service.resolve_alert(alert.id, "manager", "Supplier order placed")

        assert resolved.status == "resolved"
        assert resolved.resolved_by == "manager"
        assert resolved.resolution_note == "Supplier order placed"
        assert resolved.resolved_at is not None

    def test_resolving_twice_is_not_found_and_changes_nothing(self, make_product):
        product = make_product(quantity=5, reorder_level=10)
        alert = _sell(product, 1).alert
        alert_service.resolve_alert(alert.id, "manager", "first")

        with pytest.raises(NotFoundError):
            alert_service.resolve_alert(alert.id, "staff", "second")

        db.session.expire_all()
        stored = db.session.get(Alert, alert.id)
        assert stored.status == "resolved"
        assert stored.resolved_by == "manager"
        assert stored.resolution_note == "first"

    def test_resolving_missing_alert_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            alert_service.resolve_alert(424242, "manager")

    def test_dismiss_then_resolve_is_not_found(self, make_product):
        product = make_product(quantity=5, reorder_level=10)
        alert = _sell(product, 1).alert

        dismissed = alert_service.dismiss_alert(alert.id, "admin", "Discontinued")
        assert dismissed.status == "dismissed"

        with pytest.raises(NotFoundError):
            alert_service.resolve_alert(alert.id, "admin")

    def test_restock_does_not_resolve_alerts(self, make_product):
        product = make_product(quantity=5, reorder_level=10)
        alert = _sell(product, 1).alert

        restock(product_id=product.id, quantity=50, reason="Delivery", actor=None)

        db.session.expire_all()
        assert db.session.get(Alert, alert.id).status == "active"


class TestListing:

    def test_orders_by_priority_then_newest(self, make_product):
        low = make_product(quantity=5, reorder_level=10)
        empty = make_product(quantity=1, reorder_level=10)

        _sell(low, 1)
        _sell(empty, 1)

        alerts = alert_service.list_alerts()
        assert [a.alert_type for a in alerts] == ["out_of_stock", "low_stock"]

    def test_filters_by_status_and_type(self, make_product):
        product = make_product(quantity=5, reorder_level=10)
        alert = _sell(product, 1).alert
        alert_service.resolve_alert(alert.id, "manager")

        assert alert_service.list_alerts() == []
        assert [a.id for a in alert_service.list_alerts(status="resolved")] == [alert.id]
        assert alert_service.list_alerts(status="resolved", alert_type="out_of_stock") == []

    def test_rejects_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            alert_service.list_alerts(status="open")


class TestStockSweep:

    def test_sweep_raises_missing_alerts_once(self, make_product):
        low = make_product(quantity=4, reorder_level=10)
        empty = make_product(quantity=0, reorder_level=10)
        make_product(quantity=50, reorder_level=10)
        full = make_product(quantity=120, reorder_level=10, max_stock_level=100)

        summary = alert_service.run_stock_sweep()

        assert summary["checked"] == 4
        assert summary["low_stock"] == 2
        assert summary["overstock"] == 1
        assert summary["alerts_created"] == 3

        by_product = {a.product_id: a for a in db.session.query(Alert).all()}
        assert by_product[low.id].alert_type == "low_stock"
        assert by_product[empty.id].alert_type == "out_of_stock"
        assert by_product[full.id].alert_type == "overstock"
        assert by_product[full.id].priority == "low"

        again = alert_service.run_stock_sweep()
        assert again["alerts_created"] == 0
        assert db.session.query(Alert).count() == 3

    def test_sweep_skips_deleted_products(self, make_product):
        from shopkeep.services.products_service import delete_product

        product = make_product(quantity=0, reorder_level=10)
        delete_product(product_id=product.id)

        summary = alert_service.run_stock_sweep()

        assert summary["checked"] == 0
        assert db.session.query(Alert).count() == 0
