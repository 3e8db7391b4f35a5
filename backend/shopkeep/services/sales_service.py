# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sale Recorder

WHY: A sale is the one operation that must never half-happen. The Sale row,
the inventory decrement and the matching StockMovement are written in one
transaction; alert evaluation happens only after that transaction committed
and can never undo it.

Transaction outline (record_sale):
1. begin as writer, read the inventory row locked
2. reject when on hand < requested (nothing written)
3. insert Sale, decrement inventory, append StockMovement(kind=sale)
4. commit (any failure rolls everything back)
5. best-effort alert evaluation in its own transaction
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError
from ..extensions import db
from ..models import Alert, Product, Sale, User
from ..models.ledger import MOVEMENT_SALE, PAYMENT_METHODS
from ..time_utils import utcnow
from ..validation import ValidationError, line_total_cents
from . import alert_service
from .concurrency import begin_write_transaction, run_with_retry
from .inventory_service import apply_quantity_change, get_inventory

MAX_LIST_LIMIT = 500


@dataclass
class SaleResult:
    """Outcome of a committed sale."""
    sale: Sale
    new_quantity: int
    low_stock_alert_raised: bool
    alert: Alert | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.sale.id,
            "newQuantity": self.new_quantity,
            "lowStockAlertRaised": self.low_stock_alert_raised,
            "sale": self.sale.to_dict(),
            "alert": self.alert.to_dict() if self.alert else None,
        }


def record_sale(
    *,
    product_id: int,
    quantity_sold: int,
    unit_price_cents: int,
    cashier_name: str | None = None,
    payment_method: str = "cash",
    actor: User | None = None,
) -> SaleResult:
    """
    Record one sale of a single product.

    Raises:
        ValidationError: bad quantity, price or payment method (nothing written)
        NotFoundError: product has no inventory record
        InsufficientStockError: on hand < quantity_sold (nothing written)
        PersistenceFailure: the transaction failed and was rolled back
    """
    if isinstance(quantity_sold, bool) or not isinstance(quantity_sold, int) or quantity_sold <= 0:
        raise ValidationError("quantity_sold must be a positive integer")
    if unit_price_cents is None or unit_price_cents < 0:
        raise ValidationError("unit_price must be >= 0")
    payment_method = payment_method or "cash"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    if cashier_name is None and actor is not None:
        cashier_name = actor.username

    total_cents = line_total_cents(quantity_sold, unit_price_cents)

    def _op():
        begin_write_transaction()
        record = get_inventory(product_id, lock=True)

        if record.quantity < quantity_sold:
            raise InsufficientStockError(available=record.quantity, requested=quantity_sold)

        sale = Sale(
            product_id=product_id,
            quantity_sold=quantity_sold,
            unit_price_cents=unit_price_cents,
            total_amount_cents=total_cents,
            sold_at=utcnow(),
            cashier_name=cashier_name,
            payment_method=payment_method,
            recorded_by_user_id=actor.id if actor else None,
        )
        db.session.add(sale)
        db.session.flush()

        apply_quantity_change(
            record,
            quantity_delta=-quantity_sold,
            movement_type=MOVEMENT_SALE,
            reason=f"Sale #{sale.id}",
            actor_user_id=actor.id if actor else None,
            sale_id=sale.id,
        )

        # Read before commit: expired attributes would reload later writers' values.
        outcome = (sale, record.quantity, record.reorder_level)
        db.session.commit()
        return outcome

    sale, new_quantity, reorder_level = run_with_retry(_op)

    current_app.logger.info(
        "Sale #%s recorded: product %s x%s, total %s cents (stock now %s)",
        sale.id, product_id, quantity_sold, total_cents, new_quantity,
    )

    low_stock = new_quantity <= reorder_level
    alert = None
    if low_stock:
        alert = alert_service.raise_shortage_best_effort(
            product_id=product_id,
            current_quantity=new_quantity,
            reorder_level=reorder_level,
        )

    return SaleResult(
        sale=sale,
        new_quantity=new_quantity,
        low_stock_alert_raised=low_stock,
        alert=alert,
    )


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    product_id: int | None = None,
    limit: int = 100,
) -> list[Sale]:
    """Sales newest first, optionally bounded by sold_at (inclusive)."""
    if limit <= 0:
        raise ValidationError("limit must be > 0")
    limit = min(limit, MAX_LIST_LIMIT)
    if start is not None and end is not None and end < start:
        raise ValidationError("end_date must be on or after start_date")

    query = db.session.query(Sale).join(Product, Product.id == Sale.product_id)
    if start is not None:
        query = query.filter(Sale.sold_at >= start)
    if end is not None:
        query = query.filter(Sale.sold_at <= end)
    if product_id is not None:
        query = query.filter(Sale.product_id == product_id)

    return query.order_by(Sale.sold_at.desc(), Sale.id.desc()).limit(limit).all()
