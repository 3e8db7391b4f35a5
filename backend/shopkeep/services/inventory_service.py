# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/shopkeep/services/inventory_service.py

from __future__ import annotations

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError
from ..extensions import db
from ..models import InventoryRecord, Product, StockMovement, User
from ..models.ledger import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_DAMAGE,
    MOVEMENT_RESTOCK,
    MOVEMENT_RETURN,
)
from ..time_utils import utcnow
from ..validation import ValidationError
from . import alert_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .movement_service import log_movement
"""
Inventory Store invariants (authoritative)

- One InventoryRecord per product; quantity is a stored integer, never negative.
- quantity is only written through apply_quantity_change(), which pairs the
  write with exactly one StockMovement in the caller's transaction.
- Functions named *_inner or taking an already-locked record never commit;
  the public operations own the transaction (begin, retry, commit).
- Callers reject negative results before set_quantity() is reached.
"""

ADJUSTMENT_TYPES = (MOVEMENT_ADJUSTMENT, MOVEMENT_DAMAGE, MOVEMENT_RETURN)


def get_inventory(product_id: int, *, lock: bool = False, include_inactive: bool = False) -> InventoryRecord:
    """
    Load the inventory row for a product, optionally locked for update.

    Soft-deleted products have no sellable inventory: their rows are only
    visible with include_inactive=True.
    """
    query = db.session.query(InventoryRecord).filter(InventoryRecord.product_id == product_id)
    if not include_inactive:
        query = query.join(Product, Product.id == InventoryRecord.product_id).filter(
            Product.is_active.is_(True)
        )
    if lock:
        query = lock_for_update(query)
    record = query.first()
    if record is None:
        raise NotFoundError("Product not found in inventory", details={"product_id": product_id})
    return record


def get_quantity(product_id: int) -> int:
    return get_inventory(product_id).quantity


def set_quantity(record: InventoryRecord, new_quantity: int) -> None:
    """
    Write a new quantity. The caller has already checked availability; a
    negative value here is a programming error.
    """
    if new_quantity < 0:
        raise ValueError("inventory quantity cannot be negative")
    record.quantity = new_quantity


def apply_quantity_change(
    record: InventoryRecord,
    *,
    quantity_delta: int,
    movement_type: str,
    reason: str | None,
    actor_user_id: int | None,
    sale_id: int | None = None,
) -> StockMovement:
    """
    Inventory write + movement log pairing. Does not commit.

    Raises InsufficientStockError when the delta would take quantity below 0.
    """
    previous = record.quantity
    new_quantity = previous + quantity_delta
    if new_quantity < 0:
        raise InsufficientStockError(available=previous, requested=-quantity_delta)

    set_quantity(record, new_quantity)
    return log_movement(
        product_id=record.product_id,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        previous_quantity=previous,
        new_quantity=new_quantity,
        reason=reason,
        actor_user_id=actor_user_id,
        sale_id=sale_id,
    )


def create_inventory_record_inner(
    product: Product,
    *,
    quantity: int,
    reorder_level: int,
    max_stock_level: int | None,
    location: str | None,
    shelf_location: str | None,
    actor_user_id: int | None,
) -> InventoryRecord:
    """
    Create the inventory row for a new product. Initial stock is logged as a
    restock movement so the audit trail starts at zero.
    """
    record = InventoryRecord(
        product_id=product.id,
        quantity=0,
        reorder_level=reorder_level,
        max_stock_level=max_stock_level,
        location=location,
        shelf_location=shelf_location,
    )
    db.session.add(record)
    db.session.flush()

    if quantity > 0:
        apply_quantity_change(
            record,
            quantity_delta=quantity,
            movement_type=MOVEMENT_RESTOCK,
            reason="Initial stock",
            actor_user_id=actor_user_id,
        )
        record.last_restocked_at = utcnow()
    return record


def restock(*, product_id: int, quantity: int, reason: str | None, actor: User | None) -> InventoryRecord:
    """
    Receive stock into inventory (kind=restock). Stamps last_restocked_at.

    Active low-stock alerts are left as they are; resolution is manual.
    """
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")

    def _op():
        begin_write_transaction()
        record = get_inventory(product_id, lock=True)
        apply_quantity_change(
            record,
            quantity_delta=quantity,
            movement_type=MOVEMENT_RESTOCK,
            reason=reason or "Restock",
            actor_user_id=actor.id if actor else None,
        )
        record.last_restocked_at = utcnow()
        db.session.commit()
        return record

    record = run_with_retry(_op)
    current_app.logger.info(
        "Restocked product %s by %s (now %s)", product_id, quantity, record.quantity
    )
    _evaluate_overstock_best_effort(record)
    return record


def adjust_stock(
    *,
    product_id: int,
    quantity_delta: int,
    movement_type: str = MOVEMENT_ADJUSTMENT,
    reason: str | None,
    actor: User | None,
) -> InventoryRecord:
    """
    Correct inventory outside of a sale: counts, damage, customer returns.

    Result must stay >= 0, otherwise InsufficientStockError and nothing is
    written. Reducing stock to or below the reorder level raises the same
    alerts a sale would.
    """
    movement_type = movement_type or MOVEMENT_ADJUSTMENT
    if movement_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(ADJUSTMENT_TYPES)}")
    if quantity_delta == 0:
        raise ValidationError("quantity_delta must be non-zero")
    if movement_type == MOVEMENT_DAMAGE and quantity_delta > 0:
        raise ValidationError("damage must reduce stock (quantity_delta < 0)")
    if movement_type == MOVEMENT_RETURN and quantity_delta < 0:
        raise ValidationError("return must add stock (quantity_delta > 0)")

    def _op():
        begin_write_transaction()
        record = get_inventory(product_id, lock=True)
        apply_quantity_change(
            record,
            quantity_delta=quantity_delta,
            movement_type=movement_type,
            reason=reason or "Manual adjustment",
            actor_user_id=actor.id if actor else None,
        )
        db.session.commit()
        return record

    record = run_with_retry(_op)
    current_app.logger.info(
        "Adjusted product %s by %s (%s, now %s)",
        product_id, quantity_delta, movement_type, record.quantity,
    )
    if quantity_delta < 0 and record.quantity <= record.reorder_level:
        alert_service.raise_shortage_best_effort(
            product_id=product_id,
            current_quantity=record.quantity,
            reorder_level=record.reorder_level,
        )
    else:
        _evaluate_overstock_best_effort(record)
    return record


def _evaluate_overstock_best_effort(record: InventoryRecord) -> None:
    if record.max_stock_level is None or record.quantity < record.max_stock_level:
        return
    alert_service.raise_overstock_best_effort(
        product_id=record.product_id,
        current_quantity=record.quantity,
        max_stock_level=record.max_stock_level,
    )


def list_low_stock(*, include_inactive: bool = False) -> list[InventoryRecord]:
    """Inventory rows at or below their reorder level, emptiest first."""
    query = (
        db.session.query(InventoryRecord)
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(InventoryRecord.quantity <= InventoryRecord.reorder_level)
    )
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(InventoryRecord.quantity.asc(), InventoryRecord.product_id.asc()).all()
