# Overview: Service-layer operations for the stock movement audit log.

from __future__ import annotations

from ..extensions import db
from ..models import StockMovement
from ..models.ledger import MOVEMENT_TYPES
from ..validation import ValidationError
"""
Stock movement invariants (authoritative)

- Append-only: rows are inserted here and nowhere else; never updated or deleted.
- new_quantity = previous_quantity + quantity_delta (checked here and by the DB).
- Written inside the same DB transaction as the inventory change it records.
"""

MAX_LIST_LIMIT = 500


def log_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity_delta: int,
    previous_quantity: int,
    new_quantity: int,
    reason: str | None = None,
    actor_user_id: int | None = None,
    sale_id: int | None = None,
) -> StockMovement:
    """
    Append one movement. Flushes so the id exists; never commits.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"unknown movement type: {movement_type}")
    if new_quantity != previous_quantity + quantity_delta:
        raise ValueError("movement quantities are inconsistent")

    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        reason=reason,
        actor_user_id=actor_user_id,
        sale_id=sale_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    limit: int = 50,
) -> list[StockMovement]:
    """Newest first; optional product and movement type filters."""
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}")
    if limit <= 0:
        raise ValidationError("limit must be > 0")
    limit = min(limit, MAX_LIST_LIMIT)

    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        query = query.filter(StockMovement.movement_type == movement_type)

    return (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
