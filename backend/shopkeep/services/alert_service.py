# Overview: Service-layer operations for stock alerts; derives notifications from inventory state.

from __future__ import annotations

from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import AlertEngineFailure, NotFoundError, ShopkeepError
from ..extensions import db
from ..models import Alert, InventoryRecord, Product
from ..models.alerts import (
    ALERT_LOW_STOCK,
    ALERT_OUT_OF_STOCK,
    ALERT_OVERSTOCK,
    ALERT_STATUSES,
    ALERT_TYPES,
    PRIORITY_RANK,
    STATUS_ACTIVE,
    STATUS_DISMISSED,
    STATUS_RESOLVED,
    STOCK_SHORTAGE_TYPES,
)
from ..time_utils import utcnow
from ..validation import ValidationError
"""
Alert Engine policy (authoritative)

- Alerts are advisory. Raising one is never part of a sale's transaction and
  a failure here never changes a sale's outcome.
- At most one active shortage alert (low_stock or out_of_stock) per product;
  at most one active alert per (product, type) is enforced by the database.
- An insert that loses the race against a concurrent insert hits the partial
  unique index; that is treated as "already raised".
- Alerts leave the active state only by explicit resolve/dismiss. Restocking
  above the reorder level does not resolve anything.
"""


def _has_active(product_id: int, alert_types) -> bool:
    return (
        db.session.query(Alert.id)
        .filter(
            Alert.product_id == product_id,
            Alert.alert_type.in_(alert_types),
            Alert.status == STATUS_ACTIVE,
        )
        .first()
        is not None
    )


def _insert_alert(*, product_id: int, alert_type: str, priority: str, message: str) -> Alert | None:
    alert = Alert(
        product_id=product_id,
        alert_type=alert_type,
        priority=priority,
        message=message,
        status=STATUS_ACTIVE,
    )
    db.session.add(alert)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info(
            "Active %s alert for product %s already exists; skipping", alert_type, product_id
        )
        return None

    current_app.logger.warning("%s alert created: %s", priority.upper(), message)
    return alert


def _product_name(product_id: int) -> str:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product.name


def evaluate_and_raise(product_id: int, current_quantity: int, reorder_level: int) -> Alert | None:
    """
    Raise a low_stock (high) or out_of_stock (critical) alert unless one is
    already active for the product. Returns the new alert, or None when
    nothing was raised.

    Runs in its own transaction: call after the triggering change committed.
    """
    if current_quantity > reorder_level:
        return None

    try:
        if _has_active(product_id, STOCK_SHORTAGE_TYPES):
            return None

        name = _product_name(product_id)
        if current_quantity == 0:
            return _insert_alert(
                product_id=product_id,
                alert_type=ALERT_OUT_OF_STOCK,
                priority="critical",
                message=f"{name} is out of stock",
            )
        return _insert_alert(
            product_id=product_id,
            alert_type=ALERT_LOW_STOCK,
            priority="high",
            message=f"{name} is running low ({current_quantity} remaining, reorder at {reorder_level})",
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise AlertEngineFailure(
            "Failed to evaluate stock alert", details={"product_id": product_id}
        ) from exc


def evaluate_overstock(product_id: int, current_quantity: int, max_stock_level: int | None) -> Alert | None:
    """Raise a low-priority overstock alert when quantity reaches the max stock level."""
    if max_stock_level is None or current_quantity < max_stock_level:
        return None

    try:
        if _has_active(product_id, (ALERT_OVERSTOCK,)):
            return None
        name = _product_name(product_id)
        return _insert_alert(
            product_id=product_id,
            alert_type=ALERT_OVERSTOCK,
            priority="low",
            message=f"{name} is overstocked ({current_quantity} on hand, max {max_stock_level})",
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise AlertEngineFailure(
            "Failed to evaluate overstock alert", details={"product_id": product_id}
        ) from exc


def raise_shortage_best_effort(*, product_id: int, current_quantity: int, reorder_level: int) -> Alert | None:
    """evaluate_and_raise for post-commit callers: failures are logged and swallowed."""
    try:
        return evaluate_and_raise(product_id, current_quantity, reorder_level)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Low-stock alert evaluation failed for product %s", product_id)
        return None


def raise_overstock_best_effort(*, product_id: int, current_quantity: int, max_stock_level: int) -> Alert | None:
    try:
        return evaluate_overstock(product_id, current_quantity, max_stock_level)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Overstock alert evaluation failed for product %s", product_id)
        return None


def _close_alert(alert_id: int, *, new_status: str, closed_by: str | None, reason: str | None) -> Alert:
    # Conditional UPDATE: only an active alert can be closed, and two closers
    # racing on the same alert cannot both win.
    changed = (
        db.session.query(Alert)
        .filter(Alert.id == alert_id, Alert.status == STATUS_ACTIVE)
        .update(
            {
                Alert.status: new_status,
                Alert.resolved_at: utcnow(),
                Alert.resolved_by: closed_by,
                Alert.resolution_note: reason,
            },
            synchronize_session=False,
        )
    )
    if changed == 0:
        db.session.rollback()
        raise NotFoundError("Alert not found or not active", details={"alert_id": alert_id})

    db.session.commit()
    alert = db.session.get(Alert, alert_id)
    current_app.logger.info("Alert %s %s by %s", alert_id, new_status, closed_by)
    return alert


def resolve_alert(alert_id: int, resolved_by: str | None, reason: str | None = None) -> Alert:
    """Mark an active alert resolved. Missing or non-active alerts raise NotFoundError."""
    return _close_alert(alert_id, new_status=STATUS_RESOLVED, closed_by=resolved_by, reason=reason)


def dismiss_alert(alert_id: int, dismissed_by: str | None, reason: str | None = None) -> Alert:
    return _close_alert(alert_id, new_status=STATUS_DISMISSED, closed_by=dismissed_by, reason=reason)


def list_alerts(*, status: str = STATUS_ACTIVE, alert_type: str | None = None) -> list[Alert]:
    """Alerts with the given status, most urgent first, then newest."""
    if status not in ALERT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ALERT_STATUSES)}")
    if alert_type is not None and alert_type not in ALERT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(ALERT_TYPES)}")

    priority_rank = case(PRIORITY_RANK, value=Alert.priority, else_=0)

    query = db.session.query(Alert).filter(Alert.status == status)
    if alert_type is not None:
        query = query.filter(Alert.alert_type == alert_type)

    return query.order_by(priority_rank.desc(), Alert.created_at.desc(), Alert.id.desc()).all()


def run_stock_sweep() -> dict:
    """
    Evaluate every active product's stock level and raise missing alerts.

    Read-only against inventory, write-only against alerts. Intended to be
    run on a schedule (see `flask stock check`).
    """
    rows = (
        db.session.query(InventoryRecord.product_id, InventoryRecord.quantity,
                         InventoryRecord.reorder_level, InventoryRecord.max_stock_level)
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(Product.is_active.is_(True))
        .order_by(InventoryRecord.product_id.asc())
        .all()
    )

    summary = {"checked": len(rows), "low_stock": 0, "overstock": 0, "alerts_created": 0, "failures": 0}

    for product_id, quantity, reorder_level, max_stock_level in rows:
        if quantity <= reorder_level:
            summary["low_stock"] += 1
            try:
                created = evaluate_and_raise(product_id, quantity, reorder_level)
            except ShopkeepError:
                current_app.logger.exception("Stock sweep failed for product %s", product_id)
                summary["failures"] += 1
                continue
        elif max_stock_level is not None and quantity >= max_stock_level:
            summary["overstock"] += 1
            try:
                created = evaluate_overstock(product_id, quantity, max_stock_level)
            except ShopkeepError:
                current_app.logger.exception("Stock sweep failed for product %s", product_id)
                summary["failures"] += 1
                continue
        else:
            continue

        if created is not None:
            summary["alerts_created"] += 1

    current_app.logger.info(
        "Stock check complete: %s checked, %s low, %s overstock, %s alerts created",
        summary["checked"], summary["low_stock"], summary["overstock"], summary["alerts_created"],
    )
    return summary
