# backend/shopkeep/services/products_service.py
"""
Products Service

Product master data plus the inventory row that belongs to it. A product and
its inventory record are always created together; quantity changes made
through a product update go through inventory_service so the movement log
stays complete.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError
from ..extensions import db
from ..models import InventoryRecord, Product, User
from ..models.ledger import MOVEMENT_ADJUSTMENT
from ..validation import ConflictError, ValidationError
from . import alert_service
from .concurrency import begin_write_transaction, run_with_retry
from .inventory_service import apply_quantity_change, create_inventory_record_inner, get_inventory

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "category",
    "supplier",
    "description",
    "sku",
    "cost_price_cents",
    "sell_price_cents",
    "image_url",
}

INVENTORY_SETTING_FIELDS = {"reorder_level", "max_stock_level", "location", "shelf_location"}

SORTABLE_FIELDS = {
    "name": Product.name,
    "category": Product.category,
    "sell_price": Product.sell_price_cents,
    "cost_price": Product.cost_price_cents,
    "created_at": Product.created_at,
    "quantity": InventoryRecord.quantity,
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_free(sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists")


def list_products(
    *,
    category: str | None = None,
    search: str | None = None,
    sort_by: str = "name",
    order: str = "asc",
    include_inactive: bool = False,
) -> list[Product]:
    """
    Products joined with their inventory.

    category "all" (or empty) means no category filter; search matches name,
    description or SKU (case-insensitive substring).
    """
    sort_column = SORTABLE_FIELDS.get(sort_by or "name")
    if sort_column is None:
        raise ValidationError(f"sort_by must be one of: {', '.join(sorted(SORTABLE_FIELDS))}")
    order = (order or "asc").lower()
    if order not in ("asc", "desc"):
        raise ValidationError("order must be asc or desc")

    query = db.session.query(Product).outerjoin(InventoryRecord, InventoryRecord.product_id == Product.id)

    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category and category != "all":
        query = query.filter(Product.category == category)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Product.name.ilike(term),
                Product.description.ilike(term),
                Product.sku.ilike(term),
            )
        )

    ordering = sort_column.desc() if order == "desc" else sort_column.asc()
    return query.order_by(ordering, Product.id.asc()).all()


def get_product(product_id: int, *, include_inactive: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or (not product.is_active and not include_inactive):
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def create_product(*, patch: dict, inventory: dict | None = None, actor: User | None = None) -> Product:
    """
    Create a product and its inventory record in one transaction.

    `inventory` holds validated settings (quantity, reorder_level,
    max_stock_level, location, shelf_location); missing values fall back to
    the configured defaults.
    """
    inventory = inventory or {}
    cfg = current_app.config

    quantity = inventory.get("quantity", 0)
    reorder_level = inventory.get("reorder_level", cfg["DEFAULT_REORDER_LEVEL"])
    max_stock_level = inventory.get("max_stock_level", cfg["DEFAULT_MAX_STOCK_LEVEL"])
    location = inventory.get("location") or cfg["DEFAULT_LOCATION"]

    if max_stock_level is not None and max_stock_level < reorder_level:
        raise ValidationError("max_stock_level must be >= reorder_level")

    _ensure_sku_free(patch.get("sku"))

    def _op():
        p = Product(is_active=True)
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()  # ensure p.id exists before the inventory row

        create_inventory_record_inner(
            p,
            quantity=quantity,
            reorder_level=reorder_level,
            max_stock_level=max_stock_level,
            location=location,
            shelf_location=inventory.get("shelf_location"),
            actor_user_id=actor.id if actor else None,
        )
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("SKU already exists") from exc
        return p

    product = run_with_retry(_op)
    current_app.logger.info("Product created: %s (ID: %s)", product.name, product.id)
    return product


def update_product(
    *,
    product_id: int,
    patch: dict,
    inventory: dict | None = None,
    actor: User | None = None,
) -> Product:
    """
    Update descriptive fields and inventory settings.

    A changed quantity is recorded as an adjustment movement with the computed
    delta ("Manual adjustment").
    """
    inventory = inventory or {}
    product = get_product(product_id)
    if "sku" in patch:
        _ensure_sku_free(patch["sku"], exclude_id=product_id)

    def _op():
        begin_write_transaction()
        p = get_product(product_id)
        apply_product_patch(p, patch)

        record = get_inventory(product_id, lock=True)
        for key in INVENTORY_SETTING_FIELDS:
            if key in inventory:
                setattr(record, key, inventory[key])
        if record.max_stock_level is not None and record.max_stock_level < record.reorder_level:
            raise ValidationError("max_stock_level must be >= reorder_level")

        delta = 0
        if inventory.get("quantity") is not None:
            delta = inventory["quantity"] - record.quantity
            if delta:
                apply_quantity_change(
                    record,
                    quantity_delta=delta,
                    movement_type=MOVEMENT_ADJUSTMENT,
                    reason="Manual adjustment",
                    actor_user_id=actor.id if actor else None,
                )

        snapshot = (delta, record.quantity, record.reorder_level, record.max_stock_level)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("SKU already exists") from exc
        return snapshot

    delta, quantity, reorder_level, max_stock_level = run_with_retry(_op)
    current_app.logger.info("Product updated: ID %s", product_id)

    if delta < 0 and quantity <= reorder_level:
        alert_service.raise_shortage_best_effort(
            product_id=product_id, current_quantity=quantity, reorder_level=reorder_level,
        )
    elif delta > 0 and max_stock_level is not None and quantity >= max_stock_level:
        alert_service.raise_overstock_best_effort(
            product_id=product_id, current_quantity=quantity, max_stock_level=max_stock_level,
        )

    db.session.refresh(product)
    return product


def delete_product(*, product_id: int) -> Product:
    """
    Soft delete: the product disappears from listings while its sales,
    movements and alerts keep a valid reference.
    """
    product = get_product(product_id)
    product.is_active = False
    db.session.commit()
    current_app.logger.info("Product deleted: ID %s", product_id)
    return product


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.is_active.is_(True))
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [row[0] for row in rows]
