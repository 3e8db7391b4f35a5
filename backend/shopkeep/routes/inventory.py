# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/shopkeep/routes/inventory.py
"""
Stock changes outside of sales: receiving stock and corrections.

Every change is paired with a stock movement; see inventory_service.
"""

from flask import Blueprint, request, g

from ..services import inventory_service
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..validation import enforce_rules_stock_change, ValidationError
from ..decorators import require_auth, require_role


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<int:product_id>")
@require_auth
def get_inventory_route(product_id: int):
    record = inventory_service.get_inventory(product_id)
    return {"inventory": record.to_dict()}


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    """Inventory rows at or below their reorder level."""
    records = inventory_service.list_low_stock()
    return {
        "items": [
            {**r.to_dict(), "product_name": r.product.name, "sku": r.product.sku}
            for r in records
        ],
        "count": len(records),
    }


@inventory_bp.post("/<int:product_id>/restock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def restock_route(product_id: int):
    """
    Receive stock.

    Body: {"quantity": int > 0, "reason": str (optional)}
    """
    payload = request.get_json(silent=True) or {}
    try:
        data = enforce_rules_stock_change(payload, require_positive=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    record = inventory_service.restock(
        product_id=product_id,
        quantity=data["quantity"],
        reason=data["reason"],
        actor=g.current_user,
    )
    return {"inventory": record.to_dict()}, 200


@inventory_bp.post("/<int:product_id>/adjust")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def adjust_route(product_id: int):
    """
    Correct stock.

    Body: {"quantity_delta": non-zero int, "movement_type": adjustment|damage|return,
           "reason": str (optional)}
    """
    payload = request.get_json(silent=True) or {}
    try:
        data = enforce_rules_stock_change(payload, require_positive=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    record = inventory_service.adjust_stock(
        product_id=product_id,
        quantity_delta=data["quantity_delta"],
        movement_type=data["movement_type"],
        reason=data["reason"],
        actor=g.current_user,
    )
    return {"inventory": record.to_dict()}, 200
