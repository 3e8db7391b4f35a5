# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopkeep/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations are open to every role
- Create/update require admin or manager
- Delete requires admin (soft delete)

A product payload carries both product fields and the inventory settings
of its stock record (quantity, reorder_level, max_stock_level, location,
shelf_location).
"""
from flask import Blueprint, request, g
from ..services import products_service
from ..models import Product
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_inventory_settings,
    ValidationError,
)
from ..decorators import require_auth, require_role

INVENTORY_FIELDS = {"quantity", "reorder_level", "max_stock_level", "location", "shelf_location"}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "supplier", "description", "sku",
        "cost_price", "sell_price", "image_url",
    } | INVENTORY_FIELDS,
    required_on_create={"name", "category", "sell_price"},
    money_fields={"cost_price", "sell_price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _split_payload(payload: dict, *, partial: bool) -> tuple[dict, dict]:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    settings = {k: patch.pop(k) for k in list(patch) if k in INVENTORY_FIELDS}
    if patch.get("sku") == "":
        patch["sku"] = None
    return patch, enforce_rules_inventory_settings(settings)


@products_bp.get("")
@require_auth
def list_products():
    """
    List active products with their inventory and stock status.

    Query params:
    - category: str (optional) - exact category, "all" for no filter
    - search: str (optional) - substring of name, description or SKU
    - sort_by: name | category | sell_price | cost_price | quantity | created_at
    - order: asc | desc
    """
    try:
        products = products_service.list_products(
            category=request.args.get("category"),
            search=request.args.get("search"),
            sort_by=request.args.get("sort_by", "name"),
            order=request.args.get("order", "asc"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


@products_bp.get("/categories")
@require_auth
def list_categories():
    return {"categories": products_service.list_categories()}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    product = products_service.get_product(product_id)
    return {"product": product.to_dict()}


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_product_route():
    """
    Create a product and its inventory record.

    Initial quantity > 0 is logged as a restock movement ("Initial stock").
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch, settings = _split_payload(payload, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = products_service.create_product(patch=patch, inventory=settings, actor=g.current_user)
    return {"id": created.id, "message": "Product created successfully", "product": created.to_dict()}, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_product_route(product_id: int):
    """
    Update a product.

    A changed quantity is logged as an adjustment movement.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch, settings = _split_payload(payload, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    updated = products_service.update_product(
        product_id=product_id, patch=patch, inventory=settings, actor=g.current_user
    )
    return {"message": "Product updated successfully", "product": updated.to_dict()}, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    products_service.delete_product(product_id=product_id)
    return {"message": "Product deleted successfully"}, 200
