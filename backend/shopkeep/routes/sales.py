# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopkeep/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g

from ..services import sales_service
from ..time_utils import parse_iso_datetime, end_of_day
from ..validation import enforce_rules_sale, ValidationError
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_date_arg(name: str, *, inclusive_end: bool = False):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        value = parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")
    # A bare date as upper bound covers the whole day
    if inclusive_end and len(raw.strip()) == 10:
        value = end_of_day(value.date())
    return value


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - start_date, end_date: ISO-8601 date or datetime (inclusive)
    - product_id: int (optional)
    - limit: int (default 100, max 500)
    """
    try:
        start = _parse_date_arg("start_date")
        end = _parse_date_arg("end_date", inclusive_end=True)
        sales = sales_service.list_sales(
            start=start,
            end=end,
            product_id=request.args.get("product_id", type=int),
            limit=request.args.get("limit", default=100, type=int),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
    }), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Body: {"product_id", "quantity_sold", "unit_price", "cashier_name"?, "payment_method"?}

    201 on success; 409 with available/requested when stock is short.
    """
    payload = request.get_json(silent=True) or {}
    try:
        data = enforce_rules_sale(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    result = sales_service.record_sale(
        product_id=data["product_id"],
        quantity_sold=data["quantity_sold"],
        unit_price_cents=data["unit_price_cents"],
        cashier_name=data["cashier_name"],
        payment_method=data["payment_method"],
        actor=g.current_user,
    )

    body = result.to_dict()
    body["message"] = "Sale recorded successfully"
    return jsonify(body), 201
