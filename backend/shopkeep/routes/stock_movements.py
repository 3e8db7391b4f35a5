# Overview: Flask API routes for the stock movement log (read-only).

from flask import Blueprint, request, jsonify

from ..services import movement_service
from ..validation import ValidationError
from ..decorators import require_auth


stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")


@stock_movements_bp.get("")
@require_auth
def list_movements_route():
    """
    Query params:
    - product_id: int (optional)
    - movement_type: sale | restock | adjustment | return | damage
    - limit: int (default 50, max 500)
    """
    try:
        movements = movement_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            movement_type=request.args.get("movement_type") or None,
            limit=request.args.get("limit", default=50, type=int),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [m.to_dict() for m in movements],
        "count": len(movements),
    }), 200
