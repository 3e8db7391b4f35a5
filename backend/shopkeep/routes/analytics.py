# Overview: Flask API routes for analytics; read-only aggregations for the dashboard.

# backend/shopkeep/routes/analytics.py
from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..validation import ValidationError
from ..decorators import require_auth


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/dashboard")
@require_auth
def dashboard_route():
    return jsonify(reporting_service.dashboard()), 200


@analytics_bp.get("/sales-trend")
@require_auth
def sales_trend_route():
    """Per-day sales. Query params: period (days, default 30)."""
    try:
        rows = reporting_service.sales_trend(period=request.args.get("period", default=30, type=int))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": rows, "count": len(rows)}), 200


@analytics_bp.get("/category-distribution")
@require_auth
def category_distribution_route():
    rows = reporting_service.category_distribution()
    return jsonify({"items": rows, "count": len(rows)}), 200


@analytics_bp.get("/top-products")
@require_auth
def top_products_route():
    """
    Query params:
    - period: days (default 30)
    - metric: revenue (default) | quantity
    - limit: int (default 10)
    """
    try:
        rows = reporting_service.top_products(
            period=request.args.get("period", default=30, type=int),
            metric=request.args.get("metric", "revenue"),
            limit=request.args.get("limit", default=10, type=int),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": rows, "count": len(rows)}), 200
