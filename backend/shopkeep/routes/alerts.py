# Overview: Flask API routes for alert operations; parses input and returns JSON responses.

# backend/shopkeep/routes/alerts.py
"""
Alert routes.

Alerts are raised by the system (sales, adjustments, `flask stock check`);
users only list, resolve and dismiss them.
"""

from flask import Blueprint, request, jsonify, g

from ..services import alert_service
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..validation import ValidationError
from ..decorators import require_auth, require_role


alerts_bp = Blueprint("alerts", __name__, url_prefix="/api/alerts")


def _reason_from_body() -> str | None:
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    reason = data.get("reason") or data.get("note")
    if reason is None:
        return None
    reason = str(reason).strip()
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")
    return reason or None


@alerts_bp.get("")
@require_auth
def list_alerts_route():
    """
    Query params:
    - status: active (default) | resolved | dismissed
    - type: low_stock | out_of_stock | overstock | price_change
    """
    try:
        alerts = alert_service.list_alerts(
            status=request.args.get("status", "active"),
            alert_type=request.args.get("type") or None,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [a.to_dict() for a in alerts],
        "count": len(alerts),
    }), 200


@alerts_bp.put("/<int:alert_id>/resolve")
@require_auth
def resolve_alert_route(alert_id: int):
    """404 when the alert does not exist or is no longer active."""
    reason = _reason_from_body()
    alert = alert_service.resolve_alert(alert_id, g.current_user.username, reason)
    return jsonify({"message": "Alert resolved successfully", "alert": alert.to_dict()}), 200


@alerts_bp.put("/<int:alert_id>/dismiss")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def dismiss_alert_route(alert_id: int):
    reason = _reason_from_body()
    alert = alert_service.dismiss_alert(alert_id, g.current_user.username, reason)
    return jsonify({"message": "Alert dismissed", "alert": alert.to_dict()}), 200
