from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

MAX_QUANTITY = 1_000_000

CENT = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem. Never partially applied."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - money_fields: payload keys carrying decimal amounts, stored as <key>_cents
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()  # type: ignore[assignment]
    money_fields: set[str] = frozenset()  # type: ignore[assignment]


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects floats, bools, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_money_cents(value: Any, field: str) -> int:
    """
    Parse a decimal amount ("12.95", 12.95, 13) into integer cents.

    Amounts must be >= 0 with at most two decimal places.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a decimal amount")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a decimal amount")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} must have at most two decimal places")
    cents = int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    return cents


def cents_to_str(cents: int | None) -> str | None:
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(CENT))


def line_total_cents(quantity: int, unit_price_cents: int) -> int:
    """round(quantity * unit_price, 2) expressed in cents."""
    total = (Decimal(quantity) * Decimal(unit_price_cents) / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(total * 100)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name. Money fields come back
    as <field>_cents integers.

    Fields in the allowlist that are not columns of `model` (e.g. inventory
    settings on a product payload) are returned untouched for the caller to
    validate.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in policy.money_fields:
            column_key = f"{k}_cents"
            col = cols[column_key]
            if raw is None:
                if not col.nullable:
                    raise ValidationError(f"{k} cannot be null")
                patch[column_key] = None
            else:
                patch[column_key] = parse_money_cents(raw, k)
            continue

        col = cols.get(k)
        if col is None:
            patch[k] = raw
            continue

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_inventory_settings(settings: dict) -> dict:
    """
    Validate the inventory half of a product payload. Returns normalized values.
    """
    cleaned: dict = {}
    for key in ("quantity", "reorder_level", "max_stock_level"):
        if key in settings and settings[key] is not None:
            value = parse_int(settings[key], key)
            if value < 0:
                raise ValidationError(f"{key} must be >= 0")
            if value > MAX_QUANTITY:
                raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}")
            cleaned[key] = value

    for key in ("location", "shelf_location"):
        if key in settings:
            value = settings[key]
            if value is not None:
                value = str(value).strip()
                if len(value) > 120:
                    raise ValidationError(f"{key} exceeds max length 120")
            cleaned[key] = value

    reorder = cleaned.get("reorder_level")
    max_level = cleaned.get("max_stock_level")
    if reorder is not None and max_level is not None and max_level < reorder:
        raise ValidationError("max_stock_level must be >= reorder_level")

    return cleaned


def enforce_rules_sale(payload: dict) -> dict:
    """
    SALE requires a product, a positive integer quantity and a unit price.
    Rejected before any write.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if payload.get("product_id") in (None, ""):
        raise ValidationError("product_id is required")
    product_id = parse_int(payload["product_id"], "product_id")

    if payload.get("quantity_sold") in (None, ""):
        raise ValidationError("quantity_sold is required")
    quantity = parse_int(payload["quantity_sold"], "quantity_sold")
    if quantity <= 0:
        raise ValidationError("quantity_sold must be > 0")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity_sold cannot exceed {MAX_QUANTITY}")

    if payload.get("unit_price") in (None, ""):
        raise ValidationError("unit_price is required")
    unit_price_cents = parse_money_cents(payload["unit_price"], "unit_price")

    cashier = payload.get("cashier_name")
    if cashier is not None:
        cashier = str(cashier).strip() or None
        if cashier and len(cashier) > 120:
            raise ValidationError("cashier_name exceeds max length 120")

    payment_method = payload.get("payment_method") or "cash"

    return {
        "product_id": product_id,
        "quantity_sold": quantity,
        "unit_price_cents": unit_price_cents,
        "cashier_name": cashier,
        "payment_method": str(payment_method).strip().lower(),
    }


def enforce_rules_stock_change(payload: dict, *, require_positive: bool) -> dict:
    """Restock requires quantity > 0; adjustments require a non-zero delta."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    key = "quantity" if require_positive else "quantity_delta"
    if payload.get(key) in (None, ""):
        raise ValidationError(f"{key} is required")
    value = parse_int(payload[key], key)
    if require_positive and value <= 0:
        raise ValidationError("quantity must be > 0")
    if not require_positive and value == 0:
        raise ValidationError("quantity_delta must be non-zero")
    if abs(value) > MAX_QUANTITY:
        raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}")

    reason = payload.get("reason")
    if reason is not None:
        reason = str(reason).strip() or None
        if reason and len(reason) > 255:
            raise ValidationError("reason exceeds max length 255")

    return {key: value, "reason": reason, "movement_type": payload.get("movement_type")}
