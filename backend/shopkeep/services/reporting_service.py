# Overview: Service-layer operations for reporting; read-only aggregations over sales and inventory.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryRecord, Product, Sale
from ..time_utils import days_ago, start_of_day, to_utc_z, utcnow
from ..validation import ValidationError, cents_to_str

MAX_PERIOD_DAYS = 366
TOP_METRICS = ("revenue", "quantity")


def _check_period(period: int) -> int:
    if period <= 0 or period > MAX_PERIOD_DAYS:
        raise ValidationError(f"period must be between 1 and {MAX_PERIOD_DAYS} days")
    return period


def _sales_totals(since: datetime) -> dict:
    row = db.session.query(
        func.count(Sale.id).label("count"),
        func.coalesce(func.sum(Sale.total_amount_cents), 0).label("revenue_cents"),
    ).filter(Sale.sold_at >= since).one()
    revenue = int(row.revenue_cents or 0)
    return {"count": int(row.count or 0), "revenue_cents": revenue, "revenue": cents_to_str(revenue)}


def dashboard(now: datetime | None = None) -> dict:
    """
    Headline numbers: catalogue size, stock value, low/out-of-stock counts,
    sales for today / last 7 days / last 30 days and the best seller of the
    last 30 days.
    """
    now = now or utcnow()

    active = Product.is_active.is_(True)

    total_products = db.session.query(func.count(Product.id)).filter(active).scalar() or 0

    total_value = (
        db.session.query(
            func.coalesce(func.sum(InventoryRecord.quantity * Product.sell_price_cents), 0)
        )
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(active)
        .scalar()
    ) or 0

    low_stock_count = (
        db.session.query(func.count(InventoryRecord.id))
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(active, InventoryRecord.quantity <= InventoryRecord.reorder_level)
        .scalar()
    ) or 0

    out_of_stock_count = (
        db.session.query(func.count(InventoryRecord.id))
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(active, InventoryRecord.quantity == 0)
        .scalar()
    ) or 0

    month_start = days_ago(30, now)
    top = (
        db.session.query(
            Product.id,
            Product.name,
            func.sum(Sale.quantity_sold).label("total_sold"),
            func.sum(Sale.total_amount_cents).label("total_revenue_cents"),
        )
        .join(Product, Product.id == Sale.product_id)
        .filter(Sale.sold_at >= month_start)
        .group_by(Product.id, Product.name)
        .order_by(func.sum(Sale.quantity_sold).desc(), Product.id.asc())
        .first()
    )

    return {
        "generated_at": to_utc_z(now),
        "total_products": int(total_products),
        "total_value_cents": int(total_value),
        "total_value": cents_to_str(int(total_value)),
        "low_stock_count": int(low_stock_count),
        "out_of_stock_count": int(out_of_stock_count),
        "today_sales": _sales_totals(start_of_day(now.date())),
        "week_sales": _sales_totals(days_ago(7, now)),
        "month_sales": _sales_totals(month_start),
        "top_selling_product": {
            "product_id": top.id,
            "name": top.name,
            "total_sold": int(top.total_sold),
            "total_revenue_cents": int(top.total_revenue_cents),
            "total_revenue": cents_to_str(int(top.total_revenue_cents)),
        } if top else None,
    }


def sales_trend(*, period: int = 30, now: datetime | None = None) -> list[dict]:
    """Per-day sales over the last `period` days, oldest first. Days without sales are omitted."""
    _check_period(period)
    since = days_ago(period, now)

    day = func.date(Sale.sold_at)
    rows = (
        db.session.query(
            day.label("date"),
            func.count(Sale.id).label("sales_count"),
            func.sum(Sale.quantity_sold).label("items_sold"),
            func.sum(Sale.total_amount_cents).label("revenue_cents"),
            func.count(func.distinct(Sale.product_id)).label("unique_products"),
        )
        .filter(Sale.sold_at >= since)
        .group_by(day)
        .order_by(day.asc())
        .all()
    )

    return [
        {
            "date": str(row.date),
            "sales_count": int(row.sales_count),
            "items_sold": int(row.items_sold or 0),
            "revenue_cents": int(row.revenue_cents or 0),
            "revenue": cents_to_str(int(row.revenue_cents or 0)),
            "unique_products": int(row.unique_products),
        }
        for row in rows
    ]


def category_distribution() -> list[dict]:
    """Stock and price figures per category, most valuable first."""
    total_value = func.sum(InventoryRecord.quantity * Product.sell_price_cents)
    rows = (
        db.session.query(
            Product.category,
            func.count(func.distinct(Product.id)).label("product_count"),
            func.sum(InventoryRecord.quantity).label("total_inventory"),
            total_value.label("total_value_cents"),
            func.avg(Product.sell_price_cents).label("avg_price_cents"),
            func.min(Product.sell_price_cents).label("min_price_cents"),
            func.max(Product.sell_price_cents).label("max_price_cents"),
        )
        .join(InventoryRecord, InventoryRecord.product_id == Product.id)
        .filter(Product.is_active.is_(True))
        .group_by(Product.category)
        .order_by(total_value.desc(), Product.category.asc())
        .all()
    )

    result = []
    for row in rows:
        avg_cents = int(round(float(row.avg_price_cents or 0)))
        result.append(
            {
                "category": row.category,
                "product_count": int(row.product_count),
                "total_inventory": int(row.total_inventory or 0),
                "total_value_cents": int(row.total_value_cents or 0),
                "total_value": cents_to_str(int(row.total_value_cents or 0)),
                "avg_price": cents_to_str(avg_cents),
                "min_price": cents_to_str(int(row.min_price_cents)),
                "max_price": cents_to_str(int(row.max_price_cents)),
            }
        )
    return result


def top_products(
    *,
    period: int = 30,
    metric: str = "revenue",
    limit: int = 10,
    now: datetime | None = None,
) -> list[dict]:
    """Best sellers over the last `period` days by revenue or by quantity."""
    _check_period(period)
    if metric not in TOP_METRICS:
        raise ValidationError(f"metric must be one of: {', '.join(TOP_METRICS)}")
    if limit <= 0 or limit > 100:
        raise ValidationError("limit must be between 1 and 100")

    total_sold = func.sum(Sale.quantity_sold)
    total_revenue = func.sum(Sale.total_amount_cents)
    order_expr = total_sold if metric == "quantity" else total_revenue

    rows = (
        db.session.query(
            Product.id,
            Product.name,
            Product.category,
            Product.sell_price_cents,
            total_sold.label("total_sold"),
            total_revenue.label("total_revenue_cents"),
            func.count(Sale.id).label("transaction_count"),
            func.avg(Sale.quantity_sold).label("avg_quantity_per_sale"),
        )
        .join(Product, Product.id == Sale.product_id)
        .filter(Sale.sold_at >= days_ago(period, now))
        .group_by(Product.id, Product.name, Product.category, Product.sell_price_cents)
        .order_by(order_expr.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )

    return [
        {
            "id": row.id,
            "name": row.name,
            "category": row.category,
            "sell_price": cents_to_str(row.sell_price_cents),
            "total_sold": int(row.total_sold),
            "total_revenue_cents": int(row.total_revenue_cents),
            "total_revenue": cents_to_str(int(row.total_revenue_cents)),
            "transaction_count": int(row.transaction_count),
            "avg_quantity_per_sale": round(float(row.avg_quantity_per_sale), 2),
        }
        for row in rows
    ]


def weekly_summary(now: datetime | None = None) -> dict:
    """Seven-day totals used by `flask reports weekly`."""
    since = days_ago(7, now)
    row = db.session.query(
        func.count(Sale.id).label("transactions"),
        func.coalesce(func.sum(Sale.quantity_sold), 0).label("items_sold"),
        func.coalesce(func.sum(Sale.total_amount_cents), 0).label("revenue_cents"),
    ).filter(Sale.sold_at >= since).one()

    transactions = int(row.transactions or 0)
    revenue = int(row.revenue_cents or 0)
    avg_cents = int(round(revenue / transactions)) if transactions else 0

    return {
        "since": to_utc_z(since),
        "total_transactions": transactions,
        "total_items_sold": int(row.items_sold or 0),
        "total_revenue_cents": revenue,
        "total_revenue": cents_to_str(revenue),
        "avg_transaction_value": cents_to_str(avg_cents),
    }
