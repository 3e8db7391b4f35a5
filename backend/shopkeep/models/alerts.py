from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z


ALERT_LOW_STOCK = "low_stock"
ALERT_OUT_OF_STOCK = "out_of_stock"
ALERT_OVERSTOCK = "overstock"
ALERT_PRICE_CHANGE = "price_change"

ALERT_TYPES = (ALERT_LOW_STOCK, ALERT_OUT_OF_STOCK, ALERT_OVERSTOCK, ALERT_PRICE_CHANGE)

# Alert types raised when stock runs short; one active alert covers both
STOCK_SHORTAGE_TYPES = (ALERT_LOW_STOCK, ALERT_OUT_OF_STOCK)

STATUS_ACTIVE = "active"
STATUS_RESOLVED = "resolved"
STATUS_DISMISSED = "dismissed"

ALERT_STATUSES = (STATUS_ACTIVE, STATUS_RESOLVED, STATUS_DISMISSED)

PRIORITY_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}


class Alert(db.Model):
    """
    Advisory notification derived from inventory state.

    LIFECYCLE: active -> resolved | dismissed, only by explicit user action.
    Restocking does not resolve an alert.

    DEDUPLICATION: at most one active alert per (product, type). The partial
    unique index turns a check-then-insert race into an IntegrityError that
    alert_service treats as "already raised".
    """
    __tablename__ = "alerts"
    __table_args__ = (
        db.Index(
            "uq_alerts_active_product_type",
            "product_id",
            "alert_type",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        db.Index("ix_alerts_status_created", "status", "created_at"),
        db.CheckConstraint(
            "alert_type IN ('low_stock', 'out_of_stock', 'overstock', 'price_change')",
            name="alert_type_valid",
        ),
        db.CheckConstraint("status IN ('active', 'resolved', 'dismissed')", name="status_valid"),
        db.CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="priority_valid"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    alert_type = db.Column(db.String(32), nullable=False)
    message = db.Column(db.String(500), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)
    priority = db.Column(db.String(16), nullable=False, default="medium")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by = db.Column(db.String(64), nullable=True)
    resolution_note = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product", backref=db.backref("alerts", lazy=True))

    def __repr__(self) -> str:
        return f"<Alert id={self.id} product_id={self.product_id} {self.alert_type}/{self.status}>"

    def to_dict(self) -> dict:
        product = self.product
        inventory = product.inventory if product else None
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": product.name if product else None,
            "category": product.category if product else None,
            "sku": product.sku if product else None,
            "current_quantity": inventory.quantity if inventory else None,
            "reorder_level": inventory.reorder_level if inventory else None,
            "alert_type": self.alert_type,
            "message": self.message,
            "status": self.status,
            "priority": self.priority,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "resolution_note": self.resolution_note,
        }
