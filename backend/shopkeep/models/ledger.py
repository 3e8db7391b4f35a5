from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import cents_to_str


MOVEMENT_SALE = "sale"
MOVEMENT_RESTOCK = "restock"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_RETURN = "return"
MOVEMENT_DAMAGE = "damage"

MOVEMENT_TYPES = (
    MOVEMENT_SALE,
    MOVEMENT_RESTOCK,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RETURN,
    MOVEMENT_DAMAGE,
)

PAYMENT_METHODS = ("cash", "card", "mobile", "other")


class Sale(db.Model):
    """
    One recorded sale of a single product.

    Created exactly once per successful sales_service.record_sale call and
    never mutated afterwards (see db_guards). total_amount_cents is
    quantity_sold * unit price, rounded to the cent.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_product_sold_at", "product_id", "sold_at"),
        db.CheckConstraint("quantity_sold > 0", name="quantity_sold_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="unit_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_sold = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    cashier_name = db.Column(db.String(120), nullable=True)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    product = db.relationship("Product", backref=db.backref("sales", lazy=True))

    def __repr__(self) -> str:
        return f"<Sale id={self.id} product_id={self.product_id} qty={self.quantity_sold}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.product.sku if self.product else None,
            "category": self.product.category if self.product else None,
            "quantity_sold": self.quantity_sold,
            "unit_price": cents_to_str(self.unit_price_cents),
            "total_amount": cents_to_str(self.total_amount_cents),
            "unit_price_cents": self.unit_price_cents,
            "total_amount_cents": self.total_amount_cents,
            "sold_at": to_utc_z(self.sold_at),
            "cashier_name": self.cashier_name,
            "payment_method": self.payment_method,
            "recorded_by_user_id": self.recorded_by_user_id,
        }


class StockMovement(db.Model):
    """
    Append-only audit entry for every inventory quantity change.

    This table is the system of record for "why did inventory change".
    new_quantity = previous_quantity + quantity_delta is enforced by the
    database; updates and deletes are rejected by db_guards.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.CheckConstraint(
            "new_quantity = previous_quantity + quantity_delta",
            name="delta_consistent",
        ),
        db.CheckConstraint("new_quantity >= 0", name="new_quantity_non_negative"),
        db.CheckConstraint(
            "movement_type IN ('sale', 'restock', 'adjustment', 'return', 'damage')",
            name="movement_type_valid",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))
    actor = db.relationship("User")

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} product_id={self.product_id} "
            f"{self.movement_type} {self.previous_quantity}->{self.new_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.product.sku if self.product else None,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "reason": self.reason,
            "actor_user_id": self.actor_user_id,
            "user_name": self.actor.username if self.actor else None,
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
        }
