from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import cents_to_str


STOCK_STATUS_OUT = "out_of_stock"
STOCK_STATUS_LOW = "low_stock"
STOCK_STATUS_OVER = "overstock"
STOCK_STATUS_OK = "in_stock"


def stock_status(quantity: int | None, reorder_level: int | None, max_stock_level: int | None) -> str:
    """
    Classify a stock level. Order matters: an empty shelf is out of stock even
    when the reorder level is 0.
    """
    quantity = quantity or 0
    if quantity <= 0:
        return STOCK_STATUS_OUT
    if reorder_level is not None and quantity <= reorder_level:
        return STOCK_STATUS_LOW
    if max_stock_level is not None and quantity >= max_stock_level:
        return STOCK_STATUS_OVER
    return STOCK_STATUS_OK


class Product(db.Model):
    """
    Product master data.

    Identity (id) never changes; descriptive fields are mutable through the
    admin routes. Deletion is soft (is_active=False) so that sales, stock
    movements and alerts keep a valid product reference.

    Prices are stored in cents. The API speaks decimal strings.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_name", "category", "name"),
        db.CheckConstraint("sell_price_cents >= 0", name="sell_price_non_negative"),
        db.CheckConstraint("cost_price_cents IS NULL OR cost_price_cents >= 0", name="cost_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, index=True)
    supplier = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Unique when present; products created without one stay NULL
    sku = db.Column(db.String(64), nullable=True)

    cost_price_cents = db.Column(db.Integer, nullable=True)
    sell_price_cents = db.Column(db.Integer, nullable=False)

    image_url = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    inventory = db.relationship(
        "InventoryRecord",
        back_populates="product",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self, include_inventory: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "supplier": self.supplier,
            "description": self.description,
            "sku": self.sku,
            "cost_price": cents_to_str(self.cost_price_cents),
            "sell_price": cents_to_str(self.sell_price_cents),
            "cost_price_cents": self.cost_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_inventory:
            data["inventory"] = self.inventory.to_dict() if self.inventory else None
        return data


class InventoryRecord(db.Model):
    """
    Current stock level for one product.

    INVARIANTS:
    - quantity >= 0 at every commit point (DB check + service checks)
    - every change to quantity is paired with exactly one StockMovement,
      written by inventory_service.apply_quantity_change in the same transaction

    version_id turns lost updates into StaleDataError, which the service
    layer retries.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_inventory_product"),
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.CheckConstraint("reorder_level >= 0", name="reorder_level_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=10)
    max_stock_level = db.Column(db.Integer, nullable=True, default=100)

    location = db.Column(db.String(120), nullable=True, default="Main Store")
    shelf_location = db.Column(db.String(120), nullable=True)

    last_restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", back_populates="inventory")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryRecord product_id={self.product_id} quantity={self.quantity}>"

    @property
    def stock_status(self) -> str:
        return stock_status(self.quantity, self.reorder_level, self.max_stock_level)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "reorder_level": self.reorder_level,
            "max_stock_level": self.max_stock_level,
            "location": self.location,
            "shelf_location": self.shelf_location,
            "last_restocked_at": to_utc_z(self.last_restocked_at) if self.last_restocked_at else None,
            "updated_at": to_utc_z(self.updated_at),
            "stock_status": self.stock_status,
            "version_id": self.version_id,
        }
