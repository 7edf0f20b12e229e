from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data and on-hand stock.

    STOCK DESIGN DECISION:
    stock_quantity is a stored, mutable quantity (single store, single pool).
    - Sales decrement it only through sales_service.commit_sale, which uses a
      conditional UPDATE ... WHERE stock_quantity >= :qty
    - CRUD edits overwrite it last-writer-wins and are NOT serialized against
      sales (known gap)
    - CHECK constraint keeps it non-negative at the database level

    Money is stored in cents (frontend may only format for display).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("min_stock_quantity >= 0", name="ck_products_min_stock_non_negative"),
        db.CheckConstraint("cost_price_cents >= 0", name="ck_products_cost_non_negative"),
        db.CheckConstraint("sale_price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    # Optional barcode / internal code, searchable
    code = db.Column(db.String(64), nullable=True, index=True)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    # Low-stock alert threshold (alert when stock_quantity <= min_stock_quantity)
    min_stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=True)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_quantity

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "code": self.code,
            "cost_price_cents": self.cost_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "stock_quantity": self.stock_quantity,
            "min_stock_quantity": self.min_stock_quantity,
            "is_low_stock": self.is_low_stock,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "owner_id": self.owner_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
