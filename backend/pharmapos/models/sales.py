from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z

class SaleRecord(db.Model):
    """
    One committed sale of a single product.

    WHY snapshots: product_name_snapshot and unit_price_cents_snapshot freeze
    the product's name and price at sale time, so later product edits do not
    alter historical reports. product_id is informational only.

    IMMUTABLE: created exactly once per successful commit; never updated or
    deleted.
    """
    __tablename__ = "sale_records"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_records_quantity_positive"),
        db.CheckConstraint("unit_price_cents_snapshot >= 0", name="ck_sale_records_price_non_negative"),
        db.Index("ix_sale_records_occurred", "occurred_at"),
        db.Index("ix_sale_records_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # No FK: a deleted product must not take its sales history with it
    product_id = db.Column(db.Integer, nullable=False)
    product_name_snapshot = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents_snapshot = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<SaleRecord id={self.id} product_id={self.product_id} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "sale_id": self.id,
            "product_id": self.product_id,
            "product_name_snapshot": self.product_name_snapshot,
            "quantity": self.quantity,
            "unit_price_snapshot_cents": self.unit_price_cents_snapshot,
            "total_cents": self.total_cents,
            "timestamp": to_utc_z(self.occurred_at),
            "owner_id": self.owner_id,
        }
