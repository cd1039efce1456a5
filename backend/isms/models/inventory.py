from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


MOVEMENT_TYPES = {"STOCK_IN", "STOCK_OUT", "ADJUSTMENT", "RETURN_RESELLABLE", "RETURN_FAULTY"}


class StockMovement(db.Model):
    """
    Append-only audit trail of stock changes.

    quantity is the number of units involved (always positive).
    stock_delta is the signed change applied to Product.stock_quantity;
    it is zero for audit-only rows such as RETURN_FAULTY.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    stock_delta = db.Column(db.Integer, nullable=False)

    # Document number that caused the movement (receipt, return, PO, count)
    reference = db.Column(db.String(64), nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "stock_delta": self.stock_delta,
            "reference": self.reference,
            "reason": self.reason,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockCount(db.Model):
    """
    Physical count document.

    LIFECYCLE: IN_PROGRESS -> COMPLETED (stock adjusted) | CANCELLED
    """
    __tablename__ = "stock_counts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    count_number = db.Column(db.String(64), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default="IN_PROGRESS", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.relationship(
        "StockCountItem",
        backref="stock_count",
        lazy=True,
        order_by="StockCountItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "count_number": self.count_number,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "item_count": len(self.items),
            "variance_count": sum(1 for i in self.items if i.variance),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class StockCountItem(db.Model):
    __tablename__ = "stock_count_items"
    __table_args__ = (
        db.UniqueConstraint("stock_count_id", "product_id", name="uq_stock_count_items_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_count_id = db.Column(db.Integer, db.ForeignKey("stock_counts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot of stock_quantity when the count was opened
    system_qty = db.Column(db.Integer, nullable=False)
    counted_qty = db.Column(db.Integer, nullable=True)
    variance = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_count_id": self.stock_count_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "system_qty": self.system_qty,
            "counted_qty": self.counted_qty,
            "variance": self.variance,
            "notes": self.notes,
        }
