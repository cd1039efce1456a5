from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


RETURN_ITEM_STATUSES = {"PENDING", "RESELLABLE", "FAULTY", "DISCARDED"}
AWARD_TYPES = {"REFUND", "REPLACEMENT", "REPAIR", "STORE_CREDIT"}
DIFFERENCE_PAYERS = {"CLIENT", "BUSINESS"}


class Return(db.Model):
    """
    Customer return document.

    total_refund_cents is money that left the business for this return:
    refunds on REFUND lines plus replacement differences the business paid.
    total_top_up_cents is money the customer paid in on dearer replacements.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(64), nullable=False, unique=True)
    idempotency_key = db.Column(db.String(128), nullable=True, unique=True)

    reason = db.Column(db.String(255), nullable=False)
    total_refund_cents = db.Column(db.Integer, nullable=False, default=0)
    total_top_up_cents = db.Column(db.Integer, nullable=False, default=0)

    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    processed_by = db.relationship("User", foreign_keys=[processed_by_user_id])
    items = db.relationship(
        "ReturnItem",
        backref="return_doc",
        lazy=True,
        order_by="ReturnItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "return_number": self.return_number,
            "reason": self.reason,
            "total_refund_cents": self.total_refund_cents,
            "total_top_up_cents": self.total_top_up_cents,
            "processed_by_user_id": self.processed_by_user_id,
            "processed_by_name": self.processed_by.name if self.processed_by else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class ReturnItem(db.Model):
    """
    One returned product line.

    price_difference_cents is always a non-negative magnitude; direction is
    carried by difference_paid_by (CLIENT when the replacement is dearer,
    BUSINESS when it is cheaper).
    """
    __tablename__ = "return_items"
    __table_args__ = (
        db.Index("ix_return_items_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING")

    refund_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    awarded_type = db.Column(db.String(16), nullable=False, default="REFUND")
    awarded_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    repair_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    replacement_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    replacement_product_name = db.Column(db.String(255), nullable=True)
    replacement_value_cents = db.Column(db.Integer, nullable=True)

    original_product_value_cents = db.Column(db.Integer, nullable=False, default=0)
    price_difference_cents = db.Column(db.Integer, nullable=False, default=0)
    difference_paid_by = db.Column(db.String(16), nullable=False, default="CLIENT")

    # Supplier the faulty unit goes back to, if any
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", foreign_keys=[product_id])
    replacement_product = db.relationship("Product", foreign_keys=[replacement_product_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "reason": self.reason,
            "status": self.status,
            "refund_amount_cents": self.refund_amount_cents,
            "awarded_type": self.awarded_type,
            "awarded_amount_cents": self.awarded_amount_cents,
            "repair_cost_cents": self.repair_cost_cents,
            "replacement_product_id": self.replacement_product_id,
            "replacement_product_name": self.replacement_product_name,
            "replacement_value_cents": self.replacement_value_cents,
            "original_product_value_cents": self.original_product_value_cents,
            "price_difference_cents": self.price_difference_cents,
            "difference_paid_by": self.difference_paid_by,
            "supplier_id": self.supplier_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
