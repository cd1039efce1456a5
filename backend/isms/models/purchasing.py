from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


PURCHASE_ORDER_STATUSES = {"PENDING", "ORDERED", "RECEIVED", "CANCELLED"}


class PurchaseOrder(db.Model):
    """
    Purchase order to a supplier.

    LIFECYCLE:
        PENDING -> ORDERED | RECEIVED | CANCELLED
        ORDERED -> RECEIVED | CANCELLED
        RECEIVED, CANCELLED: terminal

    Stock is credited exactly once, on the transition into RECEIVED.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING")
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    expected_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    ordered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        lazy=True,
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "notes": self.notes,
            "expected_delivery": to_utc_z(self.expected_delivery) if self.expected_delivery else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "ordered_at": to_utc_z(self.ordered_at) if self.ordered_at else None,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_ordered = db.Column(db.Integer, nullable=False)
    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity_ordered": self.quantity_ordered,
            "quantity_received": self.quantity_received,
            "unit_cost_cents": self.unit_cost_cents,
            "total_cost_cents": self.total_cost_cents,
        }
