from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


PAYMENT_METHODS = {"CASH", "CARD", "MOBILE", "CREDIT"}
SALE_TYPES = {"RETAIL", "WHOLESALE"}


class Sale(db.Model):
    """
    Completed sale document.

    WHY: A sale is written once with its resolved totals and never edited,
    except for the installment fields of a CREDIT sale, which move only
    through installment_service.record_payment.

    INVARIANTS:
    - total_cents == subtotal_cents - discount_cents
    - CASH: change_given_cents == amount_paid_cents - total_cents
    - CREDIT: installment_due_cents == installment_total_cents - installment_paid_cents
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created", "created_at"),
        db.Index("ix_sales_installment_status", "is_installment", "installment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "RCP-20240101-0001")
    receipt_number = db.Column(db.String(64), nullable=False, unique=True)

    # Client-supplied key; a retried create returns the stored sale
    idempotency_key = db.Column(db.String(128), nullable=True, unique=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    sale_type = db.Column(db.String(16), nullable=False, default="RETAIL")

    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_given_cents = db.Column(db.Integer, nullable=False, default=0)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    # Credit / installment tracking
    is_installment = db.Column(db.Boolean, nullable=False, default=False)
    installment_total_cents = db.Column(db.Integer, nullable=True)
    installment_paid_cents = db.Column(db.Integer, nullable=True)
    installment_due_cents = db.Column(db.Integer, nullable=True)
    next_payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    installment_status = db.Column(db.String(16), nullable=True)  # ACTIVE, COMPLETED

    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cashier = db.relationship("User", foreign_keys=[cashier_id])
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "InstallmentPayment",
        backref="sale",
        lazy=True,
        order_by="InstallmentPayment.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "sale_type": self.sale_type,
            "amount_paid_cents": self.amount_paid_cents,
            "change_given_cents": self.change_given_cents,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "is_installment": self.is_installment,
            "installment_total_cents": self.installment_total_cents,
            "installment_paid_cents": self.installment_paid_cents,
            "installment_due_cents": self.installment_due_cents,
            "next_payment_date": to_utc_z(self.next_payment_date) if self.next_payment_date else None,
            "installment_status": self.installment_status,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier.name if self.cashier else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class SaleItem(db.Model):
    """
    Sale line.

    unit_price_cents and unit_cost_cents are snapshots taken when the sale is
    recorded so later catalog edits never rewrite historical revenue or cost.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }


class InstallmentPayment(db.Model):
    """
    Append-only record of one payment against a credit sale.

    amount_cents is the sale total at the time of payment, amount_paid_cents
    is this payment, balance_cents is what remains due afterwards.
    """
    __tablename__ = "installment_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    balance_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "amount_cents": self.amount_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_cents": self.balance_cents,
            "notes": self.notes,
            "received_by_user_id": self.received_by_user_id,
            "paid_at": to_utc_z(self.paid_at),
        }
