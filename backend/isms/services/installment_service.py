# Overview: Service-layer operations for installment payments on credit sales.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import InstallmentPayment, Sale
from ..validation import ConflictError, NotFoundError, ValidationError, parse_amount
from isms.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction


def record_payment(sale_id: int, amount, notes: str | None = None, *, user_id: int | None = None) -> tuple[Sale, InstallmentPayment]:
    """
    Record one payment against a credit sale.

    RULES:
    - amount must be > 0 and may not exceed the outstanding balance
    - installment_paid += amount, amount_paid += amount,
      installment_due = installment_total - installment_paid
    - at zero balance the sale is COMPLETED and next_payment_date cleared,
      otherwise next_payment_date moves forward by the configured interval

    Stock is not touched; it left the shelf when the sale was recorded.
    """
    amount_cents = parse_amount(amount, "amount_cents", default=None)
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be greater than 0")
    notes = (notes or "").strip()[:255] or None
    interval_days = int(current_app.config.get("INSTALLMENT_INTERVAL_DAYS", 30))

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found")
        if not sale.is_installment:
            raise ValidationError("Sale is not an installment sale")

        due = sale.installment_due_cents or 0
        if due <= 0:
            raise ConflictError("Installment sale is already fully paid")
        if amount_cents > due:
            raise ValidationError(f"Payment ({amount_cents}) exceeds outstanding balance ({due})")

        now = utcnow()
        sale.installment_paid_cents = (sale.installment_paid_cents or 0) + amount_cents
        sale.installment_due_cents = sale.installment_total_cents - sale.installment_paid_cents
        sale.amount_paid_cents = (sale.amount_paid_cents or 0) + amount_cents

        if sale.installment_due_cents == 0:
            sale.installment_status = "COMPLETED"
            sale.next_payment_date = None
        else:
            sale.next_payment_date = now + timedelta(days=interval_days)

        payment = InstallmentPayment(
            sale_id=sale.id,
            amount_cents=sale.installment_total_cents,
            amount_paid_cents=amount_cents,
            balance_cents=sale.installment_due_cents,
            notes=notes,
            received_by_user_id=user_id,
            paid_at=now,
        )
        db.session.add(payment)
        db.session.flush()
        return sale, payment

    sale, payment = run_in_transaction(_op)
    current_app.logger.info(
        "Installment payment on %s: paid=%s balance=%s", sale.receipt_number, payment.amount_paid_cents, payment.balance_cents
    )
    if sale.installment_status == "COMPLETED":
        current_app.logger.info("Installment sale completed: %s", sale.receipt_number)
    return sale, payment


def list_installment_sales(*, status: str | None = None) -> list[Sale]:
    """Credit sales, most recent first. status: ACTIVE, COMPLETED, or OVERDUE (ACTIVE and past due)."""
    query = db.session.query(Sale).filter(Sale.is_installment.is_(True))
    if status:
        status = status.strip().upper()
        if status == "OVERDUE":
            query = query.filter(
                Sale.installment_status == "ACTIVE",
                Sale.next_payment_date < utcnow(),
            )
        elif status in {"ACTIVE", "COMPLETED"}:
            query = query.filter(Sale.installment_status == status)
        else:
            raise ValidationError("status must be one of: ACTIVE, COMPLETED, OVERDUE")
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def installment_summary(sales: list[Sale]) -> dict:
    return {
        "count": len(sales),
        "total_outstanding_cents": sum(s.installment_due_cents or 0 for s in sales),
        "total_collected_cents": sum(s.installment_paid_cents or 0 for s in sales),
    }
