"""
Sales Service: sale pricing, payment resolution and posting.

WHY: A sale is one unit of work. The sale row, its items, the stock
decrements and their movement rows are written in a single transaction,
so a failure anywhere leaves no trace.

STOCK POLICY: stock leaves the shelf when the sale is recorded, for every
payment method including CREDIT. Installment payments never touch stock.

The arithmetic lives in two pure functions (price_sale_lines and
resolve_payment) so it can be tested without a database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..models.sales import PAYMENT_METHODS, SALE_TYPES
from ..validation import (
    EmptyCartError,
    InsufficientPaymentError,
    NotFoundError,
    ValidationError,
    parse_amount,
    parse_choice,
    parse_quantity,
)
from isms.time_utils import utcnow
from .concurrency import run_in_transaction
from .document_service import next_document_number
from .stock_service import apply_stock_delta, validate_on_hand


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    quantity: int
    unit_price_cents: int
    unit_cost_cents: int
    discount_cents: int
    total_cents: int


@dataclass(frozen=True)
class SaleTotals:
    lines: list[PricedLine]
    subtotal_cents: int
    discount_cents: int
    total_cents: int


@dataclass(frozen=True)
class PaymentResolution:
    amount_paid_cents: int
    change_given_cents: int
    is_installment: bool = False
    installment_total_cents: int | None = None
    installment_paid_cents: int | None = None
    installment_due_cents: int | None = None
    next_payment_date: datetime | None = None
    installment_status: str | None = None


def price_sale_lines(requests: list[dict], products: dict[int, Product], *, sale_type: str, discount_cents: int) -> SaleTotals:
    """
    Resolve unit prices and totals.

    requests: [{product_id, quantity, discount_cents}] already parsed.
    products: id -> Product for every requested id.

    unit price is the wholesale price for WHOLESALE sales when the product
    has one, else the selling price. Client-sent prices are never used.
    """
    if not requests:
        raise EmptyCartError("Cart is empty")

    lines = []
    for req in requests:
        product = products[req["product_id"]]
        unit_price = product.price_for(sale_type)
        gross = unit_price * req["quantity"]
        line_discount = req.get("discount_cents", 0)
        if line_discount < 0 or line_discount > gross:
            raise ValidationError(
                f"Line discount for {product.name} must be between 0 and {gross}"
            )
        lines.append(PricedLine(
            product_id=product.id,
            quantity=req["quantity"],
            unit_price_cents=unit_price,
            unit_cost_cents=product.purchase_cost_cents or 0,
            discount_cents=line_discount,
            total_cents=gross - line_discount,
        ))

    subtotal = sum(line.total_cents for line in lines)
    if discount_cents < 0 or discount_cents > subtotal:
        raise ValidationError(f"discount must be between 0 and {subtotal}")

    return SaleTotals(
        lines=lines,
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        total_cents=subtotal - discount_cents,
    )


def resolve_payment(
    *,
    payment_method: str,
    total_cents: int,
    amount_paid_cents: int | None,
    customer_name: str | None,
    customer_phone: str | None,
    now: datetime,
    interval_days: int,
) -> PaymentResolution:
    """
    CASH: amount tendered (0 when not sent) must cover the total; change
        is the excess.
    CREDIT: customer name and phone required; the down payment must be
        > 0 and <= total; the rest becomes the installment balance.
    CARD / MOBILE: paid in full, no change.
    """
    if payment_method == "CASH":
        paid = amount_paid_cents or 0
        if paid < total_cents:
            raise InsufficientPaymentError(
                f"Amount paid ({paid}) is less than total ({total_cents})"
            )
        return PaymentResolution(amount_paid_cents=paid, change_given_cents=paid - total_cents)

    if payment_method == "CREDIT":
        if not customer_name or not customer_phone:
            raise ValidationError("Customer name and phone are required for credit sales")
        if not amount_paid_cents or amount_paid_cents <= 0:
            raise ValidationError("Credit sales require a down payment greater than 0")
        if amount_paid_cents > total_cents:
            raise ValidationError("Down payment cannot exceed the sale total")

        due = total_cents - amount_paid_cents
        return PaymentResolution(
            amount_paid_cents=amount_paid_cents,
            change_given_cents=0,
            is_installment=True,
            installment_total_cents=total_cents,
            installment_paid_cents=amount_paid_cents,
            installment_due_cents=due,
            next_payment_date=now + timedelta(days=interval_days) if due > 0 else None,
            installment_status="ACTIVE" if due > 0 else "COMPLETED",
        )

    return PaymentResolution(amount_paid_cents=total_cents, change_given_cents=0)


def _parse_items(raw_items) -> list[dict]:
    if not raw_items:
        raise EmptyCartError("Cart is empty")
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    parsed = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        product_id = raw.get("product_id", raw.get("productId"))
        if product_id is None:
            raise ValidationError(f"items[{idx}].product_id is required")
        parsed.append({
            "product_id": parse_quantity(product_id, f"items[{idx}].product_id"),
            "quantity": parse_quantity(raw.get("quantity"), f"items[{idx}].quantity"),
            "discount_cents": parse_amount(raw.get("discount_cents", raw.get("discount")), f"items[{idx}].discount_cents"),
        })
    return parsed


def _optional_text(value, field_name: str, limit: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if len(text) > limit:
        raise ValidationError(f"{field_name} exceeds max length {limit}")
    return text or None


def create_sale(payload: dict, *, user_id: int | None = None) -> Sale:
    """
    Record a completed sale.

    Payload keys: items[{product_id, quantity, discount_cents?}],
    discount_cents, payment_method, sale_type, amount_paid_cents,
    customer_name, customer_phone, idempotency_key.

    Raises:
        EmptyCartError, InsufficientPaymentError, InsufficientStockError,
        ValidationError, NotFoundError, PersistenceError
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = _parse_items(payload.get("items"))
    payment_method = parse_choice(payload.get("payment_method", payload.get("paymentMethod")), "payment_method", PAYMENT_METHODS, default="CASH")
    sale_type = parse_choice(payload.get("sale_type", payload.get("saleType")), "sale_type", SALE_TYPES, default="RETAIL")
    discount_cents = parse_amount(payload.get("discount_cents", payload.get("discount")), "discount_cents")
    raw_paid = payload.get("amount_paid_cents", payload.get("amountPaid"))
    amount_paid = None if raw_paid in (None, "") else parse_amount(raw_paid, "amount_paid_cents")
    customer_name = _optional_text(payload.get("customer_name", payload.get("customerName")), "customer_name", 255)
    customer_phone = _optional_text(payload.get("customer_phone", payload.get("customerPhone")), "customer_phone", 32)
    idempotency_key = _optional_text(payload.get("idempotency_key"), "idempotency_key", 128)
    interval_days = int(current_app.config.get("INSTALLMENT_INTERVAL_DAYS", 30))

    def _op():
        if idempotency_key:
            existing = db.session.query(Sale).filter_by(idempotency_key=idempotency_key).first()
            if existing:
                return existing, False

        product_ids = {item["product_id"] for item in items}
        products = {
            p.id: p for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
        }
        missing = sorted(product_ids - set(products))
        if missing:
            raise NotFoundError(f"Product(s) not found: {', '.join(str(m) for m in missing)}")

        totals = price_sale_lines(items, products, sale_type=sale_type, discount_cents=discount_cents)

        now = utcnow()
        payment = resolve_payment(
            payment_method=payment_method,
            total_cents=totals.total_cents,
            amount_paid_cents=amount_paid,
            customer_name=customer_name,
            customer_phone=customer_phone,
            now=now,
            interval_days=interval_days,
        )

        requested: dict[int, int] = {}
        for line in totals.lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
        validate_on_hand(requested)

        sale = Sale(
            receipt_number=next_document_number(document_type="SALE", now=now),
            idempotency_key=idempotency_key,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            total_cents=totals.total_cents,
            payment_method=payment_method,
            sale_type=sale_type,
            amount_paid_cents=payment.amount_paid_cents,
            change_given_cents=payment.change_given_cents,
            customer_name=customer_name,
            customer_phone=customer_phone,
            is_installment=payment.is_installment,
            installment_total_cents=payment.installment_total_cents,
            installment_paid_cents=payment.installment_paid_cents,
            installment_due_cents=payment.installment_due_cents,
            next_payment_date=payment.next_payment_date,
            installment_status=payment.installment_status,
            cashier_id=user_id,
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        for line in totals.lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                unit_cost_cents=line.unit_cost_cents,
                discount_cents=line.discount_cents,
                total_cents=line.total_cents,
            ))
            apply_stock_delta(
                product_id=line.product_id,
                delta=-line.quantity,
                movement_type="STOCK_OUT",
                reference=sale.receipt_number,
                reason=f"Sale {sale.receipt_number}",
                user_id=user_id,
            )

        db.session.flush()
        return sale, True

    sale, created = run_in_transaction(_op)
    if created:
        current_app.logger.info(
            "Sale recorded: %s total=%s method=%s", sale.receipt_number, sale.total_cents, sale.payment_method
        )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(*, installment_only: bool = False, limit: int = 100) -> list[Sale]:
    query = db.session.query(Sale)
    if installment_only:
        query = query.filter(Sale.is_installment.is_(True))
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
