# Overview: Service-layer operations for purchase orders; encapsulates business logic and database work.

"""
Purchase Orders

LIFECYCLE:
    PENDING -> ORDERED | RECEIVED | CANCELLED
    ORDERED -> RECEIVED | CANCELLED
    RECEIVED, CANCELLED: terminal

WHY the guard: stock is credited only on the transition into RECEIVED.
The order row is locked and its current status checked first, so a
repeated "receive" finds RECEIVED and credits nothing.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderItem, Supplier
from ..models.purchasing import PURCHASE_ORDER_STATUSES
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_int,
    parse_amount,
    parse_choice,
    parse_quantity,
)
from isms.time_utils import parse_iso_datetime, utcnow
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_document_number
from .stock_service import apply_stock_delta


ALLOWED_TRANSITIONS = {
    "PENDING": {"ORDERED", "RECEIVED", "CANCELLED"},
    "ORDERED": {"RECEIVED", "CANCELLED"},
    "RECEIVED": set(),
    "CANCELLED": set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def _parse_lines(raw_items) -> list[dict]:
    if not raw_items or not isinstance(raw_items, list):
        raise ValidationError("At least one item is required")

    lines = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        product_id = raw.get("product_id", raw.get("productId"))
        if product_id is None:
            raise ValidationError(f"items[{idx}].product_id is required")
        unit_cost = raw.get("unit_cost_cents", raw.get("unitCost"))
        lines.append({
            "product_id": parse_quantity(product_id, f"items[{idx}].product_id"),
            "quantity": parse_quantity(raw.get("quantity"), f"items[{idx}].quantity"),
            "unit_cost_cents": parse_amount(unit_cost, f"items[{idx}].unit_cost_cents", default=None),
        })
    return lines


def create_purchase_order(payload: dict, *, user_id: int | None = None) -> PurchaseOrder:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    supplier_id = payload.get("supplier_id", payload.get("supplierId"))
    if supplier_id is None:
        raise ValidationError("supplier_id is required")
    supplier_id = coerce_int(supplier_id, "supplier_id")
    lines = _parse_lines(payload.get("items"))
    notes = (str(payload.get("notes") or "").strip()) or None

    raw_expected = payload.get("expected_delivery", payload.get("expectedDelivery"))
    try:
        expected_delivery = parse_iso_datetime(raw_expected) if raw_expected else None
    except (TypeError, ValueError):
        raise ValidationError("expected_delivery must be an ISO-8601 datetime")

    def _op():
        if not db.session.get(Supplier, supplier_id):
            raise NotFoundError("Supplier not found")

        product_ids = {line["product_id"] for line in lines}
        found = {p.id for p in db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()}
        missing = sorted(product_ids - found)
        if missing:
            raise NotFoundError(f"Product(s) not found: {', '.join(str(m) for m in missing)}")

        now = utcnow()
        order = PurchaseOrder(
            order_number=next_document_number(document_type="PURCHASE_ORDER", now=now),
            supplier_id=supplier_id,
            status="PENDING",
            total_amount_cents=sum(line["quantity"] * line["unit_cost_cents"] for line in lines),
            paid_amount_cents=0,
            notes=notes,
            expected_delivery=expected_delivery,
            created_by_user_id=user_id,
            created_at=now,
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            db.session.add(PurchaseOrderItem(
                purchase_order_id=order.id,
                product_id=line["product_id"],
                quantity_ordered=line["quantity"],
                quantity_received=0,
                unit_cost_cents=line["unit_cost_cents"],
                total_cost_cents=line["quantity"] * line["unit_cost_cents"],
            ))
        db.session.flush()
        return order

    return run_in_transaction(_op)


def _received_quantities(order: PurchaseOrder, received) -> dict[int, int]:
    """
    Map item id -> quantity received.

    received maps item ids (as strings or ints) to quantities; items not
    listed default to the ordered quantity.
    """
    received = received or {}
    if not isinstance(received, dict):
        raise ValidationError("received must be an object mapping item id to quantity")

    by_key = {}
    for key, value in received.items():
        by_key[coerce_int(key, "received key")] = coerce_int(value, "received quantity")

    quantities = {}
    for item in order.items:
        qty = by_key.get(item.id, item.quantity_ordered)
        if qty < 0 or qty > item.quantity_ordered:
            raise ValidationError(
                f"Received quantity for item {item.id} must be between 0 and {item.quantity_ordered}"
            )
        quantities[item.id] = qty
    return quantities


def update_status(
    order_id: int,
    *,
    status=None,
    paid_amount=None,
    received=None,
    user_id: int | None = None,
) -> PurchaseOrder:
    """
    Move an order through its lifecycle and/or record how much was paid.

    Receiving credits stock and writes one STOCK_IN movement per line with a
    positive received quantity. Asking for the status an order already has
    changes nothing on the stock side; paid amount updates still apply.
    """
    target = parse_choice(status, "status", PURCHASE_ORDER_STATUSES) if status not in (None, "") else None
    paid = parse_amount(paid_amount, "paid_amount_cents") if paid_amount not in (None, "") else None
    if target is None and paid is None:
        raise ValidationError("status or paid_amount_cents is required")

    def _op():
        order = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("Purchase order not found")

        received_now = False
        if target and target != order.status:
            if not can_transition(order.status, target):
                raise ConflictError(f"Cannot change purchase order from {order.status} to {target}")

            now = utcnow()
            if target == "RECEIVED":
                quantities = _received_quantities(order, received)
                for item in order.items:
                    qty = quantities[item.id]
                    item.quantity_received = qty
                    if qty > 0:
                        apply_stock_delta(
                            product_id=item.product_id,
                            delta=qty,
                            movement_type="STOCK_IN",
                            reference=order.order_number,
                            reason="Purchase Order Received",
                            user_id=user_id,
                        )
                order.received_at = now
                received_now = True
            elif target == "ORDERED":
                order.ordered_at = now
            elif target == "CANCELLED":
                order.cancelled_at = now
            order.status = target

        if paid is not None:
            if paid > order.total_amount_cents:
                raise ValidationError(
                    f"paid_amount_cents cannot exceed the order total ({order.total_amount_cents})"
                )
            order.paid_amount_cents = paid

        db.session.flush()
        return order, received_now

    order, received_now = run_in_transaction(_op)
    if received_now:
        current_app.logger.info("Purchase order received: %s", order.order_number)
    return order


def delete_purchase_order(order_id: int) -> None:
    def _op():
        order = db.session.get(PurchaseOrder, order_id)
        if not order:
            raise NotFoundError("Purchase order not found")
        if order.status != "PENDING":
            raise ConflictError(f"Only PENDING purchase orders can be deleted (status is {order.status})")
        db.session.delete(order)

    run_in_transaction(_op)


def get_purchase_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if not order:
        raise NotFoundError("Purchase order not found")
    return order


def list_purchase_orders(*, status: str | None = None) -> list[PurchaseOrder]:
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == parse_choice(status, "status", PURCHASE_ORDER_STATUSES))
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()
