# Overview: Service-layer operations for returns; encapsulates business logic and database work.

"""
Return / Replacement Engine

WHY: A return moves money (refund, replacement difference, repair cost)
and stock (resellable units back on the shelf, replacement units off it)
at the same time. Both are written in one transaction.

PER LINE:
- original value defaults to the returned product's selling price * qty
- REPLACEMENT: replacement value = replacement selling price * qty;
  difference = |replacement - original|, paid by CLIENT when the
  replacement is dearer and by BUSINESS when it is cheaper
- status RESELLABLE: returned units go back into stock
- status FAULTY / DISCARDED: product flagged faulty, audit-only movement
- status PENDING: no stock effect until resolved via update_item_status

RECORD:
- total_refund = refunds on REFUND lines + BUSINESS-paid differences
- total_top_up = CLIENT-paid differences
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Return, ReturnItem, Supplier
from ..models.returns import AWARD_TYPES, RETURN_ITEM_STATUSES
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    parse_amount,
    parse_choice,
    parse_quantity,
)
from isms.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_document_number
from .stock_service import apply_stock_delta


FAULTY_STATUSES = {"FAULTY", "DISCARDED"}


def compute_replacement_difference(original_value_cents: int, replacement_value_cents: int) -> tuple[int, str]:
    """
    Return (price_difference, paid_by).

    price_difference is a magnitude. paid_by is CLIENT when the replacement
    is worth more than the original, BUSINESS when it is worth less, and
    CLIENT (with a zero difference) when they are equal.
    """
    diff = replacement_value_cents - original_value_cents
    if diff < 0:
        return -diff, "BUSINESS"
    return diff, "CLIENT"


def summarize_return_totals(lines) -> tuple[int, int]:
    """
    Return (total_refund, total_top_up) for a set of return lines.

    lines are ReturnItem-like objects with awarded_type, refund_amount_cents,
    price_difference_cents and difference_paid_by.
    """
    total_refund = 0
    total_top_up = 0
    for line in lines:
        if line.awarded_type == "REFUND":
            total_refund += line.refund_amount_cents or 0
        if line.price_difference_cents:
            if line.difference_paid_by == "BUSINESS":
                total_refund += line.price_difference_cents
            else:
                total_top_up += line.price_difference_cents
    return total_refund, total_top_up


def _get_product(product_id: int, label: str) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"{label} {product_id} not found")
    return product


def _parse_line(idx: int, raw) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{idx}] must be an object")

    product_id = raw.get("product_id", raw.get("productId"))
    if product_id is None:
        raise ValidationError(f"items[{idx}].product_id is required")

    replacement_id = raw.get("replacement_product_id", raw.get("replacementProductId"))
    supplier_id = raw.get("supplier_id", raw.get("supplierId"))
    original_value = raw.get("original_product_value_cents", raw.get("originalProductValue"))

    line = {
        "product_id": parse_quantity(product_id, f"items[{idx}].product_id"),
        "quantity": parse_quantity(raw.get("quantity"), f"items[{idx}].quantity"),
        "status": parse_choice(raw.get("status"), f"items[{idx}].status", RETURN_ITEM_STATUSES, default="PENDING"),
        "awarded_type": parse_choice(
            raw.get("awarded_type", raw.get("awardedType")), f"items[{idx}].awarded_type", AWARD_TYPES, default="REFUND"
        ),
        "refund_amount_cents": parse_amount(raw.get("refund_amount_cents", raw.get("refundAmount")), f"items[{idx}].refund_amount_cents"),
        "awarded_amount_cents": parse_amount(raw.get("awarded_amount_cents", raw.get("awardedAmount")), f"items[{idx}].awarded_amount_cents"),
        "repair_cost_cents": parse_amount(raw.get("repair_cost_cents", raw.get("repairCost")), f"items[{idx}].repair_cost_cents"),
        "original_product_value_cents": (
            parse_amount(original_value, f"items[{idx}].original_product_value_cents") if original_value not in (None, "") else None
        ),
        "replacement_product_id": (
            parse_quantity(replacement_id, f"items[{idx}].replacement_product_id") if replacement_id else None
        ),
        "supplier_id": parse_quantity(supplier_id, f"items[{idx}].supplier_id") if supplier_id else None,
        "reason": (str(raw.get("reason") or "").strip()[:255]) or None,
        "notes": (str(raw.get("notes") or "").strip()[:255]) or None,
    }

    if line["awarded_type"] == "REPLACEMENT" and not line["replacement_product_id"]:
        raise ValidationError(f"items[{idx}].replacement_product_id is required for REPLACEMENT")
    return line


def _build_item(line: dict) -> ReturnItem:
    product = _get_product(line["product_id"], "Product")
    qty = line["quantity"]

    original_value = line["original_product_value_cents"]
    if original_value is None:
        original_value = (product.selling_price_cents or 0) * qty

    item = ReturnItem(
        product_id=product.id,
        quantity=qty,
        reason=line["reason"],
        status=line["status"],
        refund_amount_cents=line["refund_amount_cents"],
        awarded_type=line["awarded_type"],
        awarded_amount_cents=line["awarded_amount_cents"],
        repair_cost_cents=line["repair_cost_cents"],
        original_product_value_cents=original_value,
        price_difference_cents=0,
        difference_paid_by="CLIENT",
        supplier_id=line["supplier_id"],
        notes=line["notes"],
    )

    if line["supplier_id"] and not db.session.get(Supplier, line["supplier_id"]):
        raise NotFoundError(f"Supplier {line['supplier_id']} not found")

    if line["awarded_type"] == "REPLACEMENT":
        replacement = _get_product(line["replacement_product_id"], "Replacement product")
        replacement_value = (replacement.selling_price_cents or 0) * qty
        diff, paid_by = compute_replacement_difference(original_value, replacement_value)
        item.replacement_product_id = replacement.id
        item.replacement_product_name = replacement.name
        item.replacement_value_cents = replacement_value
        item.price_difference_cents = diff
        item.difference_paid_by = paid_by

    return item


def _apply_disposition(item: ReturnItem, reference: str, user_id: int | None) -> None:
    """Stock/flag effects of a resolved (non-PENDING) status."""
    if item.status == "RESELLABLE":
        apply_stock_delta(
            product_id=item.product_id,
            delta=item.quantity,
            movement_type="RETURN_RESELLABLE",
            reference=reference,
            reason=item.reason or "Returned resellable",
            user_id=user_id,
        )
    elif item.status in FAULTY_STATUSES:
        product = _get_product(item.product_id, "Product")
        product.is_faulty = True
        apply_stock_delta(
            product_id=item.product_id,
            delta=0,
            quantity=item.quantity,
            movement_type="RETURN_FAULTY",
            reference=reference,
            reason=f"Returned {item.status.lower()}",
            user_id=user_id,
        )


def create_return(payload: dict, *, user_id: int | None = None) -> Return:
    """
    Process a return with all of its money and stock effects.

    Payload: {reason, items[...], idempotency_key?}. A repeated
    idempotency_key returns the stored return without re-applying effects.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_items = payload.get("items")
    if not raw_items or not isinstance(raw_items, list):
        raise ValidationError("No items to return")
    lines = [_parse_line(idx, raw) for idx, raw in enumerate(raw_items)]

    reason = str(payload.get("reason") or "").strip()
    if not reason:
        raise ValidationError("reason is required")
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")

    idempotency_key = str(payload.get("idempotency_key") or "").strip()[:128] or None

    def _op():
        if idempotency_key:
            existing = db.session.query(Return).filter_by(idempotency_key=idempotency_key).first()
            if existing:
                return existing, False

        now = utcnow()
        items = [_build_item(line) for line in lines]
        total_refund, total_top_up = summarize_return_totals(items)

        return_doc = Return(
            return_number=next_document_number(document_type="RETURN", now=now),
            idempotency_key=idempotency_key,
            reason=reason,
            total_refund_cents=total_refund,
            total_top_up_cents=total_top_up,
            processed_by_user_id=user_id,
            created_at=now,
        )
        db.session.add(return_doc)
        db.session.flush()

        for item in items:
            item.return_id = return_doc.id
            item.created_at = now
            db.session.add(item)
            _apply_disposition(item, return_doc.return_number, user_id)

            if item.awarded_type == "REPLACEMENT":
                apply_stock_delta(
                    product_id=item.replacement_product_id,
                    delta=-item.quantity,
                    movement_type="STOCK_OUT",
                    reference=return_doc.return_number,
                    reason=f"Replacement issued for return {return_doc.return_number}",
                    user_id=user_id,
                )

        db.session.flush()
        return return_doc, True

    return_doc, created = run_in_transaction(_op)
    if created:
        current_app.logger.info(
            "Return processed: %s refund=%s top_up=%s",
            return_doc.return_number, return_doc.total_refund_cents, return_doc.total_top_up_cents,
        )
    return return_doc


def update_item_status(item_id: int, status, *, user_id: int | None = None) -> ReturnItem:
    """
    Resolve a PENDING return line to RESELLABLE, FAULTY or DISCARDED.

    Setting the status a line already has is a no-op. Resolved lines cannot
    be changed again; that would double-apply stock effects.
    """
    new_status = parse_choice(status, "status", RETURN_ITEM_STATUSES - {"PENDING"})

    def _op():
        item = lock_for_update(db.session.query(ReturnItem).filter_by(id=item_id)).first()
        if not item:
            raise NotFoundError("Return item not found")
        if item.status == new_status:
            return item
        if item.status != "PENDING":
            raise ConflictError(f"Return item is already {item.status}")

        item.status = new_status
        _apply_disposition(item, item.return_doc.return_number, user_id)
        db.session.flush()
        return item

    return run_in_transaction(_op)


def delete_return(return_id: int) -> None:
    """Allowed only while nothing has touched stock: every line PENDING and no replacement issued."""
    def _op():
        return_doc = db.session.get(Return, return_id)
        if not return_doc:
            raise NotFoundError("Return not found")
        for item in return_doc.items:
            if item.status != "PENDING" or item.awarded_type == "REPLACEMENT":
                raise ConflictError("Return has stock effects applied and cannot be deleted")
        db.session.delete(return_doc)

    run_in_transaction(_op)


def get_return(return_id: int) -> Return:
    return_doc = db.session.get(Return, return_id)
    if not return_doc:
        raise NotFoundError("Return not found")
    return return_doc


def list_returns(limit: int = 200) -> list[Return]:
    return db.session.query(Return).order_by(Return.created_at.desc(), Return.id.desc()).limit(limit).all()


def saleable_products() -> list[Product]:
    """Products that can be handed out as replacements: in stock and not faulty."""
    return (
        db.session.query(Product)
        .filter(Product.stock_quantity > 0, Product.is_faulty.is_(False))
        .order_by(Product.name.asc())
        .all()
    )
