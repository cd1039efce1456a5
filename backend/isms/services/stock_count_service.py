# Overview: Service-layer operations for physical stock counts.

"""
Stock Counts

WHY: A count snapshots system quantities when it is opened; staff record
what they physically find; completion books the difference through the
stock ledger as ADJUSTMENT movements.

The adjustment is counted - current stock (not counted - snapshot), so
sales made while the count was open are not undone.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, StockCount, StockCountItem
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_int
from isms.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_document_number
from .stock_service import apply_stock_delta


def create_count(payload: dict, *, user_id: int | None = None) -> StockCount:
    """
    Open a count. product_ids limits it to those products; omitted means
    every non-faulty product.
    """
    payload = payload or {}
    raw_ids = payload.get("product_ids", payload.get("productIds"))
    if raw_ids is not None and not isinstance(raw_ids, list):
        raise ValidationError("product_ids must be a list")
    product_ids = [coerce_int(pid, "product_ids") for pid in raw_ids] if raw_ids else None
    notes = (str(payload.get("notes") or "").strip()) or None

    def _op():
        query = db.session.query(Product)
        if product_ids is not None:
            query = query.filter(Product.id.in_(set(product_ids)))
        else:
            query = query.filter(Product.is_faulty.is_(False))
        products = query.order_by(Product.name.asc()).all()

        if product_ids is not None:
            missing = sorted(set(product_ids) - {p.id for p in products})
            if missing:
                raise NotFoundError(f"Product(s) not found: {', '.join(str(m) for m in missing)}")

        now = utcnow()
        count = StockCount(
            count_number=next_document_number(document_type="STOCK_COUNT", now=now),
            status="IN_PROGRESS",
            notes=notes,
            created_by_user_id=user_id,
            started_at=now,
        )
        db.session.add(count)
        db.session.flush()

        for product in products:
            db.session.add(StockCountItem(
                stock_count_id=count.id,
                product_id=product.id,
                system_qty=product.stock_quantity,
            ))
        db.session.flush()
        return count

    return run_in_transaction(_op)


def _load_open(count_id: int) -> StockCount:
    count = lock_for_update(db.session.query(StockCount).filter_by(id=count_id)).first()
    if not count:
        raise NotFoundError("Stock count not found")
    if count.status != "IN_PROGRESS":
        raise ConflictError(f"Stock count is already {count.status}")
    return count


def record_counts(count_id: int, entries) -> StockCount:
    """
    entries: [{id (item id), counted_qty, notes?}]. counted_qty None clears
    the entry. variance = counted - system snapshot.
    """
    if not isinstance(entries, list):
        raise ValidationError("items must be a list")

    def _op():
        count = _load_open(count_id)
        items = {item.id: item for item in count.items}
        for idx, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ValidationError(f"items[{idx}] must be an object")
            item = items.get(coerce_int(entry.get("id"), f"items[{idx}].id"))
            if item is None:
                raise NotFoundError(f"Stock count item {entry.get('id')} not found in this count")

            raw = entry.get("counted_qty", entry.get("countedQty"))
            if raw is None:
                item.counted_qty = None
                item.variance = None
            else:
                counted = coerce_int(raw, f"items[{idx}].counted_qty")
                if counted < 0:
                    raise ValidationError(f"items[{idx}].counted_qty must be >= 0")
                item.counted_qty = counted
                item.variance = counted - item.system_qty
            if "notes" in entry:
                item.notes = (str(entry.get("notes") or "").strip()[:255]) or None
        db.session.flush()
        return count

    return run_in_transaction(_op)


def complete_count(count_id: int, *, user_id: int | None = None) -> StockCount:
    """Apply ADJUSTMENT movements for every counted item and close the count."""
    def _op():
        count = _load_open(count_id)
        for item in count.items:
            if item.counted_qty is None:
                continue
            product = db.session.get(Product, item.product_id)
            delta = item.counted_qty - product.stock_quantity
            if delta:
                apply_stock_delta(
                    product_id=item.product_id,
                    delta=delta,
                    movement_type="ADJUSTMENT",
                    reference=count.count_number,
                    reason="Stock count adjustment",
                    user_id=user_id,
                )
        count.status = "COMPLETED"
        count.completed_at = utcnow()
        db.session.flush()
        return count

    count = run_in_transaction(_op)
    current_app.logger.info("Stock count completed: %s", count.count_number)
    return count


def cancel_count(count_id: int) -> StockCount:
    def _op():
        count = _load_open(count_id)
        count.status = "CANCELLED"
        count.completed_at = utcnow()
        db.session.flush()
        return count

    return run_in_transaction(_op)


def delete_count(count_id: int) -> None:
    """Completed counts are part of the stock audit trail and are kept."""
    def _op():
        count = db.session.get(StockCount, count_id)
        if not count:
            raise NotFoundError("Stock count not found")
        if count.status == "COMPLETED":
            raise ConflictError("Completed stock counts cannot be deleted")
        db.session.delete(count)

    run_in_transaction(_op)


def get_count(count_id: int) -> StockCount:
    count = db.session.get(StockCount, count_id)
    if not count:
        raise NotFoundError("Stock count not found")
    return count


def list_counts(*, status: str | None = None) -> list[StockCount]:
    query = db.session.query(StockCount)
    if status:
        query = query.filter(StockCount.status == status.strip().upper())
    return query.order_by(StockCount.started_at.desc(), StockCount.id.desc()).all()
