# Overview: Stock ledger; the single place product stock is mutated.

"""
Stock Ledger

WHY: Every change to Product.stock_quantity is paired with a StockMovement
row, so the cached counter can always be explained by its audit trail.

CONCURRENCY: The change is one relational UPDATE
(stock_quantity = stock_quantity + delta), never read-modify-write in
Python, so concurrent checkouts cannot lose updates. Decrements carry a
guard (stock_quantity >= -delta) unless ALLOW_NEGATIVE_STOCK is set.

Nothing here commits. Callers run inside run_in_transaction.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import MOVEMENT_TYPES
from ..validation import InsufficientStockError, NotFoundError, ValidationError, coerce_int
from isms.time_utils import utcnow
from .concurrency import run_in_transaction


def _allow_negative() -> bool:
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", False))


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def apply_stock_delta(
    *,
    product_id: int,
    delta: int,
    movement_type: str,
    reference: str | None = None,
    reason: str | None = None,
    quantity: int | None = None,
    user_id: int | None = None,
) -> StockMovement:
    """
    Apply a signed stock change and append its movement row.

    quantity defaults to abs(delta). Audit-only movements pass delta=0 with
    an explicit quantity (e.g. RETURN_FAULTY).
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type: {movement_type}")

    product = get_product(product_id)

    if delta:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + delta)
            .execution_options(synchronize_session=False)
        )
        if delta < 0 and not _allow_negative():
            stmt = stmt.where(Product.stock_quantity >= -delta)

        result = db.session.execute(stmt)
        if not result.rowcount:
            db.session.refresh(product)
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}",
                details={"items": [{
                    "product_id": product.id,
                    "requested_quantity": -delta,
                    "on_hand": product.stock_quantity,
                }]},
            )
        db.session.refresh(product)

    movement = StockMovement(
        product_id=product_id,
        type=movement_type,
        quantity=quantity if quantity is not None else abs(delta),
        stock_delta=delta,
        reference=reference,
        reason=reason,
        created_by_user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def validate_on_hand(requested: dict[int, int]) -> None:
    """
    Check several decrements up front so the error lists every short line,
    not just the first one the ledger trips over.
    """
    if _allow_negative():
        return

    insufficient = []
    for product_id, qty in requested.items():
        product = get_product(product_id)
        if product.stock_quantity < qty:
            insufficient.append({
                "product_id": product_id,
                "product_name": product.name,
                "requested_quantity": qty,
                "on_hand": product.stock_quantity,
            })

    if insufficient:
        raise InsufficientStockError("Insufficient stock", details={"items": insufficient})


def adjust_stock(*, product_id, delta, reason: str | None = None, user_id: int | None = None) -> StockMovement:
    """Manual ADJUSTMENT (damage write-off, found units, corrections)."""
    product_id = coerce_int(product_id, "product_id")
    delta = coerce_int(delta, "delta")
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required")

    def _op():
        return apply_stock_delta(
            product_id=product_id,
            delta=delta,
            movement_type="ADJUSTMENT",
            reference="MANUAL",
            reason=str(reason).strip(),
            user_id=user_id,
        )

    movement = run_in_transaction(_op)
    current_app.logger.info("Stock adjusted: product=%s delta=%s", product_id, delta)
    return movement


def list_movements(*, product_id: int | None = None, movement_type: str | None = None, limit: int = 200) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type:
        query = query.filter(StockMovement.type == movement_type)
    return query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()
