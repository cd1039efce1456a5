# Overview: Dashboard figures and the sales / returns / inventory reports.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Product, Return, Sale, SaleItem
from ..validation import ValidationError
from isms.time_utils import parse_iso_datetime, parse_range_end, start_of_day, utcnow


REPORT_TYPES = {"sales", "returns", "inventory"}
MOVER_WINDOW_DAYS = 30
MOVER_LIMIT = 5


def _line_profit(item: SaleItem) -> int:
    return (item.unit_price_cents - (item.unit_cost_cents or 0)) * item.quantity


def dashboard(now=None) -> dict:
    """
    Shop overview.

    Faulty products are excluded from the product and low-stock counts but
    still valued in inventory, since they are still physically held.
    """
    now = now or utcnow()
    products = db.session.query(Product).order_by(Product.name.asc()).all()

    active = [p for p in products if not p.is_faulty]
    today_sales = (
        db.session.query(Sale)
        .options(joinedload(Sale.items))
        .filter(Sale.created_at >= start_of_day(now))
        .all()
    )

    since = now - timedelta(days=MOVER_WINDOW_DAYS)
    sold_rows = (
        db.session.query(SaleItem.product_id, func.sum(SaleItem.quantity).label("qty"))
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(Sale.created_at >= since)
        .group_by(SaleItem.product_id)
        .order_by(func.sum(SaleItem.quantity).desc(), SaleItem.product_id.asc())
        .all()
    )
    by_id = {p.id: p for p in products}
    fast_movers = []
    for product_id, qty in sold_rows[:MOVER_LIMIT]:
        product = by_id.get(product_id)
        if product:
            fast_movers.append({**product.to_dict(), "quantity_sold": int(qty)})

    sold_ids = {row[0] for row in sold_rows}
    slow_movers = [p.to_dict() for p in active if p.id not in sold_ids][:MOVER_LIMIT]

    return {
        "total_products": len(active),
        "low_stock_count": sum(1 for p in active if p.is_low_stock),
        "total_inventory_value_cents": sum(p.selling_price_cents * p.stock_quantity for p in products),
        "today_sales_cents": sum(s.total_cents for s in today_sales),
        "today_profit_cents": sum(_line_profit(i) for s in today_sales for i in s.items),
        "today_sales_count": len(today_sales),
        "fast_moving_items": fast_movers,
        "slow_moving_items": slow_movers,
    }


def _date_bounds(start, end):
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_range_end(end) if end else None
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 dates")
    return start_dt, end_dt


def sales_report(*, start=None, end=None, category_id=None, product_id=None) -> dict:
    start_dt, end_dt = _date_bounds(start, end)
    query = db.session.query(Sale).options(joinedload(Sale.items).joinedload(SaleItem.product))
    if start_dt:
        query = query.filter(Sale.created_at >= start_dt)
    if end_dt:
        query = query.filter(Sale.created_at <= end_dt)
    sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    if category_id is not None:
        sales = [s for s in sales if any(i.product and i.product.category_id == category_id for i in s.items)]
    if product_id is not None:
        sales = [s for s in sales if any(i.product_id == product_id for i in s.items)]

    daily: dict[str, dict] = {}
    for sale in sales:
        day = sale.created_at.strftime("%Y-%m-%d")
        row = daily.setdefault(day, {"date": day, "revenue_cents": 0, "profit_cents": 0, "quantity": 0})
        row["revenue_cents"] += sale.total_cents
        row["profit_cents"] += sum(_line_profit(i) for i in sale.items)
        row["quantity"] += sum(i.quantity for i in sale.items)

    return {
        "type": "sales",
        "sales": [s.to_dict() for s in sales],
        "total_revenue_cents": sum(s.total_cents for s in sales),
        "total_profit_cents": sum(_line_profit(i) for s in sales for i in s.items),
        "total_discount_cents": sum(s.discount_cents for s in sales),
        "items_sold": sum(i.quantity for s in sales for i in s.items),
        "daily_sales": [daily[d] for d in sorted(daily)],
    }


def returns_report(*, start=None, end=None) -> dict:
    start_dt, end_dt = _date_bounds(start, end)
    query = db.session.query(Return)
    if start_dt:
        query = query.filter(Return.created_at >= start_dt)
    if end_dt:
        query = query.filter(Return.created_at <= end_dt)
    returns = query.order_by(Return.created_at.desc(), Return.id.desc()).all()

    items = [i for r in returns for i in r.items]
    faulty = [i for i in items if i.status in {"FAULTY", "DISCARDED"}]
    return {
        "type": "returns",
        "returns": [r.to_dict() for r in returns],
        "total_refunds_cents": sum(i.refund_amount_cents for i in items),
        "faulty_loss_cents": sum(i.refund_amount_cents for i in faulty),
        "faulty_units": sum(i.quantity for i in faulty),
    }


def inventory_report(*, category_id=None, product_id=None) -> dict:
    query = db.session.query(Product)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if product_id is not None:
        query = query.filter(Product.id == product_id)
    products = query.order_by(Product.name.asc()).all()

    value = sum(p.selling_price_cents * p.stock_quantity for p in products)
    cost = sum(p.purchase_cost_cents * p.stock_quantity for p in products)
    return {
        "type": "inventory",
        "products": [p.to_dict() for p in products],
        "total_value_cents": value,
        "total_cost_cents": cost,
        "total_profit_cents": value - cost,
    }


def build_report(report_type: str, **filters) -> dict:
    report_type = (report_type or "sales").strip().lower()
    if report_type not in REPORT_TYPES:
        raise ValidationError("Invalid report type")
    if report_type == "sales":
        return sales_report(**filters)
    if report_type == "returns":
        return returns_report(start=filters.get("start"), end=filters.get("end"))
    return inventory_report(category_id=filters.get("category_id"), product_id=filters.get("product_id"))
