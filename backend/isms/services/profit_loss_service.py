# Overview: Profit & loss aggregation over sales, expenses, returns and purchase orders.

"""
Profit & Loss

WHY: No running balance is stored. Every report is recomputed from the raw
rows inside the period, so it can never drift from the records.

FORMULAS (all integer cents):
    revenue           = sum(unit_price * qty) over sale items
    cost              = sum(unit_cost * qty), unit cost snapshotted at sale time
    profit            = revenue - cost
    return_loss       = refunds + repair costs + BUSINESS-paid differences
    return_profit     = CLIENT-paid differences (top-ups)
    net_profit        = profit - expenses - return_loss + return_profit

Store credits are reported but not netted. Purchase order spend is
informational only; the cost of goods already counts what was sold.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Expense, PurchaseOrder, ReturnItem, Sale, SaleItem
from ..validation import ValidationError
from isms.time_utils import start_of_day, to_utc_z, utcnow


PERIOD_DAYS = {
    "7days": 7,
    "30days": 30,
    "3months": 90,
    "6months": 180,
    "12months": 365,
}
PERIODS = {"today", "all", *PERIOD_DAYS}

RETURN_BREAKDOWN_LABELS = {
    "REFUND": ("Cash Refund", True),
    "REPAIR": ("Repair Costs", True),
    "STORE_CREDIT": ("Store Credit", True),
    "PRICE_DIFF_BUSINESS": ("Price Diff (Business Paid)", True),
    "TOP_UP": ("Top-Up (Customer Paid)", False),
}


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    """Start of the reporting window, or None for "all"."""
    if period not in PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(sorted(PERIODS))}")
    now = now or utcnow()
    if period == "all":
        return None
    if period == "today":
        return start_of_day(now)
    return now - timedelta(days=PERIOD_DAYS[period])


def summarize_sales(sale_items) -> dict:
    """sale_items: SaleItem-like rows with product_id, quantity, unit_price_cents, unit_cost_cents, product."""
    revenue = cost = discounts = 0
    products: dict[int, dict] = {}

    for item in sale_items:
        item_revenue = item.unit_price_cents * item.quantity
        item_cost = (item.unit_cost_cents or 0) * item.quantity
        revenue += item_revenue
        cost += item_cost
        discounts += item.discount_cents or 0

        row = products.setdefault(item.product_id, {
            "product_id": item.product_id,
            "name": item.product.name if item.product else None,
            "quantity": 0,
            "revenue_cents": 0,
            "cost_cents": 0,
            "profit_cents": 0,
        })
        row["quantity"] += item.quantity
        row["revenue_cents"] += item_revenue
        row["cost_cents"] += item_cost
        row["profit_cents"] += item_revenue - item_cost

    product_list = sorted(products.values(), key=lambda r: (-r["profit_cents"], r["product_id"]))
    return {
        "total_revenue_cents": revenue,
        "total_cost_cents": cost,
        "total_profit_cents": revenue - cost,
        "total_line_discounts_cents": discounts,
        "product_list": product_list,
    }


def summarize_expenses(expenses) -> dict:
    by_category: dict[str, int] = {}
    for exp in expenses:
        by_category[exp.category] = by_category.get(exp.category, 0) + exp.amount_cents
    expense_list = [
        {"category": category, "amount_cents": amount}
        for category, amount in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    return {
        "total_expenses_cents": sum(by_category.values()),
        "expense_list": expense_list,
    }


def summarize_returns(return_items) -> dict:
    refunds = repairs = store_credits = business_paid = top_up = 0
    breakdown: dict[str, dict] = {}

    def _add(key: str, amount: int) -> None:
        label, is_loss = RETURN_BREAKDOWN_LABELS[key]
        row = breakdown.setdefault(key, {"key": key, "type": label, "amount_cents": 0, "count": 0, "is_loss": is_loss})
        row["amount_cents"] += amount
        row["count"] += 1

    for item in return_items:
        refund = item.refund_amount_cents or 0
        repair = item.repair_cost_cents or 0
        diff = item.price_difference_cents or 0

        if refund > 0:
            refunds += refund
            _add("REFUND", refund)
        if repair > 0:
            repairs += repair
            _add("REPAIR", repair)
        if item.awarded_type == "STORE_CREDIT" and item.awarded_amount_cents:
            store_credits += item.awarded_amount_cents
            _add("STORE_CREDIT", item.awarded_amount_cents)
        if diff > 0:
            if item.difference_paid_by == "BUSINESS":
                business_paid += diff
                _add("PRICE_DIFF_BUSINESS", diff)
            else:
                top_up += diff
                _add("TOP_UP", diff)

    return {
        "total_refunds_given_cents": refunds,
        "total_repair_costs_cents": repairs,
        "total_store_credits_cents": store_credits,
        "total_business_paid_differences_cents": business_paid,
        "total_top_up_received_cents": top_up,
        "total_return_loss_cents": refunds + repairs + business_paid,
        "total_return_profit_cents": top_up,
        "return_expenses_list": [breakdown[k] for k in RETURN_BREAKDOWN_LABELS if k in breakdown],
    }


def aggregate(*, sale_items, sales_count: int, expenses, return_items, purchase_orders) -> dict:
    """Combine the pieces into one flat report. Pure; no database access."""
    report = {}
    report.update(summarize_sales(sale_items))
    report.update(summarize_expenses(expenses))
    report.update(summarize_returns(return_items))
    report["total_purchase_cost_cents"] = sum(po.total_amount_cents for po in purchase_orders)
    report["sales_count"] = sales_count
    report["net_profit_cents"] = (
        report["total_profit_cents"]
        - report["total_expenses_cents"]
        - report["total_return_loss_cents"]
        + report["total_return_profit_cents"]
    )
    return report


def profit_and_loss(period: str = "all", *, now: datetime | None = None) -> dict:
    """Load the rows for period and aggregate them."""
    period = (period or "all").strip().lower()
    start = period_start(period, now)

    sales_q = db.session.query(Sale)
    items_q = (
        db.session.query(SaleItem)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .options(joinedload(SaleItem.product))
    )
    expenses_q = db.session.query(Expense)
    returns_q = db.session.query(ReturnItem)
    po_q = db.session.query(PurchaseOrder).filter(PurchaseOrder.status == "RECEIVED")

    if start is not None:
        sales_q = sales_q.filter(Sale.created_at >= start)
        items_q = items_q.filter(Sale.created_at >= start)
        expenses_q = expenses_q.filter(Expense.expense_date >= start)
        returns_q = returns_q.filter(ReturnItem.created_at >= start)
        po_q = po_q.filter(PurchaseOrder.received_at >= start)

    report = aggregate(
        sale_items=items_q.all(),
        sales_count=sales_q.count(),
        expenses=expenses_q.all(),
        return_items=returns_q.all(),
        purchase_orders=po_q.all(),
    )
    report["period"] = period
    report["period_start"] = to_utc_z(start)
    return report
