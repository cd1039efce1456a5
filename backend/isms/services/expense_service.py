from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Expense
from ..validation import NotFoundError, ValidationError, parse_amount
from isms.time_utils import parse_iso_datetime, parse_range_end, utcnow
from .concurrency import run_in_transaction


def _parse_date(value, field: str, *, range_end: bool = False) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        if range_end:
            return parse_range_end(str(value))
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")


def _text(value, field: str, limit: int, *, required: bool) -> str | None:
    text = str(value).strip() if value is not None else ""
    if required and not text:
        raise ValidationError(f"{field} is required")
    if len(text) > limit:
        raise ValidationError(f"{field} exceeds max length {limit}")
    return text or None


def _positive_amount(value) -> int:
    amount = parse_amount(value, "amount_cents", default=None)
    if amount <= 0:
        raise ValidationError("amount_cents must be greater than 0")
    return amount


def create_expense(payload: dict, *, user_id: int | None = None) -> Expense:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    category = _text(payload.get("category"), "category", 64, required=True)
    description = _text(payload.get("description"), "description", 255, required=True)
    reference = _text(payload.get("reference"), "reference", 128, required=False)
    amount = _positive_amount(payload.get("amount_cents", payload.get("amount")))
    expense_date = _parse_date(payload.get("date", payload.get("expense_date")), "date") or utcnow()

    def _op():
        expense = Expense(
            category=category,
            amount_cents=amount,
            description=description,
            reference=reference,
            expense_date=expense_date,
            created_by_user_id=user_id,
            created_at=utcnow(),
        )
        db.session.add(expense)
        db.session.flush()
        return expense

    return run_in_transaction(_op)


def update_expense(expense_id: int, payload: dict) -> Expense:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    patch = {}
    if "category" in payload:
        patch["category"] = _text(payload["category"], "category", 64, required=True)
    if "description" in payload:
        patch["description"] = _text(payload["description"], "description", 255, required=True)
    if "reference" in payload:
        patch["reference"] = _text(payload["reference"], "reference", 128, required=False)
    if "amount_cents" in payload or "amount" in payload:
        patch["amount_cents"] = _positive_amount(payload.get("amount_cents", payload.get("amount")))
    if "date" in payload or "expense_date" in payload:
        parsed = _parse_date(payload.get("date", payload.get("expense_date")), "date")
        if parsed is None:
            raise ValidationError("date cannot be blank")
        patch["expense_date"] = parsed

    def _op():
        expense = get_expense(expense_id)
        for key, value in patch.items():
            setattr(expense, key, value)
        db.session.flush()
        return expense

    return run_in_transaction(_op)


def delete_expense(expense_id: int) -> None:
    def _op():
        db.session.delete(get_expense(expense_id))

    run_in_transaction(_op)


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def list_expenses(*, category: str | None = None, start=None, end=None) -> tuple[list[Expense], int]:
    """Expenses newest first plus the sum of their amounts."""
    query = db.session.query(Expense)
    if category:
        query = query.filter(Expense.category == category)
    start_dt = _parse_date(start, "start_date")
    end_dt = _parse_date(end, "end_date", range_end=True)
    if start_dt:
        query = query.filter(Expense.expense_date >= start_dt)
    if end_dt:
        query = query.filter(Expense.expense_date <= end_dt)

    expenses = query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()
    return expenses, sum(e.amount_cents for e in expenses)
