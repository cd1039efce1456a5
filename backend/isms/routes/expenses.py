# Overview: Flask API routes for expenses operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..permissions import Action
from ..services import expense_service
from ..decorators import require_auth, require_permission
from .errors import json_error


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@require_permission("expenses", Action.READ)
def list_expenses():
    """
    Query params:
    - category
    - start_date, end_date: ISO-8601
    """
    try:
        expenses, total = expense_service.list_expenses(
            category=request.args.get("category"),
            start=request.args.get("start_date"),
            end=request.args.get("end_date"),
        )
        return jsonify({
            "expenses": [e.to_dict() for e in expenses],
            "count": len(expenses),
            "total_cents": total,
        })
    except Exception as exc:
        return json_error(exc, "list expenses")


@expenses_bp.post("")
@require_auth
@require_permission("expenses", Action.WRITE)
def create_expense():
    """
    Request body:
    {"category": "Rent", "amount_cents": 20000, "description": "...", "reference": "...", "date": "2026-01-01"}
    """
    try:
        expense = expense_service.create_expense(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"expense": expense.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create expense")


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_permission("expenses", Action.READ)
def get_expense(expense_id: int):
    try:
        return jsonify({"expense": expense_service.get_expense(expense_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "load expense")


@expenses_bp.put("/<int:expense_id>")
@require_auth
@require_permission("expenses", Action.WRITE)
def update_expense(expense_id: int):
    try:
        expense = expense_service.update_expense(expense_id, request.get_json(silent=True))
        return jsonify({"expense": expense.to_dict()})
    except Exception as exc:
        return json_error(exc, "update expense")


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_permission("expenses", Action.DELETE)
def delete_expense(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
        return jsonify({"ok": True})
    except Exception as exc:
        return json_error(exc, "delete expense")
