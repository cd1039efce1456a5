from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


class Expense(db.Model):
    """Operating expense. Category is a free-form label used for grouping."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_category_date", "category", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(64), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "reference": self.reference,
            "expense_date": to_utc_z(self.expense_date),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
