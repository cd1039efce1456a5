from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-day document sequences.

    WHY: Receipt, return, purchase order and count numbers must be unique
    under concurrent requests. period is the YYYYMMDD day the number
    belongs to, so numbering restarts every day.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "period": self.period,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
