# Overview: Service-layer operations for document numbers; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from isms.time_utils import utcnow


# document_type -> number prefix
DOCUMENT_PREFIXES = {
    "SALE": "RCP",
    "RETURN": "RET",
    "PURCHASE_ORDER": "PO",
    "STOCK_COUNT": "CNT",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_number(document_type: str, period: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )


def next_document_number(*, document_type: str, pad: int = 4, now=None) -> str:
    """
    Atomically allocate the next document number for a type and day.

    Format: <PREFIX>-<YYYYMMDD>-<seq>, e.g. RCP-20240315-0007.

    The increment is a single relational UPDATE so concurrent callers never
    see the same number. Runs inside the caller's transaction (flush only).
    """
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if not prefix:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    period = (now or utcnow()).strftime("%Y%m%d")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(document_type, period) - 1
    else:
        seq = DocumentSequence(document_type=document_type, period=period, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another request created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(document_type, period) - 1

    return f"{prefix}-{period}-{next_num:0{pad}d}"
