from __future__ import annotations
from datetime import datetime
from isms.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any single money field (in the smallest currency unit).
# Prevents database overflow and nonsensical amounts from typos.
MAX_AMOUNT_CENTS = 99_999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class EmptyCartError(ValidationError):
    """A sale was submitted without items."""


class InsufficientPaymentError(ValidationError):
    """Cash tendered does not cover the sale total."""


class InsufficientStockError(ValidationError):
    """A decrement would take a product's stock below zero."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level: referenced row does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU, illegal status transition)."""


class PersistenceError(RuntimeError):
    """500-level: the store rejected or failed a write."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may set, and which must be sent on create."""
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {col.key: col for col in model.__mapper__.columns}


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Accepts ints, digit strings and integral floats (20000.0). Rejects
    booleans, fractional floats, scientific notation and decimal strings so
    that money never silently loses precision.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Integral floats are accepted (JSON clients often send 20000.0)
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_amount(value: Any, field: str, *, default: int | None = 0, allow_negative: bool = False) -> int:
    """Parse a money amount in the smallest currency unit."""
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    amount = coerce_int(value, field)
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if abs(amount) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return amount


def parse_quantity(value: Any, field: str = "quantity") -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    qty = coerce_int(value, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    return qty


def parse_choice(value: Any, field: str, choices, *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    normalized = str(value).strip().upper()
    if normalized not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(choices))}")
    return normalized


_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _to_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _to_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a datetime")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    return parsed


def _to_text(value: Any, field: str) -> str:
    return str(value).strip()


_COERCERS = (
    (Boolean, _to_bool),
    (Integer, coerce_int),
    (DateTime, _to_datetime),
    ((String, Text), _to_text),
)


def _coerce_column(col, value: Any):
    for coltype, coerce in _COERCERS:
        if isinstance(col.type, coltype):
            return coerce(value, col.key)
    return value


def _check_text(col, value: str) -> None:
    if value == "" and not col.nullable:
        raise ValidationError(f"{col.key} cannot be blank")
    limit = getattr(col.type, "length", None)
    if limit and len(value) > limit:
        raise ValidationError(f"{col.key} exceeds max length {limit}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean a create/update body for ``model``.

    Only policy.writable_fields may appear. On create (partial=False) every
    policy.required_on_create field must be present. Values are coerced by
    column type, and nullability and String(n) length are checked against the
    column. Returns the cleaned patch.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = _columns_by_key(model)
    rejected = sorted(k for k in payload if k not in policy.writable_fields or k not in columns)
    if rejected:
        raise ValidationError(f"Field not allowed: {', '.join(rejected)}")

    patch: dict = {}
    for key, raw in payload.items():
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue
        value = _coerce_column(col, raw)
        if isinstance(value, str):
            _check_text(col, value)
        patch[key] = value
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("purchase_cost_cents", "selling_price_cents", "wholesale_price_cents"):
        value = patch.get(field)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value > MAX_AMOUNT_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")

    for field in ("low_stock_threshold", "reorder_point"):
        value = patch.get(field)
        if value is not None and value < 0:
            raise ValidationError(f"{field} must be >= 0")

    tax = patch.get("tax_rate_bps")
    if tax is not None and not 0 <= tax <= 10_000:
        raise ValidationError("tax_rate_bps must be between 0 and 10000")

    if patch.get("has_expiry") is False:
        patch["expiry_date"] = None
