from __future__ import annotations

import re

from ..models import ShopSettings
from ..validation import ValidationError


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_STRING_FIELDS = {
    "business_name": 255,
    "business_phone": 32,
    "business_email": 255,
    "business_address": None,
    "currency": 8,
    "currency_symbol": 8,
}
_BOOL_FIELDS = {"low_stock_alert", "expiry_alert"}
_REQUIRED = {"business_name", "currency", "currency_symbol"}


class SettingsService:
    """
    Explicit load/save over the single shop settings row.

    The session is injected; nothing is cached between calls, so a save is
    visible to the next load on any request.
    """

    def __init__(self, session):
        self.session = session

    def load(self) -> ShopSettings:
        settings = self.session.query(ShopSettings).order_by(ShopSettings.id).first()
        if settings is None:
            settings = ShopSettings()
            self.session.add(settings)
            self.session.flush()
        return settings

    def _clean(self, patch: dict) -> dict:
        if not isinstance(patch, dict):
            raise ValidationError("Invalid JSON payload")

        cleaned = {}
        for key, value in patch.items():
            if key in _STRING_FIELDS:
                text = None if value is None else str(value).strip()
                if key in _REQUIRED and not text:
                    raise ValidationError(f"{key} cannot be blank")
                limit = _STRING_FIELDS[key]
                if text and limit and len(text) > limit:
                    raise ValidationError(f"{key} exceeds max length {limit}")
                if key == "business_email" and text and not EMAIL_RE.match(text):
                    raise ValidationError("business_email is not a valid email address")
                if key == "currency" and text:
                    text = text.upper()
                cleaned[key] = text or None
            elif key in _BOOL_FIELDS:
                if not isinstance(value, bool):
                    raise ValidationError(f"{key} must be a boolean")
                cleaned[key] = value
            elif key == "tax_rate_bps":
                if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 10_000:
                    raise ValidationError("tax_rate_bps must be an integer between 0 and 10000")
                cleaned[key] = value
            elif key == "expiry_alert_days":
                if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 365:
                    raise ValidationError("expiry_alert_days must be an integer between 1 and 365")
                cleaned[key] = value
            else:
                raise ValidationError(f"Field not allowed: {key}")
        return cleaned

    def save(self, patch: dict, *, user_id: int | None = None) -> ShopSettings:
        """Validate and upsert. Flushes; the caller commits."""
        cleaned = self._clean(patch)
        settings = self.load()
        for key, value in cleaned.items():
            setattr(settings, key, value)
        settings.updated_by_user_id = user_id
        self.session.flush()
        return settings
