from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


class ShopSettings(db.Model):
    """
    Shop-wide settings. Exactly one row is expected.

    Read and written only through SettingsService.
    """
    __tablename__ = "shop_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    business_name = db.Column(db.String(255), nullable=False, default="My Shop")
    business_phone = db.Column(db.String(32), nullable=True)
    business_email = db.Column(db.String(255), nullable=True)
    business_address = db.Column(db.Text, nullable=True)

    currency = db.Column(db.String(8), nullable=False, default="TZS")
    currency_symbol = db.Column(db.String(8), nullable=False, default="TSh")
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    low_stock_alert = db.Column(db.Boolean, nullable=False, default=True)
    expiry_alert = db.Column(db.Boolean, nullable=False, default=True)
    expiry_alert_days = db.Column(db.Integer, nullable=False, default=30)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "business_phone": self.business_phone,
            "business_email": self.business_email,
            "business_address": self.business_address,
            "currency": self.currency,
            "currency_symbol": self.currency_symbol,
            "tax_rate_bps": self.tax_rate_bps,
            "low_stock_alert": self.low_stock_alert,
            "expiry_alert": self.expiry_alert,
            "expiry_alert_days": self.expiry_alert_days,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
