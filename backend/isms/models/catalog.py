from __future__ import annotations

from ..extensions import db
from isms.time_utils import to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    Money fields are integers in the smallest currency unit.

    STOCK: stock_quantity is a cached counter, mutated only through
    stock_service.apply_stock_delta, which pairs every change with a
    StockMovement row. Never assign it directly from request handlers.

    FAULTY: is_faulty is raised by the return engine when a returned unit is
    marked FAULTY or DISCARDED. Faulty products stay in stock_quantity but are
    excluded from "active" counts and from the saleable list.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    purchase_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    reorder_point = db.Column(db.Integer, nullable=False, default=20)

    is_faulty = db.Column(db.Boolean, nullable=False, default=False)

    has_expiry = db.Column(db.Boolean, nullable=False, default=False)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Flat tax rate in basis points (1600 = 16%)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    location = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock_quantity}>"

    def price_for(self, sale_type: str) -> int:
        """Wholesale price when selling wholesale and one is set, else the retail price."""
        if sale_type == "WHOLESALE" and self.wholesale_price_cents:
            return self.wholesale_price_cents
        return self.selling_price_cents

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "supplier_id": self.supplier_id,
            "purchase_cost_cents": self.purchase_cost_cents,
            "selling_price_cents": self.selling_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "reorder_point": self.reorder_point,
            "is_low_stock": self.is_low_stock,
            "is_faulty": self.is_faulty,
            "has_expiry": self.has_expiry,
            "expiry_date": to_utc_z(self.expiry_date) if self.expiry_date else None,
            "tax_rate_bps": self.tax_rate_bps,
            "location": self.location,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
