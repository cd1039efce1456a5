# backend/isms/services/catalog_service.py
"""
Catalog Service: categories, suppliers and products.

Product stock_quantity is not writable here. New products may carry an
opening stock, which is booked through the stock ledger as STOCK_IN.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import (
    Category,
    Product,
    PurchaseOrderItem,
    ReturnItem,
    SaleItem,
    StockCountItem,
    StockMovement,
    Supplier,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import run_in_transaction
from .stock_service import apply_stock_delta


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description", "category_id", "supplier_id",
        "purchase_cost_cents", "selling_price_cents", "wholesale_price_cents",
        "low_stock_threshold", "reorder_point", "has_expiry", "expiry_date",
        "tax_rate_bps", "location",
    },
    required_on_create={"sku", "name", "category_id", "purchase_cost_cents", "selling_price_cents"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "email", "phone", "address", "notes", "is_active"},
    required_on_create={"name"},
)


# =============================================================================
# Categories
# =============================================================================

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)

    def _op():
        if db.session.query(Category).filter(Category.name == patch["name"]).first():
            raise ConflictError(f"Category '{patch['name']}' already exists")
        category = Category(**patch)
        db.session.add(category)
        db.session.flush()
        return category

    return run_in_transaction(_op)


def update_category(category_id: int, payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)

    def _op():
        category = db.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        if "name" in patch:
            clash = db.session.query(Category).filter(
                Category.name == patch["name"], Category.id != category_id
            ).first()
            if clash:
                raise ConflictError(f"Category '{patch['name']}' already exists")
        for key, value in patch.items():
            setattr(category, key, value)
        db.session.flush()
        return category

    return run_in_transaction(_op)


def delete_category(category_id: int) -> None:
    def _op():
        category = db.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        if db.session.query(Product.id).filter(Product.category_id == category_id).first():
            raise ConflictError("Category still has products")
        db.session.delete(category)

    run_in_transaction(_op)


# =============================================================================
# Suppliers
# =============================================================================

def list_suppliers(include_inactive: bool = False) -> list[Supplier]:
    query = db.session.query(Supplier)
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.name.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)

    def _op():
        supplier = Supplier(**patch)
        db.session.add(supplier)
        db.session.flush()
        return supplier

    return run_in_transaction(_op)


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)

    def _op():
        supplier = get_supplier(supplier_id)
        for key, value in patch.items():
            setattr(supplier, key, value)
        db.session.flush()
        return supplier

    return run_in_transaction(_op)


def delete_supplier(supplier_id: int) -> None:
    """Suppliers referenced by products or purchase orders are deactivated instead."""
    def _op():
        supplier = get_supplier(supplier_id)
        if supplier.products or supplier.purchase_orders:
            supplier.is_active = False
            return
        db.session.delete(supplier)

    run_in_transaction(_op)


# =============================================================================
# Products
# =============================================================================

def _check_references(patch: dict) -> None:
    if "category_id" in patch and not db.session.get(Category, patch["category_id"]):
        raise ValidationError("category_id does not reference an existing category")
    if patch.get("supplier_id") is not None and not db.session.get(Supplier, patch["supplier_id"]):
        raise ValidationError("supplier_id does not reference an existing supplier")


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def find_by_barcode(code: str) -> Product:
    code = (code or "").strip()
    product = db.session.query(Product).filter(
        or_(Product.barcode == code, Product.sku == code)
    ).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def list_products(*, search: str | None = None, category_id: int | None = None, low_stock: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(like),
            Product.sku.ilike(like),
            Product.barcode.ilike(like),
        ))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if low_stock:
        query = query.filter(Product.stock_quantity <= Product.low_stock_threshold)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(payload: dict, *, user_id: int | None = None) -> Product:
    """
    Create a product from a client payload.

    An optional "stock_quantity" in the payload is the opening stock and is
    booked as a STOCK_IN movement.

    Raises:
        ValidationError: bad or missing fields
        ConflictError: SKU already exists
    """
    payload = dict(payload or {})
    opening = payload.pop("stock_quantity", None)
    opening = coerce_int(opening, "stock_quantity") if opening not in (None, "") else 0
    if opening < 0:
        raise ValidationError("stock_quantity must be >= 0")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op():
        _check_references(patch)
        if db.session.query(Product.id).filter(Product.sku == patch["sku"]).first():
            raise ConflictError(f"SKU '{patch['sku']}' already exists")

        product = Product(**patch)
        product.stock_quantity = 0
        db.session.add(product)
        db.session.flush()

        if opening:
            apply_stock_delta(
                product_id=product.id,
                delta=opening,
                movement_type="STOCK_IN",
                reference=product.sku,
                reason="Opening stock",
                user_id=user_id,
            )
        return product

    product = run_in_transaction(_op)
    current_app.logger.info("Product created: %s (%s)", product.sku, product.id)
    return product


def update_product(product_id: int, payload: dict) -> Product:
    payload = payload or {}
    if "stock_quantity" in payload:
        raise ValidationError("stock_quantity cannot be edited directly; use a stock adjustment")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    def _op():
        product = get_product(product_id)
        _check_references(patch)
        if "sku" in patch and patch["sku"] != product.sku:
            clash = db.session.query(Product.id).filter(Product.sku == patch["sku"]).first()
            if clash:
                raise ConflictError(f"SKU '{patch['sku']}' already exists")
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.flush()
        return product

    return run_in_transaction(_op)


_REFERENCING = (
    (SaleItem, SaleItem.product_id, "sales"),
    (ReturnItem, ReturnItem.product_id, "returns"),
    (ReturnItem, ReturnItem.replacement_product_id, "replacements"),
    (PurchaseOrderItem, PurchaseOrderItem.product_id, "purchase orders"),
    (StockCountItem, StockCountItem.product_id, "stock counts"),
    (StockMovement, StockMovement.product_id, "stock movements"),
)


def product_references(product_id: int) -> list[str]:
    """Names of the history tables that still point at product_id."""
    found = []
    for model, column, label in _REFERENCING:
        if db.session.query(model.id).filter(column == product_id).first() is not None:
            found.append(label)
    return found


def delete_product(product_id: int) -> None:
    """Hard delete, refused while any historical record references the product."""
    def _op():
        product = get_product(product_id)
        refs = product_references(product_id)
        if refs:
            raise ConflictError(f"Product is referenced by {', '.join(refs)} and cannot be deleted")
        db.session.delete(product)

    run_in_transaction(_op)
