"""
Catalog and stock ledger tests.

Verifies:
- Product validation (required fields, allowlist, SKU uniqueness)
- Opening stock and manual adjustments go through the ledger
- stock_quantity cannot be edited directly
- Delete guards on products, categories and suppliers
"""

import pytest

from isms.extensions import db
from isms.models import Category, Product, StockMovement, Supplier
from isms.services import catalog_service, stock_service
from isms.validation import ConflictError, InsufficientStockError, ValidationError


class TestProducts:

    def test_create_with_opening_stock(self, client, auth_headers, category):
        resp = client.post("/api/products", json={
            "sku": "PH-001",
            "barcode": "600100200300",
            "name": "Phone X",
            "category_id": category.id,
            "purchase_cost_cents": 20000,
            "selling_price_cents": 30000,
            "stock_quantity": 5,
        }, headers=auth_headers("MANAGER"))

        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["stock_quantity"] == 5

        movement = db.session.query(StockMovement).filter_by(product_id=product["id"]).one()
        assert movement.type == "STOCK_IN"
        assert movement.stock_delta == 5

    def test_missing_required_fields(self, client, auth_headers, category):
        resp = client.post("/api/products", json={"sku": "X"}, headers=auth_headers("MANAGER"))
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_unknown_field_rejected(self, make_product):
        with pytest.raises(ValidationError):
            make_product(is_faulty=True)

    def test_negative_price_rejected(self, make_product):
        with pytest.raises(ValidationError):
            make_product(selling=-1)

    def test_duplicate_sku(self, client, auth_headers, make_product, category):
        make_product(sku="DUP-1")
        resp = client.post("/api/products", json={
            "sku": "DUP-1",
            "name": "Other",
            "category_id": category.id,
            "purchase_cost_cents": 1,
            "selling_price_cents": 2,
        }, headers=auth_headers("MANAGER"))
        assert resp.status_code == 409

    def test_unknown_category(self, make_product):
        with pytest.raises(ValidationError):
            make_product(category_id=999)

    def test_stock_not_directly_editable(self, client, auth_headers, make_product):
        pid = make_product(stock=2).id
        resp = client.patch(f"/api/products/{pid}", json={"stock_quantity": 50}, headers=auth_headers("MANAGER"))
        assert resp.status_code == 400
        assert db.session.get(Product, pid).stock_quantity == 2

    def test_update(self, client, auth_headers, make_product):
        pid = make_product().id
        resp = client.put(f"/api/products/{pid}", json={"selling_price_cents": 12345}, headers=auth_headers("MANAGER"))
        assert resp.status_code == 200
        assert resp.get_json()["product"]["selling_price_cents"] == 12345

    def test_search_and_low_stock(self, client, auth_headers, make_product):
        make_product(name="Blue Case", stock=50)
        make_product(name="Red Case", stock=1)
        make_product(name="Charger", stock=40)

        found = client.get("/api/products?search=case", headers=auth_headers("CASHIER")).get_json()
        assert sorted(p["name"] for p in found["products"]) == ["Blue Case", "Red Case"]

        low = client.get("/api/products?low_stock=true", headers=auth_headers("CASHIER")).get_json()
        assert [p["name"] for p in low["products"]] == ["Red Case"]

    def test_barcode_lookup(self, client, auth_headers, make_product):
        make_product(barcode="123456789")
        resp = client.get("/api/products/barcode/123456789", headers=auth_headers("CASHIER"))
        assert resp.status_code == 200
        assert client.get("/api/products/barcode/000", headers=auth_headers("CASHIER")).status_code == 404

    def test_delete_unreferenced(self, client, auth_headers, make_product):
        pid = make_product(stock=0).id
        resp = client.delete(f"/api/products/{pid}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 200
        assert db.session.get(Product, pid) is None

    def test_delete_referenced_conflicts(self, client, auth_headers, make_product):
        pid = make_product(stock=3).id
        resp = client.delete(f"/api/products/{pid}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 409
        assert "stock movements" in resp.get_json()["error"]


class TestStockLedger:

    def test_manual_adjustment(self, client, auth_headers, make_product):
        pid = make_product(stock=10).id
        resp = client.post("/api/inventory/adjust", json={
            "product_id": pid, "delta": -3, "reason": "Water damage",
        }, headers=auth_headers("MANAGER"))

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["product"]["stock_quantity"] == 7
        assert body["movement"]["type"] == "ADJUSTMENT"
        assert body["movement"]["stock_delta"] == -3

    def test_adjustment_cannot_go_negative(self, make_product):
        pid = make_product(stock=1).id
        with pytest.raises(InsufficientStockError):
            stock_service.adjust_stock(product_id=pid, delta=-2, reason="Oops")
        assert db.session.get(Product, pid).stock_quantity == 1

    def test_adjustment_requires_reason(self, client, auth_headers, make_product):
        pid = make_product(stock=1).id
        resp = client.post("/api/inventory/adjust", json={"product_id": pid, "delta": 1}, headers=auth_headers("MANAGER"))
        assert resp.status_code == 400

    def test_movements_explain_stock(self, make_product):
        pid = make_product(stock=10).id
        stock_service.adjust_stock(product_id=pid, delta=-4, reason="Shrinkage")
        stock_service.adjust_stock(product_id=pid, delta=2, reason="Found in back room")

        deltas = [m.stock_delta for m in stock_service.list_movements(product_id=pid)]
        assert sum(deltas) == db.session.get(Product, pid).stock_quantity == 8

    def test_list_movements_filter(self, client, auth_headers, make_product):
        pid = make_product(stock=5).id
        stock_service.adjust_stock(product_id=pid, delta=1, reason="Recount")

        resp = client.get(f"/api/stock-movements?product_id={pid}&type=ADJUSTMENT", headers=auth_headers("MANAGER"))
        assert resp.status_code == 200
        movements = resp.get_json()["movements"]
        assert len(movements) == 1
        assert movements[0]["reason"] == "Recount"


class TestCategoriesAndSuppliers:

    def test_duplicate_category(self, category):
        with pytest.raises(ConflictError):
            catalog_service.create_category({"name": "Phones"})

    def test_category_with_products_cannot_be_deleted(self, client, auth_headers, make_product, category):
        make_product()
        resp = client.delete(f"/api/categories/{category.id}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 409

    def test_empty_category_deleted(self, db_session):
        category_id = catalog_service.create_category({"name": "Empty"}).id
        catalog_service.delete_category(category_id)
        assert db.session.get(Category, category_id) is None

    def test_referenced_supplier_deactivated(self, make_product, supplier):
        supplier_id = supplier.id
        make_product(supplier_id=supplier_id)

        catalog_service.delete_supplier(supplier_id)

        kept = db.session.get(Supplier, supplier_id)
        assert kept is not None
        assert kept.is_active is False
        assert catalog_service.list_suppliers() == []

    def test_unreferenced_supplier_deleted(self, client, auth_headers, supplier):
        supplier_id = supplier.id
        resp = client.delete(f"/api/suppliers/{supplier_id}", headers=auth_headers("MANAGER"))
        assert resp.status_code == 403

        resp = client.delete(f"/api/suppliers/{supplier_id}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 200
        assert db.session.get(Supplier, supplier_id) is None
