"""
Return / replacement tests.

Verifies:
- Resellable units go back into stock
- Faulty units flag the product and write an audit-only movement
- Replacement differences (CLIENT vs BUSINESS) and record totals
- Pending lines resolved later, once
- Delete rules and idempotent retries
"""

import re

import pytest

from isms.extensions import db
from isms.models import Product, Return, ReturnItem, StockMovement
from isms.services import return_service
from isms.services.return_service import compute_replacement_difference
from isms.validation import ConflictError


def _product(product_id):
    return db.session.get(Product, product_id)


class TestReplacementDifference:

    def test_dearer_replacement_client_pays(self):
        assert compute_replacement_difference(10000, 12500) == (2500, "CLIENT")

    def test_cheaper_replacement_business_pays(self):
        assert compute_replacement_difference(10000, 7000) == (3000, "BUSINESS")

    def test_equal_value(self):
        assert compute_replacement_difference(5000, 5000) == (0, "CLIENT")


class TestCreateReturn:

    def test_resellable_refund_restocks(self, client, auth_headers, make_product):
        pid = make_product(stock=2, selling=5000).id

        resp = client.post("/api/returns", json={
            "reason": "Changed mind",
            "items": [{
                "product_id": pid,
                "quantity": 1,
                "status": "RESELLABLE",
                "awarded_type": "REFUND",
                "refund_amount_cents": 5000,
            }],
        }, headers=auth_headers("CASHIER"))

        assert resp.status_code == 201
        doc = resp.get_json()["return"]
        assert re.match(r"^RET-\d{8}-\d{4}$", doc["return_number"])
        assert doc["total_refund_cents"] == 5000
        assert doc["total_top_up_cents"] == 0
        assert doc["items"][0]["original_product_value_cents"] == 5000
        assert _product(pid).stock_quantity == 3

        movement = db.session.query(StockMovement).filter_by(product_id=pid, type="RETURN_RESELLABLE").one()
        assert movement.stock_delta == 1

    def test_faulty_flags_product_without_restock(self, client, auth_headers, make_product):
        pid = make_product(stock=2).id

        resp = client.post("/api/returns", json={
            "reason": "Dead on arrival",
            "items": [{"product_id": pid, "quantity": 1, "status": "FAULTY", "refund_amount_cents": 1000}],
        }, headers=auth_headers("CASHIER"))

        assert resp.status_code == 201
        product = _product(pid)
        assert product.stock_quantity == 2
        assert product.is_faulty is True

        movement = db.session.query(StockMovement).filter_by(product_id=pid, type="RETURN_FAULTY").one()
        assert movement.stock_delta == 0
        assert movement.quantity == 1

    def test_dearer_replacement(self, client, auth_headers, make_product):
        returned = make_product(stock=0, selling=10000).id
        replacement = make_product(stock=3, selling=12500).id

        resp = client.post("/api/returns", json={
            "reason": "Upgrade",
            "items": [{
                "product_id": returned,
                "quantity": 1,
                "status": "RESELLABLE",
                "awarded_type": "REPLACEMENT",
                "replacement_product_id": replacement,
            }],
        }, headers=auth_headers("CASHIER"))

        assert resp.status_code == 201
        doc = resp.get_json()["return"]
        item = doc["items"][0]
        assert item["price_difference_cents"] == 2500
        assert item["difference_paid_by"] == "CLIENT"
        assert item["replacement_value_cents"] == 12500
        assert doc["total_top_up_cents"] == 2500
        assert doc["total_refund_cents"] == 0
        assert _product(replacement).stock_quantity == 2
        assert _product(returned).stock_quantity == 1

    def test_cheaper_replacement_counts_as_refund(self, make_product):
        returned = make_product(stock=0, selling=10000)
        replacement = make_product(stock=3, selling=7000)

        doc = return_service.create_return({
            "reason": "Downgrade",
            "items": [{
                "product_id": returned.id,
                "quantity": 1,
                "status": "PENDING",
                "awarded_type": "REPLACEMENT",
                "replacement_product_id": replacement.id,
            }],
        })

        assert doc.total_refund_cents == 3000
        assert doc.total_top_up_cents == 0
        assert doc.items[0].difference_paid_by == "BUSINESS"
        assert _product(returned.id).stock_quantity == 0
        assert _product(replacement.id).stock_quantity == 2

    def test_faulty_replacement_leaves_original_stock(self, make_product):
        returned = make_product(stock=4, selling=5000).id
        replacement = make_product(stock=5, selling=5000).id

        return_service.create_return({
            "reason": "Dead on arrival",
            "items": [{
                "product_id": returned,
                "quantity": 2,
                "status": "FAULTY",
                "awarded_type": "REPLACEMENT",
                "replacement_product_id": replacement,
            }],
        })

        assert _product(returned).stock_quantity == 4
        assert _product(returned).is_faulty is True
        assert _product(replacement).stock_quantity == 3

    def test_explicit_zero_original_value(self, make_product):
        returned = make_product(stock=0, selling=30000).id
        replacement = make_product(stock=1, selling=45000).id

        doc = return_service.create_return({
            "reason": "Gifted unit swapped",
            "items": [{
                "product_id": returned,
                "quantity": 1,
                "awarded_type": "REPLACEMENT",
                "replacement_product_id": replacement,
                "original_product_value_cents": 0,
            }],
        })

        item = doc.items[0]
        assert item.original_product_value_cents == 0
        assert item.price_difference_cents == 45000
        assert item.difference_paid_by == "CLIENT"

    def test_replacement_out_of_stock_rolls_back(self, client, auth_headers, make_product):
        returned = make_product(stock=0, selling=1000).id
        replacement = make_product(stock=0, selling=1000).id

        resp = client.post("/api/returns", json={
            "reason": "Swap",
            "items": [{
                "product_id": returned,
                "quantity": 1,
                "status": "RESELLABLE",
                "awarded_type": "REPLACEMENT",
                "replacement_product_id": replacement,
            }],
        }, headers=auth_headers("CASHIER"))

        assert resp.status_code == 400
        assert db.session.query(Return).count() == 0
        assert _product(returned).stock_quantity == 0

    def test_replacement_requires_product(self, client, auth_headers, make_product):
        pid = make_product(stock=1).id
        resp = client.post("/api/returns", json={
            "reason": "Swap",
            "items": [{"product_id": pid, "quantity": 1, "awarded_type": "REPLACEMENT"}],
        }, headers=auth_headers("CASHIER"))
        assert resp.status_code == 400

    def test_reason_required(self, client, auth_headers, make_product):
        pid = make_product(stock=1).id
        resp = client.post("/api/returns", json={
            "items": [{"product_id": pid, "quantity": 1}],
        }, headers=auth_headers("CASHIER"))
        assert resp.status_code == 400

    def test_idempotent_retry(self, make_product):
        pid = make_product(stock=0).id
        payload = {
            "reason": "Retry",
            "idempotency_key": "ret-1",
            "items": [{"product_id": pid, "quantity": 1, "status": "RESELLABLE"}],
        }
        first = return_service.create_return(payload)
        second = return_service.create_return(payload)

        assert first.id == second.id
        assert _product(pid).stock_quantity == 1


class TestItemStatus:

    @pytest.fixture
    def pending_return(self, make_product):
        pid = make_product(stock=0).id
        doc = return_service.create_return({
            "reason": "Check later",
            "items": [{"product_id": pid, "quantity": 2}],
        })
        return doc.id, doc.items[0].id, pid

    def test_resolve_pending_to_resellable(self, client, auth_headers, pending_return):
        _, item_id, pid = pending_return
        resp = client.put(
            f"/api/returns/items/{item_id}/status",
            json={"status": "RESELLABLE"},
            headers=auth_headers("MANAGER"),
        )
        assert resp.status_code == 200
        assert resp.get_json()["item"]["status"] == "RESELLABLE"
        assert _product(pid).stock_quantity == 2

        # Same status again is a no-op
        again = client.put(
            f"/api/returns/items/{item_id}/status",
            json={"status": "RESELLABLE"},
            headers=auth_headers("MANAGER"),
        )
        assert again.status_code == 200
        assert _product(pid).stock_quantity == 2

    def test_resolved_line_cannot_change(self, pending_return):
        _, item_id, _ = pending_return
        return_service.update_item_status(item_id, "DISCARDED")
        with pytest.raises(ConflictError):
            return_service.update_item_status(item_id, "RESELLABLE")

    def test_cannot_reset_to_pending(self, client, auth_headers, pending_return):
        _, item_id, _ = pending_return
        resp = client.put(
            f"/api/returns/items/{item_id}/status",
            json={"status": "PENDING"},
            headers=auth_headers("MANAGER"),
        )
        assert resp.status_code == 400

    def test_delete_pending_return(self, client, auth_headers, pending_return):
        return_id, _, _ = pending_return
        resp = client.delete(f"/api/returns/{return_id}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 200
        assert db.session.query(Return).count() == 0
        assert db.session.query(ReturnItem).count() == 0

    def test_delete_resolved_return_conflicts(self, client, auth_headers, pending_return):
        return_id, item_id, _ = pending_return
        return_service.update_item_status(item_id, "RESELLABLE")
        resp = client.delete(f"/api/returns/{return_id}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 409


class TestSaleableProducts:

    def test_excludes_faulty_and_empty(self, client, auth_headers, make_product):
        good = make_product(stock=3).id
        make_product(stock=0)
        faulty = make_product(stock=3)
        return_service.create_return({
            "reason": "Broken",
            "items": [{"product_id": faulty.id, "quantity": 1, "status": "FAULTY"}],
        })

        resp = client.get("/api/returns/saleable-products", headers=auth_headers("CASHIER"))
        assert resp.status_code == 200
        assert [p["id"] for p in resp.get_json()["products"]] == [good]
