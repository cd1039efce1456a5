"""
Sales tests.

Verifies:
- Cash sale: change, stock decrement, receipt number format
- Server-side pricing (retail / wholesale, client prices ignored)
- Credit sale bookkeeping and stock leaving at sale time
- Rejections: empty cart, short payment, short stock (nothing written)
- Idempotent retries
"""

import re

import pytest

from isms.extensions import db
from isms.models import Product, Sale, StockMovement
from isms.services.sales_service import price_sale_lines, resolve_payment
from isms.time_utils import utcnow
from isms.validation import EmptyCartError, InsufficientPaymentError, ValidationError


RECEIPT_RE = re.compile(r"^RCP-\d{8}-\d{4}$")


def _stock(product_id):
    return db.session.get(Product, product_id).stock_quantity


# =============================================================================
# PURE PRICING / PAYMENT RULES
# =============================================================================


class TestPricing:

    def test_wholesale_price_used_when_present(self, make_product):
        product = make_product(stock=5, selling=1000, wholesale=800)
        totals = price_sale_lines(
            [{"product_id": product.id, "quantity": 2, "discount_cents": 0}],
            {product.id: product},
            sale_type="WHOLESALE",
            discount_cents=0,
        )
        assert totals.total_cents == 1600
        assert totals.lines[0].unit_price_cents == 800

    def test_wholesale_falls_back_to_selling_price(self, make_product):
        product = make_product(stock=5, selling=1000)
        totals = price_sale_lines(
            [{"product_id": product.id, "quantity": 1, "discount_cents": 0}],
            {product.id: product},
            sale_type="WHOLESALE",
            discount_cents=0,
        )
        assert totals.total_cents == 1000

    def test_line_and_sale_discounts(self, make_product):
        product = make_product(stock=5, selling=1000)
        totals = price_sale_lines(
            [{"product_id": product.id, "quantity": 3, "discount_cents": 500}],
            {product.id: product},
            sale_type="RETAIL",
            discount_cents=100,
        )
        assert totals.subtotal_cents == 2500
        assert totals.total_cents == 2400

    def test_sale_discount_above_subtotal_rejected(self, make_product):
        product = make_product(stock=5, selling=1000)
        with pytest.raises(ValidationError):
            price_sale_lines(
                [{"product_id": product.id, "quantity": 1, "discount_cents": 0}],
                {product.id: product},
                sale_type="RETAIL",
                discount_cents=1001,
            )

    def test_empty_cart(self):
        with pytest.raises(EmptyCartError):
            price_sale_lines([], {}, sale_type="RETAIL", discount_cents=0)

    def test_cash_short_payment(self):
        with pytest.raises(InsufficientPaymentError):
            resolve_payment(
                payment_method="CASH", total_cents=1000, amount_paid_cents=999,
                customer_name=None, customer_phone=None, now=utcnow(), interval_days=30,
            )

    def test_cash_without_tender_is_short(self):
        with pytest.raises(InsufficientPaymentError):
            resolve_payment(
                payment_method="CASH", total_cents=1000, amount_paid_cents=None,
                customer_name=None, customer_phone=None, now=utcnow(), interval_days=30,
            )

    def test_credit_requires_customer(self):
        with pytest.raises(ValidationError):
            resolve_payment(
                payment_method="CREDIT", total_cents=1000, amount_paid_cents=100,
                customer_name=None, customer_phone=None, now=utcnow(), interval_days=30,
            )

    def test_credit_fully_paid_down_payment_completes(self):
        res = resolve_payment(
            payment_method="CREDIT", total_cents=1000, amount_paid_cents=1000,
            customer_name="Jane", customer_phone="0711", now=utcnow(), interval_days=30,
        )
        assert res.installment_due_cents == 0
        assert res.installment_status == "COMPLETED"
        assert res.next_payment_date is None


# =============================================================================
# POST /api/sales
# =============================================================================


class TestCreateSale:

    def test_cash_sale(self, client, auth_headers, make_product):
        product = make_product(stock=10, selling=2500)
        pid = product.id

        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 2}],
            "payment_method": "CASH",
            "amount_paid_cents": 6000,
        }, headers=auth_headers("CASHIER"))

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["total_cents"] == 5000
        assert sale["change_given_cents"] == 1000
        assert sale["amount_paid_cents"] == 6000
        assert RECEIPT_RE.match(sale["receipt_number"])
        assert sale["items"][0]["unit_cost_cents"] == 6000
        assert _stock(pid) == 8

        movement = db.session.query(StockMovement).filter_by(product_id=pid, type="STOCK_OUT").one()
        assert movement.stock_delta == -2
        assert movement.reference == sale["receipt_number"]

    def test_client_price_ignored(self, client, auth_headers, make_product):
        pid = make_product(stock=3, selling=1000).id
        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 1, "unit_price_cents": 1}],
            "payment_method": "CARD",
        }, headers=auth_headers("CASHIER"))
        assert resp.status_code == 201
        assert resp.get_json()["sale"]["total_cents"] == 1000

    def test_receipt_numbers_increment(self, client, auth_headers, make_product):
        pid = make_product(stock=5).id
        numbers = []
        for _ in range(2):
            resp = client.post("/api/sales", json={
                "items": [{"product_id": pid, "quantity": 1}],
                "payment_method": "MOBILE",
            }, headers=auth_headers("CASHIER"))
            numbers.append(resp.get_json()["sale"]["receipt_number"])
        assert numbers[0].endswith("-0001")
        assert numbers[1].endswith("-0002")

    def test_credit_sale_decrements_stock(self, client, auth_headers, make_product):
        pid = make_product(stock=4, selling=10000).id

        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 1}],
            "payment_method": "CREDIT",
            "amount_paid_cents": 2500,
            "customer_name": "Jane Doe",
            "customer_phone": "0712345678",
        }, headers=auth_headers("CASHIER"))

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["is_installment"] is True
        assert sale["installment_total_cents"] == 10000
        assert sale["installment_paid_cents"] == 2500
        assert sale["installment_due_cents"] == 7500
        assert sale["installment_status"] == "ACTIVE"
        assert sale["next_payment_date"] is not None
        assert _stock(pid) == 3

    def test_credit_sale_without_down_payment(self, client, auth_headers, make_product):
        pid = make_product(stock=4).id
        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 1}],
            "payment_method": "CREDIT",
            "customer_name": "Jane Doe",
            "customer_phone": "0712345678",
        }, headers=auth_headers("CASHIER"))
        assert resp.status_code == 400
        assert _stock(pid) == 4

    def test_insufficient_payment(self, client, auth_headers, make_product):
        pid = make_product(stock=5, selling=1000).id
        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 1}],
            "payment_method": "CASH",
            "amount_paid_cents": 500,
        }, headers=auth_headers("CASHIER"))
        assert resp.status_code == 400
        assert _stock(pid) == 5
        assert db.session.query(Sale).count() == 0

    def test_cash_sale_without_tender_rejected(self, client, auth_headers, make_product):
        pid = make_product(stock=5, selling=10000).id
        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 2}],
            "payment_method": "CASH",
        }, headers=auth_headers("CASHIER"))
        assert resp.status_code == 400
        assert _stock(pid) == 5
        assert db.session.query(Sale).count() == 0

    def test_insufficient_stock_lists_lines(self, client, auth_headers, make_product):
        pid = make_product(stock=1).id
        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 3}],
            "payment_method": "CARD",
        }, headers=auth_headers("CASHIER"))

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["items"][0]["product_id"] == pid
        assert body["items"][0]["on_hand"] == 1
        assert _stock(pid) == 1
        assert db.session.query(Sale).count() == 0

    def test_empty_cart_rejected(self, client, auth_headers):
        resp = client.post("/api/sales", json={"items": []}, headers=auth_headers("CASHIER"))
        assert resp.status_code == 400

    def test_unknown_product(self, client, auth_headers, db_session):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": 999, "quantity": 1}],
        }, headers=auth_headers("CASHIER"))
        assert resp.status_code == 404

    def test_idempotent_retry(self, client, auth_headers, make_product):
        pid = make_product(stock=5).id
        body = {
            "items": [{"product_id": pid, "quantity": 1}],
            "payment_method": "CARD",
            "idempotency_key": "till-1-0001",
        }
        first = client.post("/api/sales", json=body, headers=auth_headers("CASHIER"))
        second = client.post("/api/sales", json=body, headers=auth_headers("CASHIER"))

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.get_json()["sale"]["id"] == second.get_json()["sale"]["id"]
        assert _stock(pid) == 4
        assert db.session.query(Sale).count() == 1

    def test_requires_pos_write(self, client, auth_headers, make_product):
        pid = make_product(stock=5).id
        resp = client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 1}],
        }, headers=auth_headers("ACCOUNTANT"))
        assert resp.status_code == 403
        assert _stock(pid) == 5


class TestListSales:

    def test_installment_filter(self, client, auth_headers, make_product):
        pid = make_product(stock=5, selling=1000).id
        client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 1}], "payment_method": "CARD",
        }, headers=auth_headers("CASHIER"))
        client.post("/api/sales", json={
            "items": [{"product_id": pid, "quantity": 1}],
            "payment_method": "CREDIT",
            "amount_paid_cents": 100,
            "customer_name": "Jane",
            "customer_phone": "0711",
        }, headers=auth_headers("CASHIER"))

        all_sales = client.get("/api/sales", headers=auth_headers("CASHIER")).get_json()
        credit = client.get("/api/sales?installment=true", headers=auth_headers("CASHIER")).get_json()

        assert all_sales["count"] == 2
        assert credit["count"] == 1
        assert credit["sales"][0]["payment_method"] == "CREDIT"
        assert credit["sales"][0]["payments"] == []
