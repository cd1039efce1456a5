"""
Installment (credit sale) tests.

Verifies:
- Partial payments move the balance and the next due date
- Final payment completes the sale and clears the due date
- Overpayment and paying a settled sale are rejected
- Payments never touch stock
"""

import pytest

from isms.extensions import db
from isms.models import InstallmentPayment, Product, Sale
from isms.services import installment_service, sales_service
from isms.validation import ConflictError, ValidationError


@pytest.fixture
def credit_sale(make_product):
    product = make_product(stock=5, selling=10000)
    sale = sales_service.create_sale({
        "items": [{"product_id": product.id, "quantity": 1}],
        "payment_method": "CREDIT",
        "amount_paid_cents": 4000,
        "customer_name": "Jane Doe",
        "customer_phone": "0712345678",
    })
    return sale.id, product.id


class TestRecordPayment:

    def test_partial_then_complete(self, client, auth_headers, credit_sale):
        sale_id, product_id = credit_sale

        resp = client.post(
            f"/api/installments/{sale_id}/payments",
            json={"amount_cents": 2500, "notes": "week 1"},
            headers=auth_headers("CASHIER"),
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["sale"]["installment_paid_cents"] == 6500
        assert body["sale"]["installment_due_cents"] == 3500
        assert body["sale"]["installment_status"] == "ACTIVE"
        assert body["sale"]["next_payment_date"] is not None
        assert body["payment"]["balance_cents"] == 3500
        assert body["payment"]["amount_cents"] == 10000

        resp = client.put(
            f"/api/sales/{sale_id}/payments",
            json={"amount_cents": 3500},
            headers=auth_headers("CASHIER"),
        )
        assert resp.status_code == 200
        sale = resp.get_json()["sale"]
        assert sale["installment_due_cents"] == 0
        assert sale["installment_status"] == "COMPLETED"
        assert sale["next_payment_date"] is None
        assert sale["amount_paid_cents"] == 10000
        assert len(sale["payments"]) == 2

        assert db.session.get(Product, product_id).stock_quantity == 4

    def test_overpayment_rejected(self, client, auth_headers, credit_sale):
        sale_id, _ = credit_sale
        resp = client.post(
            f"/api/installments/{sale_id}/payments",
            json={"amount_cents": 6001},
            headers=auth_headers("CASHIER"),
        )
        assert resp.status_code == 400
        assert db.session.query(InstallmentPayment).count() == 0
        assert db.session.get(Sale, sale_id).installment_due_cents == 6000

    def test_paying_settled_sale_conflicts(self, credit_sale):
        sale_id, _ = credit_sale
        installment_service.record_payment(sale_id, 6000)
        with pytest.raises(ConflictError):
            installment_service.record_payment(sale_id, 1)

    def test_zero_payment_rejected(self, credit_sale):
        sale_id, _ = credit_sale
        with pytest.raises(ValidationError):
            installment_service.record_payment(sale_id, 0)

    def test_cash_sale_is_not_installment(self, make_product):
        product = make_product(stock=2, selling=500)
        sale = sales_service.create_sale({
            "items": [{"product_id": product.id, "quantity": 1}],
            "payment_method": "CASH",
            "amount_paid_cents": 500,
        })
        with pytest.raises(ValidationError):
            installment_service.record_payment(sale.id, 100)

    def test_unknown_sale(self, client, auth_headers, db_session):
        resp = client.post(
            "/api/installments/999/payments",
            json={"amount_cents": 100},
            headers=auth_headers("CASHIER"),
        )
        assert resp.status_code == 404

    def test_accountant_cannot_take_payment(self, client, auth_headers, credit_sale):
        sale_id, _ = credit_sale
        resp = client.post(
            f"/api/installments/{sale_id}/payments",
            json={"amount_cents": 100},
            headers=auth_headers("ACCOUNTANT"),
        )
        assert resp.status_code == 403


class TestListInstallments:

    def test_status_filter_and_summary(self, client, auth_headers, credit_sale):
        sale_id, _ = credit_sale

        active = client.get("/api/installments?status=ACTIVE", headers=auth_headers("ACCOUNTANT")).get_json()
        assert [s["id"] for s in active["sales"]] == [sale_id]
        assert active["summary"]["total_outstanding_cents"] == 6000
        assert active["summary"]["total_collected_cents"] == 4000

        completed = client.get("/api/installments?status=COMPLETED", headers=auth_headers("ACCOUNTANT")).get_json()
        assert completed["sales"] == []

    def test_bad_status(self, client, auth_headers, db_session):
        resp = client.get("/api/installments?status=LATE", headers=auth_headers("ADMIN"))
        assert resp.status_code == 400
