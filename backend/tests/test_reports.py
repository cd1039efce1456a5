"""
Dashboard, report and profit & loss tests.

Verifies:
- net_profit = gross profit - expenses - return losses + top-ups
- Breakdown lists add up to their totals
- Cost of goods uses the cost snapshotted at sale time
- Report type and period validation
- Period windows leave out rows dated before the window
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from isms.extensions import db
from isms.models import Expense, PurchaseOrder, ReturnItem, Sale
from isms.services import (
    catalog_service,
    expense_service,
    profit_loss_service,
    purchase_order_service,
    reporting_service,
    return_service,
    sales_service,
)
from isms.time_utils import utcnow
from isms.validation import ValidationError


@pytest.fixture
def trading_day(make_product):
    """One sale, one expense and three kinds of return."""
    phone = make_product(name="Phone", stock=10, selling=10000, cost=6000)
    case = make_product(name="Case", stock=5, selling=5000, cost=2000)
    charger = make_product(name="Charger", stock=5, selling=7000, cost=3000)

    sales_service.create_sale({
        "items": [{"product_id": phone.id, "quantity": 2, "discount_cents": 500}],
        "payment_method": "CARD",
    })
    expense_service.create_expense({"category": "Rent", "amount_cents": 1500, "description": "Stall rent"})
    return_service.create_return({
        "reason": "Mixed",
        "items": [
            {"product_id": phone.id, "quantity": 1, "status": "RESELLABLE", "refund_amount_cents": 3000},
            {"product_id": case.id, "quantity": 1, "awarded_type": "REPLACEMENT", "replacement_product_id": charger.id},
            {"product_id": case.id, "quantity": 1, "awarded_type": "REPAIR", "repair_cost_cents": 800},
        ],
    })
    return SimpleNamespace(phone=phone.id, case=case.id, charger=charger.id)


class TestProfitAndLoss:

    def test_net_profit_identity(self, trading_day):
        report = profit_loss_service.profit_and_loss("all")

        assert report["total_revenue_cents"] == 20000
        assert report["total_cost_cents"] == 12000
        assert report["total_profit_cents"] == 8000
        assert report["total_line_discounts_cents"] == 500
        assert report["total_expenses_cents"] == 1500
        assert report["total_refunds_given_cents"] == 3000
        assert report["total_repair_costs_cents"] == 800
        assert report["total_top_up_received_cents"] == 2000
        assert report["total_return_loss_cents"] == 3800
        assert report["sales_count"] == 1
        assert report["net_profit_cents"] == (
            report["total_profit_cents"]
            - report["total_expenses_cents"]
            - report["total_return_loss_cents"]
            + report["total_return_profit_cents"]
        ) == 4700

    def test_breakdowns_sum_to_totals(self, trading_day):
        report = profit_loss_service.profit_and_loss("30days")

        assert sum(e["amount_cents"] for e in report["expense_list"]) == report["total_expenses_cents"]
        losses = sum(
            r["amount_cents"] for r in report["return_expenses_list"]
            if r["key"] in {"REFUND", "REPAIR", "PRICE_DIFF_BUSINESS"}
        )
        assert losses == report["total_return_loss_cents"]
        assert sum(p["profit_cents"] for p in report["product_list"]) == report["total_profit_cents"]

    def test_cost_snapshot_survives_catalog_edit(self, trading_day):
        catalog_service.update_product(trading_day.phone, {"purchase_cost_cents": 9999})
        report = profit_loss_service.profit_and_loss("today")
        assert report["total_cost_cents"] == 12000

    def test_business_paid_difference_is_a_loss(self):
        report = profit_loss_service.aggregate(
            sale_items=[],
            sales_count=0,
            expenses=[],
            return_items=[SimpleNamespace(
                refund_amount_cents=0,
                repair_cost_cents=0,
                price_difference_cents=1200,
                difference_paid_by="BUSINESS",
                awarded_type="REPLACEMENT",
                awarded_amount_cents=0,
            )],
            purchase_orders=[],
        )
        assert report["total_business_paid_differences_cents"] == 1200
        assert report["net_profit_cents"] == -1200

    def test_invalid_period(self, client, auth_headers, db_session):
        resp = client.get("/api/profit-loss?period=fortnight", headers=auth_headers("ADMIN"))
        assert resp.status_code == 400

    def test_via_api(self, client, auth_headers, trading_day):
        resp = client.get("/api/profit-loss?period=7days", headers=auth_headers("ACCOUNTANT"))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["period"] == "7days"
        assert body["net_profit_cents"] == 4700



class TestPeriodWindow:

    @pytest.fixture
    def old_and_fresh(self, make_product, supplier):
        """One row of each kind dated ten days back, plus one sale made now."""
        old = make_product(name="Old", stock=5, selling=10000, cost=6000).id
        fresh = make_product(name="Fresh", stock=5, selling=5000, cost=2000).id

        old_sale = sales_service.create_sale({"items": [{"product_id": old, "quantity": 1}], "payment_method": "CARD"}).id
        expense = expense_service.create_expense({"category": "Rent", "amount_cents": 1500, "description": "Last rent"}).id
        refund = return_service.create_return({
            "reason": "Old refund",
            "items": [{"product_id": old, "quantity": 1, "status": "RESELLABLE", "refund_amount_cents": 1000}],
        }).items[0].id
        order = purchase_order_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"product_id": old, "quantity": 2, "unit_cost_cents": 700}],
        }).id
        purchase_order_service.update_status(order, status="RECEIVED")

        back = utcnow() - timedelta(days=10)
        db.session.get(Sale, old_sale).created_at = back
        db.session.get(Expense, expense).expense_date = back
        db.session.get(ReturnItem, refund).created_at = back
        db.session.get(PurchaseOrder, order).received_at = back
        db.session.commit()

        sales_service.create_sale({"items": [{"product_id": fresh, "quantity": 1}], "payment_method": "CARD"})

    @pytest.mark.parametrize("period", ["today", "7days"])
    def test_recent_periods_exclude_older_rows(self, old_and_fresh, period):
        report = profit_loss_service.profit_and_loss(period)

        assert report["sales_count"] == 1
        assert report["total_revenue_cents"] == 5000
        assert report["total_cost_cents"] == 2000
        assert report["total_expenses_cents"] == 0
        assert report["total_refunds_given_cents"] == 0
        assert report["total_purchase_cost_cents"] == 0

    def test_all_includes_older_rows(self, old_and_fresh):
        report = profit_loss_service.profit_and_loss("all")

        assert report["sales_count"] == 2
        assert report["total_revenue_cents"] == 15000
        assert report["total_expenses_cents"] == 1500
        assert report["total_refunds_given_cents"] == 1000
        assert report["total_purchase_cost_cents"] == 1400


class TestDashboard:

    def test_figures(self, client, auth_headers, trading_day):
        resp = client.get("/api/dashboard", headers=auth_headers("CASHIER"))
        assert resp.status_code == 200
        body = resp.get_json()

        assert body["total_products"] == 3
        assert body["today_sales_count"] == 1
        assert body["today_sales_cents"] == 19500
        assert body["today_profit_cents"] == 8000
        assert body["fast_moving_items"][0]["id"] == trading_day.phone
        assert body["fast_moving_items"][0]["quantity_sold"] == 2
        assert trading_day.phone not in [p["id"] for p in body["slow_moving_items"]]

    def test_faulty_products_not_counted(self, make_product):
        pid = make_product(stock=2, selling=1000).id
        return_service.create_return({
            "reason": "Broken",
            "items": [{"product_id": pid, "quantity": 1, "status": "FAULTY"}],
        })

        figures = reporting_service.dashboard()
        assert figures["total_products"] == 0
        assert figures["total_inventory_value_cents"] == 2000


class TestReports:

    def test_sales_report(self, client, auth_headers, trading_day):
        resp = client.get("/api/reports?type=sales", headers=auth_headers("ACCOUNTANT"))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["total_revenue_cents"] == 19500
        assert body["items_sold"] == 2
        assert len(body["daily_sales"]) == 1
        assert body["daily_sales"][0]["quantity"] == 2

    def test_sales_report_date_filter(self, trading_day):
        report = reporting_service.build_report("sales", start="2000-01-01", end="2000-12-31")
        assert report["sales"] == []
        assert report["total_revenue_cents"] == 0

    def test_returns_report(self, trading_day):
        report = reporting_service.build_report("returns")
        assert report["total_refunds_cents"] == 3000
        assert len(report["returns"]) == 1

    def test_inventory_report(self, trading_day):
        report = reporting_service.build_report("inventory", product_id=trading_day.charger)
        # one charger went out as a replacement
        assert report["total_value_cents"] == 4 * 7000
        assert report["total_cost_cents"] == 4 * 3000

    def test_invalid_type(self, client, auth_headers, db_session):
        resp = client.get("/api/reports?type=forecast", headers=auth_headers("ADMIN"))
        assert resp.status_code == 400

    def test_bad_date(self):
        with pytest.raises(ValidationError):
            reporting_service.build_report("sales", start="yesterday")
