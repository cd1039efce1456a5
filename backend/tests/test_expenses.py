"""Expense CRUD tests."""

import pytest

from isms.services import expense_service
from isms.validation import NotFoundError


class TestExpenses:

    def test_create_and_list(self, client, auth_headers):
        headers = auth_headers("ACCOUNTANT")
        for category, amount in (("Rent", 50000), ("Utilities", 7000), ("Rent", 1000)):
            resp = client.post("/api/expenses", json={
                "category": category,
                "amount_cents": amount,
                "description": f"{category} payment",
                "date": "2026-03-15",
            }, headers=headers)
            assert resp.status_code == 201

        body = client.get("/api/expenses", headers=headers).get_json()
        assert body["count"] == 3
        assert body["total_cents"] == 58000

        rent = client.get("/api/expenses?category=Rent", headers=headers).get_json()
        assert rent["count"] == 2
        assert rent["total_cents"] == 51000

    def test_date_range(self, client, auth_headers):
        expense_service.create_expense({"category": "Rent", "amount_cents": 100, "description": "Jan", "date": "2026-01-10"})
        expense_service.create_expense({"category": "Rent", "amount_cents": 200, "description": "Feb", "date": "2026-02-10"})

        resp = client.get(
            "/api/expenses?start_date=2026-02-01&end_date=2026-02-28",
            headers=auth_headers("ACCOUNTANT"),
        )
        assert [e["description"] for e in resp.get_json()["expenses"]] == ["Feb"]

    def test_bare_end_date_covers_whole_day(self, db_session):
        expense_service.create_expense({
            "category": "Utilities", "amount_cents": 300, "description": "Evening meter", "date": "2026-02-28T18:30:00Z",
        })

        expenses, total = expense_service.list_expenses(start="2026-02-28", end="2026-02-28")
        assert [e.description for e in expenses] == ["Evening meter"]
        assert total == 300

    @pytest.mark.parametrize(
        "payload",
        [
            {"amount_cents": 100, "description": "No category"},
            {"category": "Rent", "description": "No amount"},
            {"category": "Rent", "amount_cents": 0, "description": "Zero"},
            {"category": "Rent", "amount_cents": -5, "description": "Negative"},
            {"category": "Rent", "amount_cents": 100},
            {"category": "Rent", "amount_cents": 100, "description": "Bad date", "date": "15/03/2026"},
        ],
    )
    def test_invalid(self, client, auth_headers, payload):
        resp = client.post("/api/expenses", json=payload, headers=auth_headers("ACCOUNTANT"))
        assert resp.status_code == 400

    def test_update_and_delete(self, client, auth_headers):
        expense_id = expense_service.create_expense(
            {"category": "Transport", "amount_cents": 900, "description": "Taxi"}
        ).id

        resp = client.put(f"/api/expenses/{expense_id}", json={"amount_cents": 1200}, headers=auth_headers("ADMIN"))
        assert resp.status_code == 200
        assert resp.get_json()["expense"]["amount_cents"] == 1200

        resp = client.delete(f"/api/expenses/{expense_id}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 200
        with pytest.raises(NotFoundError):
            expense_service.get_expense(expense_id)

    def test_accountant_cannot_delete(self, client, auth_headers):
        expense_id = expense_service.create_expense(
            {"category": "Transport", "amount_cents": 900, "description": "Taxi"}
        ).id
        resp = client.delete(f"/api/expenses/{expense_id}", headers=auth_headers("ACCOUNTANT"))
        assert resp.status_code == 403
