"""
CLI, health check and document numbering tests.
"""

from datetime import datetime

from isms.extensions import db
from isms.models import RolePermission, ShopSettings, User
from isms.services.document_service import next_document_number


class TestCli:

    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "Created user: admin" in result.output

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "already exists" in result.output

        assert db.session.query(User).filter_by(username="admin").count() == 1
        assert db.session.query(ShopSettings).count() == 1
        assert db.session.query(RolePermission).count() > 0

    def test_init_rejects_weak_admin_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init", "--admin-password", "weak"])
        assert result.exit_code != 0
        assert db.session.query(User).count() == 0

    def test_perms_check(self, app, seeded_permissions):
        runner = app.test_cli_runner()

        allowed = runner.invoke(args=["perms", "check", "CASHIER", "pos", "write"])
        assert "PASS" in allowed.output

        denied = runner.invoke(args=["perms", "check", "CASHIER", "profit-loss", "read"])
        assert "FAIL" in denied.output

    def test_users_create(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "users", "create",
            "--username", "till1",
            "--email", "till1@isms.test",
            "--name", "Till One",
            "--password", "Password123!",
            "--role", "cashier",
        ])
        assert result.exit_code == 0, result.output
        assert db.session.query(User).filter_by(username="till1").one().role.value == "CASHIER"


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"


class TestDocumentNumbers:

    def test_sequence_per_type_and_day(self, db_session):
        day = datetime(2026, 3, 15, 10, 0, 0)
        next_day = datetime(2026, 3, 16, 9, 0, 0)

        assert next_document_number(document_type="SALE", now=day) == "RCP-20260315-0001"
        assert next_document_number(document_type="SALE", now=day) == "RCP-20260315-0002"
        assert next_document_number(document_type="RETURN", now=day) == "RET-20260315-0001"
        assert next_document_number(document_type="SALE", now=next_day) == "RCP-20260316-0001"
        db_session.commit()
