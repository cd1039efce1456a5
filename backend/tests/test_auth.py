"""
Authentication and user management tests.

Verifies:
- Login returns a token and the role's permission map
- Failed logins are rejected and recorded
- Logout revokes the token; idle sessions expire
- Deactivating a user logs them out everywhere
"""

from datetime import timedelta

from isms.extensions import db
from isms.models import SecurityEvent, SessionToken, User
from isms.permissions import Role
from isms.services import session_service
from isms.services.auth_service import hash_password, verify_password


TEST_PASSWORD = "Password123!"


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("Password123!", rounds=4)
        assert hashed != "Password123!"
        assert verify_password("Password123!", hashed)
        assert not verify_password("password123!", hashed)


class TestLogin:

    def test_login_success(self, client, users):
        user, _ = users[Role.CASHIER]
        username = user.username

        resp = client.post("/api/auth/login", json={"username": username, "password": TEST_PASSWORD})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["token"]
        assert body["user"]["username"] == username
        assert body["user"]["role"] == "CASHIER"
        assert body["permissions"]["pos"]["can_write"] is True
        assert body["permissions"]["profit-loss"]["can_read"] is False

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["username"] == username

    def test_login_bad_password(self, client, users):
        user, _ = users[Role.CASHIER]
        resp = client.post("/api/auth/login", json={"username": user.username, "password": "nope"})

        assert resp.status_code == 401
        event = db.session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.success is False

    def test_login_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "admin"})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, users):
        user, _ = users[Role.WINGER]
        username = user.username
        user.is_active = False
        db.session.commit()

        resp = client.post("/api/auth/login", json={"username": username, "password": TEST_PASSWORD})
        assert resp.status_code == 401


class TestSessions:

    def test_logout_revokes_token(self, client, auth_headers):
        headers = auth_headers("MANAGER")
        assert client.get("/api/auth/me", headers=headers).status_code == 200

        resp = client.post("/api/auth/logout", headers=headers)
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_idle_session_rejected(self, client, users):
        user, token = users[Role.MANAGER]
        session = db.session.query(SessionToken).filter_by(
            token_hash=session_service.hash_token(token)
        ).one()
        session.last_used_at = session.last_used_at - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db.session.commit()

        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

        session = db.session.query(SessionToken).filter_by(
            token_hash=session_service.hash_token(token)
        ).one()
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_only_hash_is_stored(self, users):
        _, token = users[Role.ADMIN]
        assert db.session.query(SessionToken).filter_by(token_hash=token).first() is None


class TestUserManagement:

    def test_create_user(self, client, auth_headers):
        resp = client.post("/api/users", json={
            "username": "newbie",
            "email": "newbie@isms.test",
            "name": "New Bie",
            "password": "Password123!",
            "role": "SHOP_ASSISTANT",
        }, headers=auth_headers("ADMIN"))

        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == "SHOP_ASSISTANT"
        assert "password_hash" not in resp.get_json()["user"]

    def test_duplicate_username(self, client, auth_headers, users):
        existing, _ = users[Role.CASHIER]
        resp = client.post("/api/users", json={
            "username": existing.username,
            "email": "other@isms.test",
            "name": "Other",
            "password": "Password123!",
        }, headers=auth_headers("ADMIN"))
        assert resp.status_code == 409

    def test_weak_password(self, client, auth_headers):
        resp = client.post("/api/users", json={
            "username": "weak",
            "email": "weak@isms.test",
            "name": "Weak",
            "password": "short",
        }, headers=auth_headers("ADMIN"))
        assert resp.status_code == 400

    def test_deactivate_revokes_sessions(self, client, auth_headers, users):
        cashier, token = users[Role.CASHIER]
        cashier_id = cashier.id

        resp = client.delete(f"/api/users/{cashier_id}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 200
        assert resp.get_json()["sessions_revoked"] == 1
        assert db.session.get(User, cashier_id).is_active is False

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 401

    def test_cannot_deactivate_self(self, client, auth_headers, admin_user):
        admin_id = admin_user.id
        resp = client.delete(f"/api/users/{admin_id}", headers=auth_headers("ADMIN"))
        assert resp.status_code == 400
