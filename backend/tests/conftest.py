"""
Pytest fixtures for ISMS backend tests.

Provides the application on an in-memory database, a table-clearing
session fixture, staff accounts per role with bearer tokens, and small
catalog factories.
"""

import pytest

from isms import create_app
from isms.extensions import db
from isms.permissions import Role
from isms.services import catalog_service, session_service
from isms.services.auth_service import create_user
from isms.services.permission_service import PermissionMatrix


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ALLOW_NEGATIVE_STOCK': False,
        'INSTALLMENT_INTERVAL_DAYS': 30,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh, empty tables for each test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def seeded_permissions(db_session):
    """Default permission matrix."""
    count = PermissionMatrix(db_session).reset_defaults()
    db_session.commit()
    return count


@pytest.fixture(scope='function')
def make_user(db_session, seeded_permissions):
    """Factory: make_user(role) -> (user, token)."""
    created = {"n": 0}

    def _make(role=Role.CASHIER, username=None):
        role = Role.parse(role)
        created["n"] += 1
        username = username or f"{role.value.lower()}{created['n']}"
        user = create_user(
            username=username,
            email=f"{username}@isms.test",
            name=username.title(),
            password=TEST_PASSWORD,
            role=role,
            rounds=4,
        )
        db_session.commit()
        _, token = session_service.create_session(user_id=user.id, user_agent="pytest", ip_address="127.0.0.1")
        return user, token

    return _make


@pytest.fixture(scope='function')
def users(make_user):
    """One user (with token) per role, keyed by role."""
    return {role: make_user(role) for role in Role}


@pytest.fixture(scope='function')
def auth_headers(users):
    """auth_headers(role) -> Authorization header for that role's user."""
    def _headers(role=Role.ADMIN):
        _, token = users[Role.parse(role)]
        return {'Authorization': f'Bearer {token}'}

    return _headers


@pytest.fixture(scope='function')
def admin_user(users):
    return users[Role.ADMIN][0]


@pytest.fixture(scope='function')
def category(db_session):
    return catalog_service.create_category({"name": "Phones"})


@pytest.fixture(scope='function')
def supplier(db_session):
    return catalog_service.create_supplier({"name": "Acme Wholesale", "phone": "0700000000"})


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """
    Factory: make_product(**overrides) -> Product.

    stock is booked as opening stock through the ledger.
    """
    created = {"n": 0}

    def _make(*, stock=0, selling=10000, cost=6000, wholesale=None, **overrides):
        created["n"] += 1
        payload = {
            "sku": f"SKU-{created['n']:03d}",
            "name": f"Product {created['n']}",
            "category_id": category.id,
            "purchase_cost_cents": cost,
            "selling_price_cents": selling,
            "stock_quantity": stock,
        }
        if wholesale is not None:
            payload["wholesale_price_cents"] = wholesale
        payload.update(overrides)
        return catalog_service.create_product(payload)

    return _make
