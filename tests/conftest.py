"""
Shared fixtures.

Every test gets a fresh in-memory database and a StubGateway,
so nothing talks to Paystack.

Service tests use `store` (runs inside an app context).
API tests use `register`, which never holds an app context open:
Flask-Login caches the current user on `g`, so a shared context
would leak one client's login into another's requests.
"""

import itertools
from decimal import Decimal

import pytest

from config import TestConfig
from houseshare import create_app
from houseshare.extensions import db
from houseshare.gateway import StubGateway
from houseshare.models import User
from houseshare.services import membership_service
from houseshare.store import Store

PASSWORD = 'secret123'


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def app(gateway):
    app = create_app(TestConfig, gateway=gateway)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    with app.app_context():
        yield Store(db.session)
        db.session.remove()


@pytest.fixture
def make_user(store):
    counter = itertools.count(1)

    def _make(name=None, balance='0'):
        name = name or f'user{next(counter)}'
        user = User(
            name=name,
            email=f'{name.lower()}@example.com',
            wallet_balance=Decimal(str(balance))
        )
        user.set_password(PASSWORD)
        store.add(user)
        store.commit()
        return user

    return _make


@pytest.fixture
def make_house(store, make_user):
    """House with an admin plus the given tenants (joined in order)."""

    def _make(name='Maple St', admin=None, tenants=()):
        admin = admin or make_user('Admin')
        house = membership_service.create_house(store, name, admin.id)
        for tenant in tenants:
            membership_service.join_house(store, house.join_code, tenant.id)
        return house

    return _make


@pytest.fixture
def register(app):
    """Register a user through the API; returns (logged-in client, user dict)."""

    def _register(name):
        client = app.test_client()
        response = client.post('/api/auth/register', json={
            'name': name,
            'email': f'{name.lower()}@example.com',
            'password': PASSWORD,
        })
        assert response.status_code == 201
        return client, response.get_json()['user']

    return _register
