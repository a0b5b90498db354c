"""
Pytest fixtures for casebook backend tests.

Provides the application on an in-memory database, a clean database per
test, employees with chosen permissions and a login helper.
"""

import pytest
from casebook import create_app
from casebook.extensions import db
from casebook.models import Customer
from casebook.permissions import Permission
from casebook.services import auth_service, settings_service
from casebook.services.permission_service import principal_for
from casebook.time_utils import parse_local_datetime


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'ADMIN_ACCOUNTS': ['admin'],
    'CUSTOMER_ID_PREFIX': 'SVDP',
    'APP_TIMEZONE': 'America/New_York',
}

PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        settings_service.get_settings().invalidate()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_employee(username, permissions=(), password=PASSWORD, password_reset_required=False):
    return auth_service.create_employee(
        username,
        password,
        list(permissions),
        password_reset_required=password_reset_required,
    )


@pytest.fixture(scope='function')
def admin(db_session):
    """Allow-listed administrator with no permission rows."""
    return make_employee("admin")


@pytest.fixture(scope='function')
def clerk(db_session):
    """Front-desk clerk: signup, Food and Voucher visits, no Money."""
    return make_employee("clerk", [
        Permission.CUSTOMER_CREATION,
        Permission.FOOD_VISIT_ENTRY,
        Permission.VOUCHER_CREATION,
    ])


@pytest.fixture(scope='function')
def caseworker(db_session):
    """Every permission, but not on the admin allow-list."""
    return make_employee("caseworker", [p.value for p in Permission])


@pytest.fixture(scope='function')
def clerk_principal(clerk):
    return principal_for(clerk)


@pytest.fixture(scope='function')
def caseworker_principal(caseworker):
    return principal_for(caseworker)


@pytest.fixture(scope='function')
def customer(db_session, caseworker_principal):
    """A registered household signed up on 2024-01-01."""
    from casebook.services import customer_service

    return customer_service.create_customer(
        customer_payload(signup_date="2024-01-01", signup_time="09:00"),
        caseworker_principal,
    )


def customer_payload(**overrides):
    payload = {
        "name": "Maria Lopez",
        "address": "14 Orchard Lane",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "phone": "(217) 555-0142",
        "previous_application": False,
        "subsidized_housing": True,
        "household_members": [
            {"name": "Ana Lopez", "birthdate": "2015-06-02", "relationship": "Child"},
        ],
        "household_income": [
            {"income_type": "Wages", "amount": "1200.50"},
            {"income_type": "Food Stamps", "amount": "300"},
        ],
    }
    payload.update(overrides)
    return payload


def at(value: str):
    """Local wall-clock datetime from 'YYYY-MM-DD HH:MM'."""
    return parse_local_datetime(value.replace(" ", "T"))


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for an employee."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def count_customers() -> int:
    return db.session.query(Customer).count()
