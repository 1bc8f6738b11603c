"""
Pytest fixtures for the C-Space authorization backend tests.

Provides an in-memory database, branch/employee factories, and session and
kiosk header helpers.
"""

import pytest

from cspace import create_app
from cspace.extensions import db
from cspace.models import Branch, Employee
from cspace.services import auth_service
from cspace.services.kiosk_service import KIOSK_HEADER_NAME, create_kiosk_token
from cspace.services.lockout_service import build_guard
from cspace.services.session_service import issue_session_token, principal_for_employee


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret',
        'JWT_SECRET_KEY': 'test-jwt-secret',
        'BCRYPT_ROUNDS': 4,
        'PIN_BCRYPT_ROUNDS': 4,
        'PIN_LOCKOUT_BACKEND': 'memory',
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
    """Create fresh database (and fresh PIN lockout state) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        app.extensions["pin_lockout_guard"] = build_guard(app.config)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_branch(db_session):
    def _make(branch_id="yunusabad", name=None, kiosk_password=None, is_active=True):
        branch = Branch(
            id=branch_id,
            name=name or branch_id.title(),
            is_active=is_active,
            reception_password_hash=(
                auth_service.hash_branch_password(kiosk_password) if kiosk_password else None
            ),
        )
        db_session.add(branch)
        db_session.commit()
        return branch
    return _make


@pytest.fixture(scope='function')
def make_employee(db_session):
    counter = {"n": 0}

    def _make(full_name=None, role="employee", branch_id=None, pin=None, password=TEST_PASSWORD,
              email=None, status="active"):
        counter["n"] += 1
        n = counter["n"]
        employee = Employee(
            full_name=full_name or f"Employee {n}",
            email=email or f"employee{n}@cspace.test",
            role=role,
            branch_id=branch_id,
            password_hash=auth_service.hash_password(password) if password else None,
            operator_pin_hash=auth_service.hash_pin(pin) if pin else None,
            status=status,
        )
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make


@pytest.fixture(scope='function')
def yunusabad(make_branch):
    return make_branch("yunusabad", "Yunusabad", kiosk_password="Reception2024")


@pytest.fixture(scope='function')
def chilanzar(make_branch):
    return make_branch("chilanzar", "Chilanzar", kiosk_password="Reception2024")


def session_headers(employee) -> dict:
    """Authorization header carrying a fresh session token for employee."""
    token, _ = issue_session_token(principal_for_employee(employee))
    return {'Authorization': f'Bearer {token}'}


def kiosk_headers(branch_id: str) -> dict:
    token, _ = create_kiosk_token(branch_id)
    return {KIOSK_HEADER_NAME: token}


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get a session token by logging in."""
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    if response.status_code == 200:
        return response.json.get('token')
    return None
