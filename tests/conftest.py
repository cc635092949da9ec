"""
Shared pytest fixtures for the Dealer Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - dealer / other_dealer: Pre-created Dealer entities
    - dealer_user / other_dealer_user / admin_user: Pre-created Users
    - auth_headers: Bearer header factory for a User
    - claim_payload: Valid create-claim body factory
"""

import pytest

from dealer_portal import create_app
from dealer_portal.models import db as _db
from dealer_portal.models.auth import Dealer, User
from dealer_portal.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Identity helpers ─────────────────────────────────────────────────────


def _make_dealer(code: str = "D-100", name: str = "Lakeside RV") -> Dealer:
    d = Dealer(name=name, code=code)
    _db.session.add(d)
    _db.session.flush()
    return d


def _make_user(email: str, role: str = "dealer_user", dealer: Dealer | None = None,
              is_active: bool = True) -> User:
    u = User(
        email=email,
        first_name=email.split("@")[0].title(),
        last_name="Tester",
        role=role,
        dealer_id=dealer.id if dealer else None,
        is_active=is_active,
    )
    _db.session.add(u)
    _db.session.flush()
    return u


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def dealer():
    d = _make_dealer()
    _db.session.commit()
    return d


@pytest.fixture()
def other_dealer():
    d = _make_dealer(code="D-200", name="Summit Campers")
    _db.session.commit()
    return d


@pytest.fixture()
def dealer_user(dealer):
    u = _make_user("dana@lakeside.test", dealer=dealer)
    _db.session.commit()
    return u


@pytest.fixture()
def other_dealer_user(other_dealer):
    u = _make_user("omar@summit.test", dealer=other_dealer)
    _db.session.commit()
    return u


@pytest.fixture()
def admin_user():
    u = _make_user("riley@manufacturer.test", role="admin")
    _db.session.commit()
    return u


@pytest.fixture()
def auth_headers():
    """Factory: Bearer header for *user*."""
    def _headers(user: User) -> dict:
        token = generate_access_token(user.id, user.role, user.dealer_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture()
def claim_payload():
    """Factory: minimal valid create-claim body, overridable per test."""
    def _payload(**overrides) -> dict:
        body = {
            "claim_type": "product_defect",
            "product_name": "Awning Motor 12V",
            "serial_number": "AM-55501",
            "issue_description": "Motor stalls halfway when extending the awning.",
            "labor_hours": 2,
            "labor_rate": 75,
            "shipping_amount": 10,
            "items": [
                {"part_name": "Awning motor", "part_number": "AWN-12", "quantity": 1,
                 "unit_cost": 120, "issue_type": "defective"},
            ],
        }
        body.update(overrides)
        return body
    return _payload
