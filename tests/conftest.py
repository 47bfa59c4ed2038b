import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "development"
os.environ["SMTP_SERVER"] = ""
os.environ["EXPOSE_VERIFY_TOKEN"] = "true"

from datetime import timedelta
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from esahayak.core.security import now_utc
from esahayak.db.session import init_db, make_engine
from esahayak.main import app
from esahayak.schemas.buyer import BuyerCreate
from esahayak.services import auth_adapter
from esahayak.services import buyers as buyer_service
from esahayak.services.rate_limit import ALL_LIMITERS


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    app.state.session_factory = factory
    yield factory
    app.state.session_factory = None


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture(autouse=True)
def reset_limiters():
    for limiter in ALL_LIMITERS:
        limiter.reset()
    yield
    for limiter in ALL_LIMITERS:
        limiter.reset()


@pytest.fixture
def client(session_factory):
    with TestClient(app) as c:
        yield c


def sign_in(factory, email: str, name: str = "Test Agent", expires_in: timedelta = timedelta(days=1)):
    """Create (or reuse) a verified user plus a session; returns (user_id, token)."""
    db = factory()
    try:
        user = auth_adapter.get_user_by_email(db, email)
        if user is None:
            user = auth_adapter.create_user(db, email=email, name=name, email_verified=now_utc())
        sess = auth_adapter.create_session(db, user.id, now_utc() + expires_in)
        user_id, token = user.id, sess.session_token
        db.commit()
        return user_id, token
    finally:
        db.close()


@pytest.fixture
def make_client(session_factory):
    """Build a TestClient carrying a session cookie for ``email``."""
    opened = []

    def _make(email: str = "agent@example.com", **kwargs) -> TestClient:
        user_id, token = sign_in(session_factory, email, **kwargs)
        c = TestClient(app)
        c.cookies.set("session-token", token)
        c.user_id = user_id
        c.session_token = token
        opened.append(c)
        return c

    yield _make
    for c in opened:
        c.close()


@pytest.fixture
def owner(make_client):
    return make_client("owner@example.com", name="Owner")


@pytest.fixture
def buyer_payload():
    def _payload(**overrides: Any) -> Dict[str, Any]:
        data = {
            "fullName": "Rohit Sharma",
            "email": "rohit@example.com",
            "phone": "9876543210",
            "city": "Chandigarh",
            "propertyType": "Plot",
            "purpose": "Buy",
            "budgetMin": 5000000,
            "budgetMax": 7000000,
            "timeline": "0-3m",
            "source": "Website",
            "notes": "",
            "tags": ["hot"],
        }
        data.update(overrides)
        return {k: v for k, v in data.items() if v is not None}

    return _payload


@pytest.fixture
def seed_buyer(session_factory, buyer_payload):
    """Insert a buyer directly (bypasses the mutation rate limit)."""
    def _seed(owner_id, **overrides):
        db = session_factory()
        try:
            buyer = buyer_service.create_buyer(db, BuyerCreate.model_validate(buyer_payload(**overrides)), owner_id)
            buyer_id = buyer.id
            db.commit()
            return buyer_id
        finally:
            db.close()

    return _seed
