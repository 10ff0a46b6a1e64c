"""
Integration test fixtures.

The FastAPI app runs in-process through TestClient with the database,
clock and outbound gateways swapped for the per-test fakes.
"""

import pytest
from fastapi.testclient import TestClient

from app import app
from core.database import get_db
from core.dependencies import (
    get_clock,
    get_federated_verifier,
    get_mail_gateway,
    get_mirror_gateway,
)
from utils.token_service import IdentityTokenService


@pytest.fixture
def client(session_factory, clock, mirror, mail, federated, monkeypatch):
    """TestClient wired to the per-test database and fakes."""
    monkeypatch.setattr("utils.user_manager.BCRYPT_ROUNDS", 4)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_federated_verifier] = lambda: federated
    app.dependency_overrides[get_mirror_gateway] = lambda: mirror
    app.dependency_overrides[get_mail_gateway] = lambda: mail
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(db, clock):
    """Build a bearer header for an account."""
    tokens = IdentityTokenService(db, clock=clock)

    def headers(account):
        return {"Authorization": f"Bearer {tokens.mint(account)}"}

    return headers
