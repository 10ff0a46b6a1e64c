"""
Root test configuration.

Test organization:
- unit/        Managers against a throwaway SQLite file, fake clock and gateways
- integration/ HTTP routes through TestClient, and thread-level concurrency

Run specific levels:
    pytest tests/unit -v
    pytest tests/integration -v
    pytest tests -v
"""

import os

# Must be set before any project module reads config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.pop("GOOGLE_CLIENT_ID", None)
os.environ.pop("MIRROR_PUBLISH_URL", None)
os.environ.pop("MAIL_RELAY_URL", None)

import uuid

import pytest
from sqlalchemy.orm import sessionmaker

from core.database import init_db, make_engine
from helpers import (
    PASSWORD_HASH,
    FakeClock,
    RecordingMail,
    RecordingMirror,
    StubFederatedVerifier,
)
from models.user import UserModel
from utils.question_manager import QuestionManager


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast isolated tests")
    config.addinivalue_line("markers", "integration: Component boundary tests")
    config.addinivalue_line("markers", "slow: Tests that take > 1s")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    """Fresh file-backed SQLite database per test."""
    engine = make_engine(f"sqlite:///{tmp_path / 'forum.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def mirror():
    return RecordingMirror()


@pytest.fixture
def mail():
    return RecordingMail()


@pytest.fixture
def federated():
    return StubFederatedVerifier()


@pytest.fixture
def make_account(db, clock):
    """Factory for accounts inserted straight into the database."""

    def make(role="user", email=None, username=None, password_hash=PASSWORD_HASH, **fields):
        user_id = str(uuid.uuid4())
        values = dict(
            user_id=user_id,
            email=email or f"{role}-{user_id[:8]}@example.com",
            username=username,
            password_hash=password_hash,
            provider="local",
            role=role,
            is_email_verified=True,
            is_active=True,
            is_banned=False,
            login_attempts=0,
            rating=0,
            total_answers=0,
            created_at=clock(),
        )
        values.update(fields)
        model = UserModel(**values)
        db.add(model)
        db.commit()
        db.refresh(model)
        return model

    return make


@pytest.fixture
def make_question(db, clock):
    """Factory for questions created through QuestionManager."""

    def make(author, title="How do I serialize concurrent writes?"):
        return QuestionManager(db, clock=clock).create_question(
            author,
            title,
            "Two requests race to update the same row. What is the safest approach?",
        )

    return make
