"""
Unit test fixtures.

Managers are wired to the per-test database, the fake clock and the
recording gateways from the root conftest.
"""

import pytest

from utils.account_guard import AccountGuard
from utils.moderation_manager import ModerationManager
from utils.token_service import IdentityTokenService
from utils.user_manager import UserManager
from utils.verification_manager import VerificationManager


@pytest.fixture
def codes(db, clock):
    return VerificationManager(db, clock=clock)


@pytest.fixture
def guard(db, clock):
    return AccountGuard(db, clock=clock)


@pytest.fixture
def tokens(db, clock, federated):
    return IdentityTokenService(db, federated_verifier=federated, clock=clock)


@pytest.fixture
def users(db, clock, mail, tokens, monkeypatch):
    monkeypatch.setattr("utils.user_manager.BCRYPT_ROUNDS", 4)
    return UserManager(db, mail=mail, tokens=tokens, clock=clock)


@pytest.fixture
def moderation(db, clock, mirror):
    return ModerationManager(db, mirror=mirror, clock=clock)


@pytest.fixture
def cast(make_account, make_question):
    """Admin, expert, second expert and asker, plus one question by the asker."""
    admin = make_account("admin")
    expert = make_account("expert")
    other_expert = make_account("expert")
    asker = make_account("user")
    question = make_question(asker)
    return {
        "admin": admin,
        "expert": expert,
        "other_expert": other_expert,
        "asker": asker,
        "question": question,
    }
