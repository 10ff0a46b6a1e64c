"""Concurrency tests.

Each worker thread gets its own session against the shared SQLite file, so
these exercise the conditional updates and the answer version column the
way concurrent requests would.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from config import MAX_LOGIN_ATTEMPTS
from core.exceptions import (
    ConflictError,
    ErrorKind,
    RateLimitedError,
    UnauthorizedError,
)
from helpers import ANSWER_TEXT, EDITED_TEXT
from models.answer import AnswerModel
from models.question import QuestionModel
from models.user import UserModel
from utils.moderation_manager import ModerationManager
from utils.user_manager import UserManager
from utils.verification_manager import CodePurpose, VerificationManager

pytestmark = [pytest.mark.integration, pytest.mark.slow]

WORKERS = 8


def _run_concurrently(session_factory, work, count=WORKERS):
    """Run work(session, index) on count threads released together.

    Returns:
        List of (result, exception) pairs, one per worker.
    """
    barrier = threading.Barrier(count)

    def worker(index):
        session = session_factory()
        try:
            barrier.wait()
            return work(session, index), None
        except Exception as exc:
            return None, exc
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(worker, range(count)))


def _load(session, account):
    return session.query(UserModel).filter(UserModel.user_id == account.user_id).one()


def test_code_is_consumed_exactly_once(session_factory, db, clock):
    email = "race@example.com"
    issued = VerificationManager(db, clock=clock).issue(email, CodePurpose.EMAIL_VERIFICATION)

    def verify(session, _):
        return VerificationManager(session, clock=clock).verify(
            email, CodePurpose.EMAIL_VERIFICATION, issued.code
        )

    outcomes = _run_concurrently(session_factory, verify)
    assert all(exc is None for _, exc in outcomes)
    assert sum(1 for outcome, _ in outcomes if outcome.success) == 1


def test_one_accept_wins(session_factory, db, clock, make_account, make_question):
    admin = make_account("admin")
    asker = make_account("user")
    question = make_question(asker)
    moderation = ModerationManager(db, clock=clock)

    answer_ids = []
    for _ in range(4):
        expert = make_account("expert")
        answer = moderation.create_answer(expert, question.question_id, ANSWER_TEXT).answer
        moderation.approve(answer.answer_id, admin)
        answer_ids.append(answer.answer_id)

    def accept(session, index):
        manager = ModerationManager(session, clock=clock)
        return manager.accept(answer_ids[index], _load(session, asker))

    outcomes = _run_concurrently(session_factory, accept, count=len(answer_ids))
    winners = [result for result, exc in outcomes if exc is None]
    losers = [exc for _, exc in outcomes if exc is not None]
    assert len(winners) == 1
    assert all(isinstance(exc, ConflictError) for exc in losers)
    assert {exc.kind for exc in losers} <= {ErrorKind.ALREADY_ACCEPTED, ErrorKind.CONCURRENT_MODIFICATION}

    db.expire_all()
    accepted = db.query(AnswerModel).filter(AnswerModel.is_accepted.is_(True)).all()
    assert [a.answer_id for a in accepted] == [winners[0].answer.answer_id]
    ratings = sorted(u.rating for u in db.query(UserModel).filter(UserModel.role == "expert"))
    assert ratings == [0, 0, 0, moderation.reputation_bonus]


def test_approve_and_reject_race_keeps_aggregates_consistent(
    session_factory, db, clock, make_account, make_question
):
    admin = make_account("admin")
    expert = make_account("expert")
    question = make_question(make_account("user"))
    answer = ModerationManager(db, clock=clock).create_answer(
        expert, question.question_id, ANSWER_TEXT
    ).answer

    def review(session, index):
        manager = ModerationManager(session, clock=clock)
        return manager.moderate(answer.answer_id, _load(session, admin), approve=index % 2 == 0)

    outcomes = _run_concurrently(session_factory, review, count=4)
    for _, exc in outcomes:
        assert exc is None or isinstance(exc, ConflictError)

    db.expire_all()
    final = db.query(AnswerModel).filter(AnswerModel.answer_id == answer.answer_id).one()
    row = db.query(QuestionModel).filter(QuestionModel.question_id == question.question_id).one()
    expected = 1 if final.status == "approved" else 0
    assert row.answers_count == expected
    assert row.status == ("answered" if expected else "pending")
    assert _load(db, expert).total_answers == expected


def test_parallel_answers_from_one_expert(session_factory, db, clock, make_account, make_question):
    expert = make_account("expert")
    question = make_question(make_account("user"))

    def create(session, index):
        manager = ModerationManager(session, clock=clock)
        return manager.create_answer(_load(session, expert), question.question_id, EDITED_TEXT)

    outcomes = _run_concurrently(session_factory, create, count=4)
    assert sum(1 for _, exc in outcomes if exc is None) == 1
    for _, exc in outcomes:
        if exc is not None:
            assert isinstance(exc, ConflictError)
            assert exc.kind == ErrorKind.ALREADY_ANSWERED
    assert db.query(AnswerModel).count() == 1


def test_parallel_failed_logins_lock_once(session_factory, db, clock, make_account):
    account = make_account(email="target@example.com")

    def attempt(session, _):
        UserManager(session, clock=clock).login("target@example.com", "wrong-password")

    outcomes = _run_concurrently(session_factory, attempt, count=MAX_LOGIN_ATTEMPTS * 2)
    for _, exc in outcomes:
        assert isinstance(exc, (UnauthorizedError, RateLimitedError))

    db.expire_all()
    locked = _load(db, account)
    assert locked.lock_until is not None
    assert locked.lock_until > clock()
    assert locked.login_attempts == 0
