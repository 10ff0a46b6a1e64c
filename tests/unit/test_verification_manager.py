"""Unit tests for VerificationManager."""

import pytest

from core.exceptions import ErrorKind, RateLimitedError
from models.verification_code import VerificationCodeModel
from utils.verification_manager import CodeFailure, CodePurpose

pytestmark = pytest.mark.unit

EMAIL = "someone@example.com"


class TestIssue:
    """Test code issuance and the resend policy."""

    def test_code_is_fixed_width_digits(self, codes, clock):
        issued = codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert len(issued.code) == 6
        assert issued.code.isdigit()
        assert (issued.expires_at - clock()).total_seconds() == 10 * 60

    def test_password_reset_ttl(self, codes, clock):
        issued = codes.issue(EMAIL, CodePurpose.PASSWORD_RESET)
        assert (issued.expires_at - clock()).total_seconds() == 15 * 60

    def test_subject_is_normalized(self, codes, db):
        codes.issue("  SomeOne@Example.COM ", CodePurpose.EMAIL_VERIFICATION)
        row = db.query(VerificationCodeModel).one()
        assert row.subject == EMAIL

    def test_reissue_within_grace_is_rate_limited(self, codes):
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        with pytest.raises(RateLimitedError) as exc:
            codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert exc.value.kind == ErrorKind.CODE_ALREADY_SENT
        # 600s lifetime minus the 60s resend grace
        assert exc.value.retry_after == 540

    def test_reissue_after_grace_replaces_old_code(self, codes, clock, db, monkeypatch):
        sequence = iter(["111111", "222222"])
        monkeypatch.setattr(codes, "generate_code", lambda: next(sequence))

        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        clock.advance(seconds=541)
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)

        assert db.query(VerificationCodeModel).count() == 1
        assert not codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, "111111").success
        assert codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, "222222").success

    def test_purposes_are_independent(self, codes):
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        codes.issue(EMAIL, CodePurpose.PASSWORD_RESET)

    def test_expired_code_does_not_block_issue(self, codes, clock):
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        clock.advance(minutes=11)
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)


class TestVerify:
    """Test verification outcomes."""

    def test_correct_code_succeeds_once(self, codes):
        issued = codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, issued.code).success

        second = codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, issued.code)
        assert not second.success
        assert second.reason == CodeFailure.NOT_FOUND

    def test_no_code(self, codes):
        outcome = codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, "123456")
        assert outcome.reason == CodeFailure.NOT_FOUND

    def test_wrong_purpose(self, codes):
        issued = codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        outcome = codes.verify(EMAIL, CodePurpose.PASSWORD_RESET, issued.code)
        assert outcome.reason == CodeFailure.NOT_FOUND

    def test_expired(self, codes, clock):
        issued = codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        clock.advance(minutes=10)
        outcome = codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, issued.code)
        assert outcome.reason == CodeFailure.EXPIRED

    def test_mismatch_counts_attempts(self, codes, monkeypatch):
        monkeypatch.setattr(codes, "generate_code", lambda: "123456")
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)

        for _ in range(5):
            outcome = codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, "000000")
            assert outcome.reason == CodeFailure.MISMATCH

        outcome = codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, "123456")
        assert not outcome.success
        assert outcome.reason == CodeFailure.TOO_MANY_ATTEMPTS

    def test_exhausted_code_can_be_replaced(self, codes, monkeypatch):
        monkeypatch.setattr(codes, "generate_code", lambda: "123456")
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        for _ in range(5):
            codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, "000000")

        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, "123456").success

    def test_whitespace_in_submission_is_ignored(self, codes):
        issued = codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, f" {issued.code} ").success


class TestPeekActive:
    """Test read-only status reporting."""

    def test_none_without_code(self, codes):
        assert codes.peek_active(EMAIL, CodePurpose.EMAIL_VERIFICATION) is None

    def test_reports_remaining_time(self, codes, clock):
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        clock.advance(seconds=100)

        info = codes.peek_active(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert info.seconds_remaining == 500
        assert info.resend_available_in == 440
        assert info.attempts_remaining == 5

    def test_consumed_code_is_not_active(self, codes):
        issued = codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        codes.verify(EMAIL, CodePurpose.EMAIL_VERIFICATION, issued.code)
        assert codes.peek_active(EMAIL, CodePurpose.EMAIL_VERIFICATION) is None


class TestHousekeeping:
    """Test consume_recent, cancel, purge and cleanup."""

    def test_consume_recent_within_window(self, codes, clock):
        issued = codes.issue(EMAIL, CodePurpose.PASSWORD_RESET)
        codes.verify(EMAIL, CodePurpose.PASSWORD_RESET, issued.code)

        clock.advance(minutes=4)
        assert codes.consume_recent(EMAIL, CodePurpose.PASSWORD_RESET, issued.code)
        clock.advance(minutes=2)
        assert not codes.consume_recent(EMAIL, CodePurpose.PASSWORD_RESET, issued.code)

    def test_consume_recent_requires_verification(self, codes):
        issued = codes.issue(EMAIL, CodePurpose.PASSWORD_RESET)
        assert not codes.consume_recent(EMAIL, CodePurpose.PASSWORD_RESET, issued.code)

    def test_cancel(self, codes):
        codes.issue(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert codes.cancel(EMAIL, CodePurpose.EMAIL_VERIFICATION)
        assert codes.peek_active(EMAIL, CodePurpose.EMAIL_VERIFICATION) is None
        assert not codes.cancel(EMAIL, CodePurpose.EMAIL_VERIFICATION)

    def test_purge_removes_consumed_codes(self, codes, db):
        issued = codes.issue(EMAIL, CodePurpose.PASSWORD_RESET)
        codes.verify(EMAIL, CodePurpose.PASSWORD_RESET, issued.code)
        assert codes.purge(EMAIL, CodePurpose.PASSWORD_RESET) == 1
        assert db.query(VerificationCodeModel).count() == 0

    def test_cleanup_expired(self, codes, clock, db):
        codes.issue("a@example.com", CodePurpose.EMAIL_VERIFICATION)
        codes.issue("b@example.com", CodePurpose.PASSWORD_RESET)
        clock.advance(minutes=12)

        assert codes.cleanup_expired() == 1
        remaining = db.query(VerificationCodeModel).one()
        assert remaining.subject == "b@example.com"
