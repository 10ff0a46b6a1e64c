"""One-time verification code store.

Codes are short fixed-width numbers bound to a (subject, purpose) pair, where
the subject is a lowercase email address. At most one unconsumed code exists
per pair; issuing a new one replaces the previous one. Consumption is a
single conditional UPDATE, so two concurrent verifications of the same code
cannot both succeed.
"""

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import (
    CODE_MAX_ATTEMPTS,
    CODE_RESEND_GRACE_SECONDS,
    EMAIL_VERIFICATION_TTL_MINUTES,
    PASSWORD_RESET_TTL_MINUTES,
    PASSWORD_RESET_WINDOW_MINUTES,
    VERIFICATION_CODE_LENGTH,
)
from core.audit import log_security_event
from core.clock import Clock, utcnow
from core.exceptions import ErrorKind, RateLimitedError
from models.verification_code import VerificationCodeModel

logger = logging.getLogger(__name__)


class CodePurpose(str, Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class CodeFailure(str, Enum):
    """Internal reason a verification failed. Only for logs and trusted callers."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


DEFAULT_TTL_MINUTES = {
    CodePurpose.EMAIL_VERIFICATION: EMAIL_VERIFICATION_TTL_MINUTES,
    CodePurpose.PASSWORD_RESET: PASSWORD_RESET_TTL_MINUTES,
}


@dataclass(frozen=True)
class IssuedCode:
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class VerificationOutcome:
    success: bool
    reason: Optional[CodeFailure] = None


@dataclass(frozen=True)
class ActiveCodeInfo:
    expires_at: datetime
    seconds_remaining: int
    resend_available_in: int
    attempts_remaining: int


class VerificationManager:
    """Issues, verifies and expires one-time codes using SQLAlchemy."""

    def __init__(
        self,
        db: Session,
        clock: Clock = utcnow,
        code_length: int = VERIFICATION_CODE_LENGTH,
        resend_grace_seconds: int = CODE_RESEND_GRACE_SECONDS,
        max_attempts: int = CODE_MAX_ATTEMPTS,
    ):
        """Initialize VerificationManager.

        Args:
            db: SQLAlchemy Session.
            clock: Returns the current naive UTC time.
            code_length: Number of digits per code.
            resend_grace_seconds: Remaining lifetime below which a new code
                may replace the active one.
            max_attempts: Wrong guesses tolerated per code.
        """
        self.db = db
        self.clock = clock
        self.code_length = code_length
        self.resend_grace_seconds = resend_grace_seconds
        self.max_attempts = max_attempts

    @staticmethod
    def _normalize(subject: str) -> str:
        return subject.strip().lower()

    def generate_code(self) -> str:
        """Uniformly random code, zero-padded to code_length digits."""
        return f"{secrets.randbelow(10 ** self.code_length):0{self.code_length}d}"

    def _active_model(
        self, subject: str, purpose: CodePurpose, now: datetime
    ) -> Optional[VerificationCodeModel]:
        return (
            self.db.query(VerificationCodeModel)
            .filter(
                VerificationCodeModel.subject == subject,
                VerificationCodeModel.purpose == purpose.value,
                VerificationCodeModel.consumed.is_(False),
                VerificationCodeModel.expires_at > now,
                VerificationCodeModel.attempts < self.max_attempts,
            )
            .first()
        )

    def issue(
        self,
        subject: str,
        purpose: Union[CodePurpose, str],
        ttl_minutes: Optional[int] = None,
        request_ip: Optional[str] = None,
    ) -> IssuedCode:
        """Issue a new code for (subject, purpose), replacing any previous one.

        Args:
            subject: Email address the code is bound to.
            purpose: What the code authorizes.
            ttl_minutes: Lifetime; defaults per purpose.
            request_ip: Requesting address, stored for the audit trail.

        Returns:
            IssuedCode with the plain code and its expiry. Delivery is the
            caller's job.

        Raises:
            RateLimitedError: An active code still has more than the grace
                period left, or a concurrent request issued one first.
        """
        subject = self._normalize(subject)
        purpose = CodePurpose(purpose)
        now = self.clock()

        active = self._active_model(subject, purpose, now)
        if active is not None:
            remaining = (active.expires_at - now).total_seconds()
            if remaining > self.resend_grace_seconds:
                retry_after = math.ceil(remaining - self.resend_grace_seconds)
                log_security_event(
                    "CODE_ALREADY_ACTIVE",
                    f"{purpose.value} code requested for {subject} with {int(remaining)}s left",
                )
                raise RateLimitedError(
                    ErrorKind.CODE_ALREADY_SENT,
                    f"A code was already sent. A new one can be requested in {retry_after} seconds.",
                    retry_after=retry_after,
                )

        # Only rows we have seen (the observed active code or dead ones) are
        # replaced; a code inserted concurrently trips the unique index instead.
        stale = [
            VerificationCodeModel.expires_at <= now,
            VerificationCodeModel.attempts >= self.max_attempts,
        ]
        if active is not None:
            stale.append(VerificationCodeModel.id == active.id)
        self.db.query(VerificationCodeModel).filter(
            VerificationCodeModel.subject == subject,
            VerificationCodeModel.purpose == purpose.value,
            VerificationCodeModel.consumed.is_(False),
            or_(*stale),
        ).delete(synchronize_session=False)

        ttl = ttl_minutes if ttl_minutes is not None else DEFAULT_TTL_MINUTES[purpose]
        model = VerificationCodeModel(
            subject=subject,
            purpose=purpose.value,
            code=self.generate_code(),
            attempts=0,
            consumed=False,
            expires_at=now + timedelta(minutes=ttl),
            created_at=now,
            request_ip=request_ip,
        )
        self.db.add(model)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise RateLimitedError(
                ErrorKind.CODE_ALREADY_SENT,
                "A code was just sent to this address.",
                retry_after=self.resend_grace_seconds,
            ) from e

        logger.info("Issued %s code for %s, expires %s", purpose.value, subject, model.expires_at)
        return IssuedCode(code=model.code, expires_at=model.expires_at)

    def verify(
        self, subject: str, purpose: Union[CodePurpose, str], submitted: str
    ) -> VerificationOutcome:
        """Check a submitted code and consume it on success.

        Fails closed. The reason in the outcome is for logging; callers facing
        unauthenticated users should only report a generic failure.

        Args:
            subject: Email address the code was issued for.
            purpose: What the code authorizes.
            submitted: Code typed by the user.

        Returns:
            VerificationOutcome.
        """
        subject = self._normalize(subject)
        purpose = CodePurpose(purpose)
        submitted = str(submitted).strip()
        now = self.clock()

        model = (
            self.db.query(VerificationCodeModel)
            .filter(
                VerificationCodeModel.subject == subject,
                VerificationCodeModel.purpose == purpose.value,
                VerificationCodeModel.consumed.is_(False),
            )
            .order_by(VerificationCodeModel.created_at.desc())
            .first()
        )
        if model is None:
            return self._fail(subject, purpose, CodeFailure.NOT_FOUND)
        if model.expires_at <= now:
            return self._fail(subject, purpose, CodeFailure.EXPIRED)
        if model.attempts >= self.max_attempts:
            return self._fail(subject, purpose, CodeFailure.TOO_MANY_ATTEMPTS)

        if not secrets.compare_digest(model.code, submitted):
            self.db.query(VerificationCodeModel).filter(
                VerificationCodeModel.id == model.id
            ).update(
                {VerificationCodeModel.attempts: VerificationCodeModel.attempts + 1},
                synchronize_session=False,
            )
            self.db.commit()
            return self._fail(subject, purpose, CodeFailure.MISMATCH)

        consumed = (
            self.db.query(VerificationCodeModel)
            .filter(
                VerificationCodeModel.id == model.id,
                VerificationCodeModel.consumed.is_(False),
                VerificationCodeModel.expires_at > now,
                VerificationCodeModel.attempts < self.max_attempts,
            )
            .update(
                {
                    VerificationCodeModel.consumed: True,
                    VerificationCodeModel.consumed_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if consumed != 1:
            # Another request consumed or replaced it first
            return self._fail(subject, purpose, CodeFailure.NOT_FOUND)

        logger.info("Consumed %s code for %s", purpose.value, subject)
        return VerificationOutcome(success=True)

    @staticmethod
    def _fail(subject: str, purpose: CodePurpose, reason: CodeFailure) -> VerificationOutcome:
        log_security_event(
            "CODE_VERIFICATION_FAILED",
            f"{purpose.value} code for {subject}: {reason.value}",
        )
        return VerificationOutcome(success=False, reason=reason)

    def peek_active(
        self, subject: str, purpose: Union[CodePurpose, str]
    ) -> Optional[ActiveCodeInfo]:
        """Read-only status of the active code, if any."""
        subject = self._normalize(subject)
        purpose = CodePurpose(purpose)
        now = self.clock()
        model = self._active_model(subject, purpose, now)
        if model is None:
            return None
        remaining = max(0, math.ceil((model.expires_at - now).total_seconds()))
        return ActiveCodeInfo(
            expires_at=model.expires_at,
            seconds_remaining=remaining,
            resend_available_in=max(0, remaining - self.resend_grace_seconds),
            attempts_remaining=max(0, self.max_attempts - model.attempts),
        )

    def consume_recent(
        self,
        subject: str,
        purpose: Union[CodePurpose, str],
        code: str,
        window_minutes: int = PASSWORD_RESET_WINDOW_MINUTES,
    ) -> bool:
        """Whether this exact code was successfully verified within the window."""
        subject = self._normalize(subject)
        purpose = CodePurpose(purpose)
        since = self.clock() - timedelta(minutes=window_minutes)
        candidates = (
            self.db.query(VerificationCodeModel)
            .filter(
                VerificationCodeModel.subject == subject,
                VerificationCodeModel.purpose == purpose.value,
                VerificationCodeModel.consumed.is_(True),
                VerificationCodeModel.consumed_at > since,
            )
            .all()
        )
        submitted = str(code).strip()
        return any(secrets.compare_digest(c.code, submitted) for c in candidates)

    def cancel(self, subject: str, purpose: Union[CodePurpose, str]) -> bool:
        """Drop the unconsumed code for the pair. Returns True if one existed."""
        deleted = (
            self.db.query(VerificationCodeModel)
            .filter(
                VerificationCodeModel.subject == self._normalize(subject),
                VerificationCodeModel.purpose == CodePurpose(purpose).value,
                VerificationCodeModel.consumed.is_(False),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0

    def purge(self, subject: str, purpose: Union[CodePurpose, str]) -> int:
        """Delete every code, consumed or not, for the pair."""
        deleted = (
            self.db.query(VerificationCodeModel)
            .filter(
                VerificationCodeModel.subject == self._normalize(subject),
                VerificationCodeModel.purpose == CodePurpose(purpose).value,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def cleanup_expired(self, window_minutes: int = PASSWORD_RESET_WINDOW_MINUTES) -> int:
        """Delete expired codes that can no longer serve any flow.

        Consumed codes are kept for the password reset window after use.

        Returns:
            Number of rows deleted.
        """
        now = self.clock()
        deleted = (
            self.db.query(VerificationCodeModel)
            .filter(
                VerificationCodeModel.expires_at < now,
                or_(
                    VerificationCodeModel.consumed.is_(False),
                    VerificationCodeModel.consumed_at < now - timedelta(minutes=window_minutes),
                ),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info("Removed %d expired verification codes", deleted)
        return deleted
