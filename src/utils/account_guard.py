"""Account security guard.

Tracks failed-login counters and lockout windows and evaluates whether an
account may act at all. Counter updates are single SQL statements so that
concurrent failed logins can neither under-count nor extend a running lock.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from config import LOCKOUT_MINUTES, MAX_LOGIN_ATTEMPTS
from core.audit import log_security_event, log_user_action
from core.clock import Clock, utcnow
from core.exceptions import (
    ErrorKind,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
)
from models.user import UserModel

logger = logging.getLogger(__name__)


class StatusKind(str, Enum):
    VALID = "valid"
    INACTIVE = "inactive"
    LOCKED = "locked"
    BANNED = "banned"


@dataclass(frozen=True)
class AccountStatus:
    """Result of evaluating an account's standing."""

    kind: StatusKind
    remaining: Optional[timedelta] = None  # LOCKED
    permanent: bool = False  # BANNED
    until: Optional[datetime] = None  # BANNED, temporary
    reason: Optional[str] = None  # BANNED

    @property
    def is_valid(self) -> bool:
        return self.kind is StatusKind.VALID


class AccountGuard:
    """Lockout bookkeeping and status gate for accounts."""

    def __init__(
        self,
        db: Session,
        clock: Clock = utcnow,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        lockout_minutes: int = LOCKOUT_MINUTES,
    ):
        """Initialize AccountGuard.

        Args:
            db: SQLAlchemy Session.
            clock: Returns the current naive UTC time.
            max_attempts: Failed logins that trigger a lock.
            lockout_minutes: Length of a lock.
        """
        self.db = db
        self.clock = clock
        self.max_attempts = max_attempts
        self.lockout = timedelta(minutes=lockout_minutes)

    @staticmethod
    def _not_locked(now: datetime):
        return or_(UserModel.lock_until.is_(None), UserModel.lock_until <= now)

    def _get(self, account_id: str) -> UserModel:
        model = self.db.query(UserModel).filter(UserModel.user_id == account_id).first()
        if model is None:
            raise NotFoundError(ErrorKind.USER_NOT_FOUND, f"User '{account_id}' not found")
        return model

    def record_failed_attempt(self, account_id: str) -> bool:
        """Count a failed login and lock the account once the threshold is hit.

        Attempts made while the account is locked are ignored, so they never
        extend the lock. Reaching the threshold resets the counter; the lock
        itself now carries the state.

        Args:
            account_id: Account that failed to authenticate.

        Returns:
            True if the account is locked after this attempt.
        """
        now = self.clock()
        counted = (
            self.db.query(UserModel)
            .filter(UserModel.user_id == account_id, self._not_locked(now))
            .update(
                {UserModel.login_attempts: UserModel.login_attempts + 1},
                synchronize_session=False,
            )
        )
        locked = 0
        if counted:
            locked = (
                self.db.query(UserModel)
                .filter(
                    UserModel.user_id == account_id,
                    UserModel.login_attempts >= self.max_attempts,
                    self._not_locked(now),
                )
                .update(
                    {
                        UserModel.lock_until: now + self.lockout,
                        UserModel.login_attempts: 0,
                    },
                    synchronize_session=False,
                )
            )
        self.db.commit()
        if locked:
            log_security_event(
                "ACCOUNT_LOCKED",
                f"Locked for {self.lockout} after {self.max_attempts} failed logins",
                account_id,
            )
        return self.is_locked(account_id)

    def record_success(self, account_id: str) -> None:
        """Reset the failure counter and clear an expired lock."""
        now = self.clock()
        self.db.query(UserModel).filter(
            UserModel.user_id == account_id, self._not_locked(now)
        ).update(
            {UserModel.login_attempts: 0, UserModel.lock_until: None},
            synchronize_session=False,
        )
        self.db.commit()

    def _lock_until(self, account_id: str) -> Optional[datetime]:
        return (
            self.db.query(UserModel.lock_until)
            .filter(UserModel.user_id == account_id)
            .scalar()
        )

    def is_locked(self, account_id: str) -> bool:
        lock_until = self._lock_until(account_id)
        return lock_until is not None and lock_until > self.clock()

    def time_remaining(self, account_id: str) -> timedelta:
        lock_until = self._lock_until(account_id)
        if lock_until is None:
            return timedelta(0)
        return max(timedelta(0), lock_until - self.clock())

    def evaluate_status(self, account: UserModel) -> AccountStatus:
        """Evaluate an account in fixed order: inactive, locked, banned, valid.

        A lock is reported before a ban because it resolves on its own.
        An expired temporary ban is lifted on the record.
        """
        now = self.clock()
        if not account.is_active:
            return AccountStatus(kind=StatusKind.INACTIVE)

        if account.lock_until is not None and account.lock_until > now:
            return AccountStatus(kind=StatusKind.LOCKED, remaining=account.lock_until - now)

        if account.is_banned:
            if account.banned_until is None:
                return AccountStatus(
                    kind=StatusKind.BANNED, permanent=True, reason=account.banned_reason
                )
            if account.banned_until > now:
                return AccountStatus(
                    kind=StatusKind.BANNED,
                    until=account.banned_until,
                    reason=account.banned_reason,
                )
            account.is_banned = False
            account.banned_until = None
            account.banned_reason = None
            self.db.commit()
            log_user_action(account.user_id, "BAN_EXPIRED", "Temporary ban lifted")

        return AccountStatus(kind=StatusKind.VALID)

    def ensure_active(self, account: UserModel) -> AccountStatus:
        """Raise the matching error unless the account is valid."""
        status = self.evaluate_status(account)
        if status.kind is StatusKind.INACTIVE:
            log_security_event("INACTIVE_USER_ACCESS", "Inactive account rejected", account.user_id)
            raise ForbiddenError(ErrorKind.ACCOUNT_INACTIVE, "Account is deactivated")
        if status.kind is StatusKind.LOCKED:
            retry_after = math.ceil(status.remaining.total_seconds())
            log_security_event("LOCKED_USER_ACCESS", f"{retry_after}s of lock left", account.user_id)
            raise RateLimitedError(
                ErrorKind.ACCOUNT_LOCKED,
                "Account is temporarily locked after repeated failed login attempts",
                retry_after=retry_after,
            )
        if status.kind is StatusKind.BANNED:
            log_security_event(
                "BANNED_USER_ACCESS",
                f"permanent={status.permanent} until={status.until} reason={status.reason}",
                account.user_id,
            )
            if status.permanent:
                message = f"Account is permanently banned. Reason: {status.reason}"
            else:
                message = f"Account is banned until {status.until.isoformat()}. Reason: {status.reason}"
            raise ForbiddenError(ErrorKind.ACCOUNT_BANNED, message)
        return status

    @staticmethod
    def ensure_verified(account: UserModel) -> None:
        if not account.is_email_verified:
            raise ForbiddenError(ErrorKind.EMAIL_NOT_VERIFIED, "Email address is not verified")

    def ban(
        self,
        account_id: str,
        reason: str,
        until: Optional[datetime] = None,
        actor_id: Optional[str] = None,
    ) -> UserModel:
        """Ban an account. until=None bans permanently."""
        model = self._get(account_id)
        model.is_banned = True
        model.banned_until = until
        model.banned_reason = reason
        self.db.commit()
        self.db.refresh(model)
        log_user_action(actor_id, "USER_BANNED", f"Banned {account_id} until {until or 'forever'}: {reason}")
        return model

    def unban(self, account_id: str, actor_id: Optional[str] = None) -> UserModel:
        model = self._get(account_id)
        model.is_banned = False
        model.banned_until = None
        model.banned_reason = None
        self.db.commit()
        self.db.refresh(model)
        log_user_action(actor_id, "USER_UNBANNED", f"Unbanned {account_id}")
        return model

    def set_active(self, account_id: str, active: bool, actor_id: Optional[str] = None) -> UserModel:
        """Deactivate or reactivate an account. Accounts are never deleted."""
        model = self._get(account_id)
        model.is_active = active
        self.db.commit()
        self.db.refresh(model)
        log_user_action(actor_id, "USER_ACTIVE_CHANGED", f"{account_id} active={active}")
        return model
