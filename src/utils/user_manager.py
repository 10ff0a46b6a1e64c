"""User management utilities.

This module provides local account registration, password hashing, password
login with lockout, email verification and password reset. Token minting and
account status checks are delegated to IdentityTokenService and AccountGuard.
"""

import logging
import re
import uuid
from typing import Optional, Tuple

import bcrypt
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import ADMIN_TOKEN, PASSWORD_MIN_LENGTH
from core.audit import log_security_event, log_user_action
from core.clock import Clock, utcnow
from core.exceptions import (
    ConflictError,
    ErrorKind,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
)
from models.user import UserModel
from utils.account_guard import AccountGuard
from utils.gateways import LoggingMailGateway, MailGateway
from utils.token_service import IdentityTokenService
from utils.verification_manager import CodePurpose, VerificationManager

logger = logging.getLogger(__name__)

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12

ROLES = ("user", "expert", "admin")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,30}$")

INVALID_CREDENTIALS_MESSAGE = "Invalid email/username or password"
INVALID_CODE_MESSAGE = "Invalid or expired verification code"


class UserManager:
    """Manages accounts and the flows that authenticate them, using SQLAlchemy."""

    def __init__(
        self,
        db: Session,
        mail: Optional[MailGateway] = None,
        tokens: Optional[IdentityTokenService] = None,
        clock: Clock = utcnow,
    ):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            mail: Gateway used to deliver verification codes.
            tokens: Token service used to mint session tokens.
            clock: Returns the current naive UTC time.
        """
        self.db = db
        self.mail = mail or LoggingMailGateway()
        self.clock = clock
        self.tokens = tokens or IdentityTokenService(db, clock=clock)
        self.guard = AccountGuard(db, clock=clock)
        self.codes = VerificationManager(db, clock=clock)

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        if isinstance(password, bytes):
            password = password.decode("utf-8")

        # Truncate password if it exceeds bcrypt's 72-byte limit
        password_bytes = password.encode("utf-8")
        if len(password_bytes) > 72:
            logger.warning("Password exceeds 72 bytes, truncating")
            password_bytes = password_bytes[:72]

        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        if isinstance(plain_password, str):
            password_bytes = plain_password.encode("utf-8")
        else:
            password_bytes = plain_password
        if len(password_bytes) > 72:
            password_bytes = password_bytes[:72]

        if isinstance(hashed_password, str):
            hash_bytes = hashed_password.encode("utf-8")
        else:
            hash_bytes = hashed_password

        try:
            return bcrypt.checkpw(password_bytes, hash_bytes)
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_email(email: str) -> str:
        return (email or "").strip().lower()

    def _find_by_email(self, email: str) -> Optional[UserModel]:
        return (
            self.db.query(UserModel)
            .filter(UserModel.email == self._normalize_email(email))
            .first()
        )

    def get_account(self, account_id: str) -> UserModel:
        model = self.db.query(UserModel).filter(UserModel.user_id == account_id).first()
        if model is None:
            raise NotFoundError(ErrorKind.USER_NOT_FOUND, f"User '{account_id}' not found")
        return model

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _validate_password(self, password: str) -> None:
        if not password or len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")

    def register(
        self,
        email: str,
        password: str,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
        role: str = "user",
        request_ip: Optional[str] = None,
    ) -> Tuple[UserModel, bool]:
        """Create a local, unverified account and send it a verification code.

        Args:
            email: Email address, stored lowercase.
            password: Plain text password.
            username: Optional unique username.
            display_name: Optional display name.
            role: Initial role.
            request_ip: Requesting address, for the audit trail.

        Returns:
            Tuple of the created account and whether the code was delivered.

        Raises:
            ValidationError: Malformed email, username or password.
            ConflictError: email_already_exists or username_taken.
        """
        email = self._normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email address")
        if username is not None:
            username = username.strip()
            if not USERNAME_PATTERN.match(username):
                raise ValidationError(
                    "Username must be 3-30 characters of letters, digits or underscores"
                )
        self._validate_password(password)
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}")

        if self._find_by_email(email) is not None:
            raise ConflictError(ErrorKind.EMAIL_ALREADY_EXISTS, "User with this email already exists")
        if username and self.db.query(UserModel).filter(UserModel.username == username).first():
            raise ConflictError(ErrorKind.USERNAME_TAKEN, f"Username '{username}' is already taken")

        model = UserModel(
            user_id=str(uuid.uuid4()),
            email=email,
            username=username or None,
            password_hash=self.hash_password(password),
            provider="local",
            role=role,
            display_name=display_name,
            is_email_verified=False,
            is_active=True,
            is_banned=False,
            login_attempts=0,
            rating=0,
            total_answers=0,
            created_at=self.clock(),
        )

        # Two concurrent registrations can both pass the checks above; the
        # unique constraints catch the loser.
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
        except IntegrityError as e:
            self.db.rollback()
            if "username" in str(e).lower():
                raise ConflictError(
                    ErrorKind.USERNAME_TAKEN, f"Username '{username}' is already taken"
                ) from e
            raise ConflictError(
                ErrorKind.EMAIL_ALREADY_EXISTS, "User with this email already exists"
            ) from e

        log_user_action(model.user_id, "USER_REGISTERED", f"Registered {email} as {role}")
        sent = self._send_code(email, CodePurpose.EMAIL_VERIFICATION, request_ip)
        return model, sent

    def register_admin(
        self,
        email: str,
        password: str,
        admin_token: str,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
        request_ip: Optional[str] = None,
    ) -> Tuple[UserModel, bool]:
        """Register an administrator when admin_token matches ADMIN_TOKEN.

        Raises:
            ForbiddenError: invalid_admin_token.
        """
        if not ADMIN_TOKEN or admin_token != ADMIN_TOKEN:
            log_security_event("INVALID_ADMIN_TOKEN", f"Admin registration attempted for {email}")
            raise ForbiddenError(ErrorKind.INVALID_ADMIN_TOKEN, "Invalid admin token")
        return self.register(
            email,
            password,
            username=username,
            display_name=display_name,
            role="admin",
            request_ip=request_ip,
        )

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, login: str, password: str) -> Tuple[UserModel, str]:
        """Authenticate with email or username and password.

        The lock is checked before the password, so a correct password does
        not get through a running lock. A deactivated account reports
        account_inactive even while locked.

        Args:
            login: Email address or username.
            password: Plain text password.

        Returns:
            Tuple of the account and a fresh session token.

        Raises:
            UnauthorizedError: invalid_credentials.
            RateLimitedError: account_locked.
            ForbiddenError: account_inactive or account_banned.
        """
        login = (login or "").strip()
        account = (
            self.db.query(UserModel)
            .filter(or_(UserModel.email == login.lower(), UserModel.username == login))
            .first()
        )
        if account is None or not account.password_hash:
            log_security_event("LOGIN_FAILED", f"Unknown login or no local password: {login}")
            raise UnauthorizedError(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        if self.guard.is_locked(account.user_id):
            if not account.is_active:
                # Inactive outranks a running lock
                self.guard.ensure_active(account)
            remaining = self.guard.time_remaining(account.user_id)
            retry_after = max(1, int(remaining.total_seconds()))
            log_security_event("LOGIN_WHILE_LOCKED", f"{retry_after}s of lock left", account.user_id)
            raise RateLimitedError(
                ErrorKind.ACCOUNT_LOCKED,
                "Account is temporarily locked after repeated failed login attempts",
                retry_after=retry_after,
            )

        if not self.verify_password(password or "", account.password_hash):
            locked = self.guard.record_failed_attempt(account.user_id)
            log_security_event("LOGIN_FAILED", f"Wrong password (locked: {locked})", account.user_id)
            raise UnauthorizedError(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        self.guard.record_success(account.user_id)
        self.guard.ensure_active(account)

        account.last_login_at = self.clock()
        self.db.commit()
        self.db.refresh(account)

        log_user_action(account.user_id, "LOGIN", "Password login")
        return account, self.tokens.mint(account)

    # ------------------------------------------------------------------
    # Verification codes
    # ------------------------------------------------------------------

    def _send_code(
        self, email: str, purpose: CodePurpose, request_ip: Optional[str] = None
    ) -> bool:
        """Issue a code and mail it. A code that cannot be delivered is cancelled.

        Raises:
            RateLimitedError: code_already_sent.
        """
        issued = self.codes.issue(email, purpose, request_ip=request_ip)
        try:
            self.mail.send(
                email,
                purpose.value,
                {"code": issued.code, "expires_at": issued.expires_at.isoformat()},
            )
        except ExternalServiceError as exc:
            logger.error("Could not deliver %s code to %s: %s", purpose.value, email, exc.message)
            self.codes.cancel(email, purpose)
            return False
        return True

    def request_email_verification(self, email: str, request_ip: Optional[str] = None) -> bool:
        """Send a fresh email verification code.

        Unknown addresses get the same answer as known ones.

        Returns:
            Whether a code was delivered.

        Raises:
            ConflictError: email_already_verified.
            RateLimitedError: code_already_sent.
        """
        account = self._find_by_email(email)
        if account is None:
            logger.info("Verification code requested for unknown email %s", email)
            return False
        if account.is_email_verified:
            raise ConflictError(ErrorKind.EMAIL_ALREADY_VERIFIED, "Email is already verified")
        return self._send_code(account.email, CodePurpose.EMAIL_VERIFICATION, request_ip)

    def confirm_email(self, email: str, code: str) -> UserModel:
        """Mark the email verified if the code checks out.

        Raises:
            ValidationError: code_invalid, whatever the underlying reason.
        """
        outcome = self.codes.verify(email, CodePurpose.EMAIL_VERIFICATION, code)
        account = self._find_by_email(email)
        if not outcome.success or account is None:
            raise ValidationError(INVALID_CODE_MESSAGE, kind=ErrorKind.CODE_INVALID)

        account.is_email_verified = True
        self.db.commit()
        self.db.refresh(account)
        log_user_action(account.user_id, "EMAIL_VERIFIED", account.email)
        return account

    def request_password_reset(self, email: str, request_ip: Optional[str] = None) -> None:
        """Send a password reset code if a local account has this address.

        Raises:
            RateLimitedError: code_already_sent.
        """
        account = self._find_by_email(email)
        if account is None or not account.password_hash:
            log_security_event("PASSWORD_RESET_UNKNOWN", f"Reset requested for {email}")
            return
        if not account.is_active:
            log_security_event("PASSWORD_RESET_INACTIVE", "Reset requested", account.user_id)
            return
        self._send_code(account.email, CodePurpose.PASSWORD_RESET, request_ip)

    def verify_password_reset_code(self, email: str, code: str) -> None:
        """Consume a reset code. The same code then authorizes reset_password for a short window.

        Raises:
            ValidationError: code_invalid.
        """
        outcome = self.codes.verify(email, CodePurpose.PASSWORD_RESET, code)
        if not outcome.success:
            raise ValidationError(INVALID_CODE_MESSAGE, kind=ErrorKind.CODE_INVALID)

    def reset_password(self, email: str, code: str, new_password: str) -> UserModel:
        """Set a new password using a recently verified reset code.

        Clears any lockout and removes every reset code for the address.

        Raises:
            ValidationError: Weak password or code_invalid.
        """
        self._validate_password(new_password)
        account = self._find_by_email(email)
        if account is None or not self.codes.consume_recent(email, CodePurpose.PASSWORD_RESET, code):
            log_security_event("PASSWORD_RESET_REJECTED", f"No recently verified code for {email}")
            raise ValidationError(INVALID_CODE_MESSAGE, kind=ErrorKind.CODE_INVALID)

        account.password_hash = self.hash_password(new_password)
        account.login_attempts = 0
        account.lock_until = None
        self.db.commit()
        self.codes.purge(email, CodePurpose.PASSWORD_RESET)
        self.db.refresh(account)

        log_user_action(account.user_id, "PASSWORD_RESET", "Password changed with reset code")
        return account

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def change_role(self, account_id: str, role: str, actor_id: Optional[str] = None) -> UserModel:
        """Change an account's role.

        Raises:
            ValidationError: Unknown role.
            NotFoundError: user_not_found.
        """
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}. Must be one of {', '.join(ROLES)}.")
        model = self.get_account(account_id)
        previous = model.role
        model.role = role
        self.db.commit()
        self.db.refresh(model)
        log_user_action(actor_id, "ROLE_CHANGED", f"{account_id}: {previous} -> {role}")
        return model

