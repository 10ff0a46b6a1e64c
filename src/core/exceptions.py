"""Custom exception classes for the forum trust core.

Every failure surfaced by a manager is a ``ForumError`` subclass carrying a
machine-readable ``kind`` from the closed ``ErrorKind`` enumeration and a
human-readable message. Transport mapping lives in ``api.errors``.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Machine-readable failure kinds."""

    # Input
    INVALID_INPUT = "invalid_input"

    # Identity
    MISSING_TOKEN = "missing_token"
    INVALID_ISSUER = "invalid_issuer"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    USERNAME_TAKEN = "username_taken"
    USER_NOT_FOUND = "user_not_found"
    TOKEN_EXPIRED = "token_expired"
    INVALID_TOKEN = "invalid_token"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_ADMIN_TOKEN = "invalid_admin_token"

    # Account status
    ACCOUNT_INACTIVE = "account_inactive"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_BANNED = "account_banned"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    EMAIL_ALREADY_VERIFIED = "email_already_verified"
    INSUFFICIENT_ROLE = "insufficient_role"

    # Verification codes
    CODE_INVALID = "code_invalid"
    CODE_ALREADY_SENT = "code_already_sent"

    # Moderation
    QUESTION_NOT_FOUND = "question_not_found"
    ANSWER_NOT_FOUND = "answer_not_found"
    ALREADY_ANSWERED = "already_answered"
    OWN_QUESTION = "own_question"
    ALREADY_REVIEWED = "already_reviewed"
    NOT_APPROVED = "not_approved"
    ALREADY_ACCEPTED = "already_accepted"
    NOT_QUESTION_AUTHOR = "not_question_author"
    NOT_ANSWER_OWNER = "not_answer_owner"
    PREVIOUSLY_APPROVED = "previously_approved"
    CONCURRENT_MODIFICATION = "concurrent_modification"

    # Collaborators
    MIRROR_FAILED = "mirror_failed"
    MAIL_FAILED = "mail_failed"


class ForumError(Exception):
    """Base exception for all forum trust core errors."""

    def __init__(self, kind: ErrorKind, message: str):
        """Initialize the exception.

        Args:
            kind: Machine-readable failure kind.
            message: Human-readable message safe to show the caller.
        """
        self.kind = kind
        self.message = message
        super().__init__(message)


class ValidationError(ForumError):
    """Raised when caller-correctable input is invalid."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.INVALID_INPUT):
        super().__init__(kind, message)


class NotFoundError(ForumError):
    """Raised when a requested entity does not exist."""

    pass


class ConflictError(ForumError):
    """Raised on duplicates, already-reviewed or already-accepted state."""

    pass


class UnauthorizedError(ForumError):
    """Raised when the caller's identity cannot be established."""

    pass


class ForbiddenError(ForumError):
    """Raised when an identified caller lacks permission."""

    pass


class RateLimitedError(ForumError):
    """Raised while an active code is still valid or a lockout is in effect."""

    def __init__(self, kind: ErrorKind, message: str, retry_after: Optional[int] = None):
        """Initialize the exception.

        Args:
            kind: Machine-readable failure kind.
            message: Human-readable message.
            retry_after: Seconds until the caller may retry, if known.
        """
        self.retry_after = retry_after
        super().__init__(kind, message)


class ExternalServiceError(ForumError):
    """Raised by mirror and mail gateways; never fatal to a transition."""

    pass
