"""Audit trail helpers.

Security events and user actions are written to the dedicated ``audit``
logger. Precise failure reasons that must not reach unauthenticated callers
are recorded here only.
"""

import logging
from typing import Optional

audit_logger = logging.getLogger("audit")


def log_security_event(event: str, detail: str, account_id: Optional[str] = None) -> None:
    """Record a security-relevant event.

    Args:
        event: Event name, e.g. "LOGIN_FAILED".
        detail: Free-form detail including the internal reason.
        account_id: Account involved, if known.
    """
    audit_logger.warning("[%s] account=%s %s", event, account_id or "-", detail)


def log_user_action(account_id: Optional[str], action: str, detail: str) -> None:
    """Record a successful user action."""
    audit_logger.info("[%s] account=%s %s", action, account_id or "-", detail)
