"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes.
Managers get a request-scoped DB session; gateways and the federated token
verifier are process-wide singletons.
"""

from typing import Annotated, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from core.clock import Clock, utcnow
from core.database import get_db
from utils import account_guard
from utils import gateways
from utils import moderation_manager
from utils import question_manager
from utils import token_service
from utils import user_manager
from utils import verification_manager

# Singletons shared across requests
_federated_verifier_instance: Optional[token_service.FederatedTokenVerifier] = None
_mirror_gateway_instance: Optional[gateways.MirrorGateway] = None
_mail_gateway_instance: Optional[gateways.MailGateway] = None


def get_clock() -> Clock:
    """Get the clock used for every timestamp and expiry check."""
    return utcnow


def get_federated_verifier() -> Optional[token_service.FederatedTokenVerifier]:
    """Get the federated token verifier singleton.

    Returns:
        Verifier instance, or None when federated sign-in is not configured.
    """
    global _federated_verifier_instance
    if _federated_verifier_instance is None:
        _federated_verifier_instance = token_service.build_federated_verifier()
    return _federated_verifier_instance


def get_mirror_gateway() -> gateways.MirrorGateway:
    global _mirror_gateway_instance
    if _mirror_gateway_instance is None:
        _mirror_gateway_instance = gateways.build_mirror_gateway()
    return _mirror_gateway_instance


def get_mail_gateway() -> gateways.MailGateway:
    global _mail_gateway_instance
    if _mail_gateway_instance is None:
        _mail_gateway_instance = gateways.build_mail_gateway()
    return _mail_gateway_instance


def get_token_service(
    db: Session = Depends(get_db),
    verifier: Optional[token_service.FederatedTokenVerifier] = Depends(get_federated_verifier),
    clock: Clock = Depends(get_clock),
) -> token_service.IdentityTokenService:
    """Get IdentityTokenService instance with request-scoped DB session.

    Args:
        db: Database session.
        verifier: Federated token verifier singleton.
        clock: Current-time provider.

    Returns:
        IdentityTokenService instance.
    """
    return token_service.IdentityTokenService(db, federated_verifier=verifier, clock=clock)


def get_account_guard(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> account_guard.AccountGuard:
    return account_guard.AccountGuard(db, clock=clock)


def get_verification_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> verification_manager.VerificationManager:
    return verification_manager.VerificationManager(db, clock=clock)


def get_user_manager(
    db: Session = Depends(get_db),
    mail: gateways.MailGateway = Depends(get_mail_gateway),
    tokens: token_service.IdentityTokenService = Depends(get_token_service),
    clock: Clock = Depends(get_clock),
) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.
        mail: Mail gateway singleton.
        tokens: Token service for the same session.
        clock: Current-time provider.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db, mail=mail, tokens=tokens, clock=clock)


def get_question_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> question_manager.QuestionManager:
    """Get QuestionManager instance with request-scoped DB session."""
    return question_manager.QuestionManager(db, clock=clock)


def get_moderation_manager(
    db: Session = Depends(get_db),
    mirror: gateways.MirrorGateway = Depends(get_mirror_gateway),
    clock: Clock = Depends(get_clock),
) -> moderation_manager.ModerationManager:
    """Get ModerationManager instance with request-scoped DB session."""
    return moderation_manager.ModerationManager(db, mirror=mirror, clock=clock)


# Type aliases for dependency injection
TokenServiceDep = Annotated[
    token_service.IdentityTokenService, Depends(get_token_service)
]
AccountGuardDep = Annotated[
    account_guard.AccountGuard, Depends(get_account_guard)
]
VerificationManagerDep = Annotated[
    verification_manager.VerificationManager, Depends(get_verification_manager)
]
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
QuestionManagerDep = Annotated[
    question_manager.QuestionManager, Depends(get_question_manager)
]
ModerationManagerDep = Annotated[
    moderation_manager.ModerationManager, Depends(get_moderation_manager)
]
