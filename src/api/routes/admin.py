"""Administration routes.

Bans, roles, activation, question recounts and verification code
housekeeping. Every route requires the admin role.
"""

import logging

import pytz
from fastapi import APIRouter, Depends

from api.errors import to_http_exception
from api.routes.auth import get_current_admin
from core.dependencies import (
    AccountGuardDep,
    ModerationManagerDep,
    UserManagerDep,
    VerificationManagerDep,
)
from core.exceptions import ForumError
from models.user import UserModel
from schemas.forum import Question
from schemas.user import (
    ActiveRequest,
    BanRequest,
    CurrentUserResponse,
    MessageResponse,
    RoleChangeRequest,
)
from utils.converters import model_to_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/users/{user_id}/ban", response_model=CurrentUserResponse, summary="Ban a user")
def ban_user(
    user_id: str,
    req: BanRequest,
    current_user: UserModel = Depends(get_current_admin),
    guard: AccountGuardDep = None,
) -> CurrentUserResponse:
    """Ban an account, permanently when no end time is given.

    Args:
        user_id: Account to ban.
        req: Reason and optional end time (naive UTC).
        current_user: Current administrator.
        guard: Injected AccountGuard instance.

    Returns:
        CurrentUserResponse with the banned account.
    """
    until = req.until
    if until is not None and until.tzinfo is not None:
        until = until.astimezone(pytz.utc).replace(tzinfo=None)
    try:
        model = guard.ban(user_id, req.reason, until=until, actor_id=current_user.user_id)
    except ForumError as e:
        raise to_http_exception(e)
    return CurrentUserResponse(user=model_to_user(model))


@router.post("/users/{user_id}/unban", response_model=CurrentUserResponse, summary="Lift a ban")
def unban_user(
    user_id: str,
    current_user: UserModel = Depends(get_current_admin),
    guard: AccountGuardDep = None,
) -> CurrentUserResponse:
    try:
        model = guard.unban(user_id, actor_id=current_user.user_id)
    except ForumError as e:
        raise to_http_exception(e)
    return CurrentUserResponse(user=model_to_user(model))


@router.post("/users/{user_id}/role", response_model=CurrentUserResponse, summary="Change a user's role")
def change_role(
    user_id: str,
    req: RoleChangeRequest,
    current_user: UserModel = Depends(get_current_admin),
    user_manager: UserManagerDep = None,
) -> CurrentUserResponse:
    try:
        model = user_manager.change_role(user_id, req.role, actor_id=current_user.user_id)
    except ForumError as e:
        raise to_http_exception(e)
    return CurrentUserResponse(user=model_to_user(model))


@router.post("/users/{user_id}/active", response_model=CurrentUserResponse, summary="Activate or deactivate")
def set_active(
    user_id: str,
    req: ActiveRequest,
    current_user: UserModel = Depends(get_current_admin),
    guard: AccountGuardDep = None,
) -> CurrentUserResponse:
    try:
        model = guard.set_active(user_id, req.active, actor_id=current_user.user_id)
    except ForumError as e:
        raise to_http_exception(e)
    return CurrentUserResponse(user=model_to_user(model))


@router.post("/codes/cleanup", response_model=MessageResponse, summary="Delete expired codes")
def cleanup_codes(
    current_user: UserModel = Depends(get_current_admin),
    codes: VerificationManagerDep = None,
) -> MessageResponse:
    deleted = codes.cleanup_expired()
    logger.info("Admin %s removed %d expired codes", current_user.user_id, deleted)
    return MessageResponse(message=f"Removed {deleted} expired verification codes")


@router.post("/questions/{question_id}/recount", response_model=Question, summary="Recount question aggregates")
def recount_question(
    question_id: str,
    current_user: UserModel = Depends(get_current_admin),
    moderation_manager: ModerationManagerDep = None,
) -> Question:
    """Rebuild answers_count, status and acceptance from the approved answers."""
    try:
        question = moderation_manager.recount(question_id)
    except ForumError as e:
        raise to_http_exception(e)
    logger.info("Admin %s recounted question %s", current_user.user_id, question_id)
    return question
