"""Answer routes.

Experts create and edit answers, administrators moderate them, and question
authors accept one. Every moderation mutation returns the committed answer
and question state plus any mirror warnings. Any signed-in user may like an
answer.
"""

import logging

from fastapi import APIRouter, Depends, status

from api.errors import to_http_exception
from api.routes.auth import get_current_admin, get_current_user, get_verified_user
from core.dependencies import ModerationManagerDep
from core.exceptions import ForumError
from models.user import UserModel
from schemas.forum import (
    AnswerPage,
    CreateAnswerRequest,
    LikeResponse,
    ModerateAnswerRequest,
    ModerationResponse,
    UpdateAnswerRequest,
)
from utils.moderation_manager import ModerationResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/answers", tags=["Answers"])


def _response(result: ModerationResult) -> ModerationResponse:
    return ModerationResponse(
        answer=result.answer,
        question=result.question,
        warnings=result.warnings,
    )


@router.get("/pending", response_model=AnswerPage, summary="Answers awaiting moderation")
def list_pending(
    page: int = 1,
    limit: int = 20,
    current_user: UserModel = Depends(get_current_admin),
    moderation_manager: ModerationManagerDep = None,
) -> AnswerPage:
    return moderation_manager.list_pending(page=page, limit=limit)


@router.post(
    "",
    response_model=ModerationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Answer a question",
)
def create_answer(
    req: CreateAnswerRequest,
    current_user: UserModel = Depends(get_verified_user),
    moderation_manager: ModerationManagerDep = None,
) -> ModerationResponse:
    """Create an answer. It stays pending until an administrator reviews it.

    Args:
        req: Question id and answer content.
        current_user: Current authenticated user (expert or admin).
        moderation_manager: Injected ModerationManager instance.

    Returns:
        ModerationResponse with the pending answer.
    """
    try:
        result = moderation_manager.create_answer(current_user, req.question_id, req.content)
    except ForumError as e:
        raise to_http_exception(e)
    return _response(result)


@router.put("/{answer_id}", response_model=ModerationResponse, summary="Edit an answer")
def update_answer(
    answer_id: str,
    req: UpdateAnswerRequest,
    current_user: UserModel = Depends(get_current_user),
    moderation_manager: ModerationManagerDep = None,
) -> ModerationResponse:
    try:
        result = moderation_manager.edit(answer_id, current_user, req.content)
    except ForumError as e:
        raise to_http_exception(e)
    return _response(result)


@router.delete("/{answer_id}", response_model=ModerationResponse, summary="Delete an answer")
def delete_answer(
    answer_id: str,
    current_user: UserModel = Depends(get_current_user),
    moderation_manager: ModerationManagerDep = None,
) -> ModerationResponse:
    try:
        result = moderation_manager.delete(answer_id, current_user)
    except ForumError as e:
        raise to_http_exception(e)
    return _response(result)


@router.post("/{answer_id}/moderate", response_model=ModerationResponse, summary="Approve or reject")
def moderate_answer(
    answer_id: str,
    req: ModerateAnswerRequest,
    current_user: UserModel = Depends(get_current_user),
    moderation_manager: ModerationManagerDep = None,
) -> ModerationResponse:
    """Approve or reject an answer (administrators only).

    Args:
        answer_id: Answer to moderate.
        req: Decision and optional comment.
        current_user: Current authenticated user.
        moderation_manager: Injected ModerationManager instance.

    Returns:
        ModerationResponse; warnings list mirror failures.
    """
    try:
        result = moderation_manager.moderate(
            answer_id, current_user, approve=req.approve, comment=req.comment
        )
    except ForumError as e:
        raise to_http_exception(e)
    return _response(result)


@router.post("/{answer_id}/accept", response_model=ModerationResponse, summary="Accept an answer")
def accept_answer(
    answer_id: str,
    current_user: UserModel = Depends(get_current_user),
    moderation_manager: ModerationManagerDep = None,
) -> ModerationResponse:
    try:
        result = moderation_manager.accept(answer_id, current_user)
    except ForumError as e:
        raise to_http_exception(e)
    return _response(result)


@router.post("/{answer_id}/like", response_model=LikeResponse, summary="Like or unlike an answer")
def toggle_like(
    answer_id: str,
    current_user: UserModel = Depends(get_current_user),
    moderation_manager: ModerationManagerDep = None,
) -> LikeResponse:
    try:
        return moderation_manager.toggle_like(answer_id, current_user)
    except ForumError as e:
        raise to_http_exception(e)
