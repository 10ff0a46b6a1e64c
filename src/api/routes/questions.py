"""Question routes.

Creating and reading questions, and listing a question's answers.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from api.errors import to_http_exception
from api.routes.auth import get_current_user, get_verified_user
from core.dependencies import ModerationManagerDep, QuestionManagerDep
from core.exceptions import ForumError
from models.user import UserModel
from schemas.forum import Answer, CreateQuestionRequest, Question

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["Questions"])


@router.post(
    "",
    response_model=Question,
    status_code=status.HTTP_201_CREATED,
    summary="Ask a question",
)
def create_question(
    req: CreateQuestionRequest,
    current_user: UserModel = Depends(get_verified_user),
    question_manager: QuestionManagerDep = None,
) -> Question:
    try:
        return question_manager.create_question(current_user, req.title, req.content)
    except ForumError as e:
        raise to_http_exception(e)


@router.get("/{question_id}", response_model=Question, summary="Get a question")
def get_question(
    question_id: str,
    question_manager: QuestionManagerDep = None,
) -> Question:
    try:
        return question_manager.get_question(question_id)
    except ForumError as e:
        raise to_http_exception(e)


@router.get("/{question_id}/answers", response_model=List[Answer], summary="Answers of a question")
def list_answers(
    question_id: str,
    include_unapproved: bool = False,
    current_user: UserModel = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
    moderation_manager: ModerationManagerDep = None,
) -> List[Answer]:
    """List approved answers, accepted first.

    Pending and rejected answers are only listed for administrators and
    the question's author.

    Args:
        question_id: Parent question.
        include_unapproved: Ask for pending and rejected answers too.
        current_user: Current authenticated user.
        question_manager: Injected QuestionManager instance.
        moderation_manager: Injected ModerationManager instance.

    Returns:
        List of answers.
    """
    try:
        question = question_manager.get_question(question_id)
    except ForumError as e:
        raise to_http_exception(e)
    allowed = current_user.role == "admin" or question.author_id == current_user.user_id
    return moderation_manager.list_for_question(
        question_id, include_unapproved=include_unapproved and allowed
    )
