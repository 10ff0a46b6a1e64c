"""Conversions between ORM models and Pydantic schemas."""

from models.answer import AnswerModel
from models.question import QuestionModel
from models.user import UserModel
from schemas.forum import Answer, Question
from schemas.user import User


def model_to_user(model: UserModel) -> User:
    return User(
        user_id=model.user_id,
        email=model.email,
        username=model.username,
        display_name=model.display_name,
        avatar=model.avatar,
        provider=model.provider,
        role=model.role,
        is_email_verified=bool(model.is_email_verified),
        is_active=bool(model.is_active),
        is_banned=bool(model.is_banned),
        banned_until=model.banned_until,
        banned_reason=model.banned_reason,
        rating=model.rating or 0,
        total_answers=model.total_answers or 0,
        last_login_at=model.last_login_at,
        created_at=model.created_at,
    )


def model_to_question(model: QuestionModel) -> Question:
    return Question(
        question_id=model.question_id,
        title=model.title,
        content=model.content,
        author_id=model.author_id,
        status=model.status,
        has_accepted_answer=bool(model.has_accepted_answer),
        answers_count=model.answers_count or 0,
        answered_at=model.answered_at,
        created_at=model.created_at,
    )


def model_to_answer(model: AnswerModel) -> Answer:
    return Answer(
        answer_id=model.answer_id,
        question_id=model.question_id,
        expert_id=model.expert_id,
        content=model.content,
        status=model.status,
        is_approved=model.is_approved,
        is_accepted=bool(model.is_accepted),
        was_approved=bool(model.was_approved),
        moderated_by=model.moderated_by,
        moderated_at=model.moderated_at,
        moderation_comment=model.moderation_comment,
        social_posts=list(model.social_posts or []),
        likes=model.likes or 0,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
