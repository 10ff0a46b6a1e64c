"""Question and answer schema definitions."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Question(BaseModel):
    question_id: str
    title: str
    content: str
    author_id: str
    status: str = Field(description="'pending' or 'answered'")
    has_accepted_answer: bool = False
    answers_count: int = 0
    answered_at: Optional[datetime] = None
    created_at: datetime


class Answer(BaseModel):
    answer_id: str
    question_id: str
    expert_id: str
    content: str
    status: str = Field(description="'pending', 'approved' or 'rejected'")
    is_approved: bool = False
    is_accepted: bool = False
    was_approved: bool = False
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None
    moderation_comment: Optional[str] = None
    social_posts: List[Dict[str, Any]] = []
    likes: int = 0
    created_at: datetime
    updated_at: datetime


class CreateQuestionRequest(BaseModel):
    title: str
    content: str


class CreateAnswerRequest(BaseModel):
    question_id: str
    content: str


class UpdateAnswerRequest(BaseModel):
    content: str


class ModerateAnswerRequest(BaseModel):
    approve: bool
    comment: Optional[str] = None


class ModerationResponse(BaseModel):
    """Post-transition state of an answer and its question."""

    answer: Optional[Answer] = None
    question: Question
    warnings: List[str] = []


class LikeResponse(BaseModel):
    answer_id: str
    liked: bool = Field(description="Whether the caller likes the answer after the toggle")
    action: str = Field(description="'added', 'removed' or 'duplicate'")
    likes: int


class AnswerPage(BaseModel):
    items: List[Answer]
    total: int
    page: int
    limit: int
    pages: int
