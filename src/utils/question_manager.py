"""Question storage.

Only what the moderation workflow needs: creating a question and reading it
back. The aggregate fields are owned by ModerationManager.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from core.audit import log_user_action
from core.clock import Clock, utcnow
from core.exceptions import ErrorKind, NotFoundError, ValidationError
from models.question import QuestionModel
from models.user import UserModel
from schemas.forum import Question
from utils.converters import model_to_question

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 10
TITLE_MAX_LENGTH = 200
CONTENT_MIN_LENGTH = 20
CONTENT_MAX_LENGTH = 5000


class QuestionManager:
    """Manages questions using SQLAlchemy."""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def create_question(self, author: UserModel, title: str, content: str) -> Question:
        """Create a question with empty aggregates.

        Args:
            author: Asking account.
            title: Question title.
            content: Question body.

        Returns:
            Created Question.

        Raises:
            ValidationError: If title or content length is out of range.
        """
        title = (title or "").strip()
        content = (content or "").strip()
        if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters"
            )
        if not CONTENT_MIN_LENGTH <= len(content) <= CONTENT_MAX_LENGTH:
            raise ValidationError(
                f"Content must be between {CONTENT_MIN_LENGTH} and {CONTENT_MAX_LENGTH} characters"
            )

        model = QuestionModel(
            question_id=str(uuid.uuid4()),
            title=title,
            content=content,
            author_id=author.user_id,
            status="pending",
            has_accepted_answer=False,
            answers_count=0,
            created_at=self.clock(),
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        log_user_action(author.user_id, "QUESTION_CREATED", f"Created question {model.question_id}")
        return model_to_question(model)

    def get_model(self, question_id: str) -> QuestionModel:
        model = (
            self.db.query(QuestionModel)
            .filter(QuestionModel.question_id == question_id)
            .first()
        )
        if model is None:
            raise NotFoundError(ErrorKind.QUESTION_NOT_FOUND, f"Question '{question_id}' not found")
        return model

    def get_question(self, question_id: str) -> Question:
        return model_to_question(self.get_model(question_id))
