from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base


class AnswerModel(Base):
    __tablename__ = "answers"
    __table_args__ = (
        UniqueConstraint(
            "question_id",
            "expert_id",
            name="uq_answers_question_expert",
        ),
    )

    answer_id = Column(String, primary_key=True, index=True)
    question_id = Column(
        String,
        ForeignKey("questions.question_id"),
        index=True,
        nullable=False,
    )
    expert_id = Column(String, ForeignKey("users.user_id"), index=True, nullable=False)
    content = Column(Text, nullable=False)

    status = Column(String, index=True, nullable=False, default="pending")
    was_approved = Column(Boolean, nullable=False, default=False)
    is_accepted = Column(Boolean, index=True, nullable=False, default=False)
    moderated_by = Column(String, ForeignKey("users.user_id"), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    moderation_comment = Column(String, nullable=True)

    social_posts = Column(JSON, nullable=False, default=list)
    likes = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    question = relationship("QuestionModel", back_populates="answers")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"
