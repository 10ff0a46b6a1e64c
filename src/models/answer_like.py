from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from .base import Base


class AnswerLikeModel(Base):
    __tablename__ = "answer_likes"
    __table_args__ = (
        UniqueConstraint("answer_id", "user_id", name="uq_answer_likes_answer_user"),
    )

    like_id = Column(String, primary_key=True, index=True)
    answer_id = Column(String, ForeignKey("answers.answer_id"), index=True, nullable=False)
    user_id = Column(String, ForeignKey("users.user_id"), index=True, nullable=False)
    created_at = Column(DateTime, nullable=False)
