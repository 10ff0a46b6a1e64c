from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base


class QuestionModel(Base):
    __tablename__ = "questions"

    question_id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    author_id = Column(String, ForeignKey("users.user_id"), index=True, nullable=False)
    status = Column(String, nullable=False, default="pending")  # 'pending' or 'answered'
    has_accepted_answer = Column(Boolean, nullable=False, default=False)
    answers_count = Column(Integer, nullable=False, default=0)
    answered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)

    answers = relationship("AnswerModel", back_populates="question")
