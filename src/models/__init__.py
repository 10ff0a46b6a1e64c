"""ORM models. Importing this package registers every table on Base.metadata."""

from .base import Base
from .user import UserModel
from .verification_code import VerificationCodeModel
from .question import QuestionModel
from .answer import AnswerModel
from .answer_like import AnswerLikeModel

__all__ = [
    "Base",
    "UserModel",
    "VerificationCodeModel",
    "QuestionModel",
    "AnswerModel",
    "AnswerLikeModel",
]
