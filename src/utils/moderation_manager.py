"""Answer moderation state machine.

Answers move Pending -> Approved | Rejected, with Rejected -> Approved allowed
on re-review and Approved -> Rejected allowed as a reversal. Accepted is a flag
on an approved answer, at most one per question.

Every transition runs in one database transaction. The answer row carries an
optimistic version column, so two transitions racing on the same answer
cannot both commit. Whenever an answer leaves the approved set, the question
aggregates are recounted from the remaining approved answers instead of
being decremented. Mirror calls run after the commit and can only add
warnings to the result.
"""

import logging
import math
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from config import (
    ACCEPTED_ANSWER_REPUTATION,
    ANSWER_MAX_LENGTH,
    ANSWER_MIN_LENGTH,
    question_url,
)
from core.audit import log_user_action
from core.clock import Clock, utcnow
from core.exceptions import (
    ConflictError,
    ErrorKind,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from models.answer import AnswerModel
from models.answer_like import AnswerLikeModel
from models.question import QuestionModel
from models.user import UserModel
from schemas.forum import Answer, AnswerPage, LikeResponse, Question
from utils.converters import model_to_answer, model_to_question
from utils.gateways import MirrorGateway, NullMirrorGateway

logger = logging.getLogger(__name__)

EXPERT_ROLES = ("expert", "admin")
MODERATOR_ROLES = ("admin",)


class AnswerStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ANSWERED = "answered"


@dataclass
class ModerationResult:
    """State of the answer and its question as committed by a transition.

    answer is None after a delete.
    """

    answer: Optional[Answer]
    question: Question
    warnings: List[str] = field(default_factory=list)


class ModerationManager:
    """Drives answers through moderation and keeps question aggregates consistent."""

    def __init__(
        self,
        db: Session,
        mirror: Optional[MirrorGateway] = None,
        clock: Clock = utcnow,
        reputation_bonus: int = ACCEPTED_ANSWER_REPUTATION,
    ):
        """Initialize ModerationManager.

        Args:
            db: SQLAlchemy Session.
            mirror: Gateway that publishes approved answers externally.
            clock: Returns the current naive UTC time.
            reputation_bonus: Rating granted to an expert per accepted answer.
        """
        self.db = db
        self.mirror = mirror or NullMirrorGateway()
        self.clock = clock
        self.reputation_bonus = reputation_bonus

    # ------------------------------------------------------------------
    # Lookups and guards
    # ------------------------------------------------------------------

    def _get_answer(self, answer_id: str) -> AnswerModel:
        model = self.db.query(AnswerModel).filter(AnswerModel.answer_id == answer_id).first()
        if model is None:
            raise NotFoundError(ErrorKind.ANSWER_NOT_FOUND, f"Answer '{answer_id}' not found")
        return model

    def _lock_question(self, question_id: str) -> QuestionModel:
        # FOR UPDATE is dropped by SQLite, where the answer write lock serializes instead
        model = (
            self.db.query(QuestionModel)
            .filter(QuestionModel.question_id == question_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if model is None:
            raise NotFoundError(ErrorKind.QUESTION_NOT_FOUND, f"Question '{question_id}' not found")
        return model

    @staticmethod
    def _require_moderator(actor: UserModel) -> None:
        if actor.role not in MODERATOR_ROLES:
            raise ForbiddenError(ErrorKind.INSUFFICIENT_ROLE, "Only moderators can moderate answers")

    @staticmethod
    def _validate_content(content: str) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Content is required")
        if len(content) < ANSWER_MIN_LENGTH:
            raise ValidationError(f"Answer must be at least {ANSWER_MIN_LENGTH} characters")
        if len(content) > ANSWER_MAX_LENGTH:
            raise ValidationError(f"Answer cannot exceed {ANSWER_MAX_LENGTH} characters")
        return content

    @contextmanager
    def _transition(self, answer_id: str):
        """Roll back on any failure and turn lost version races into conflicts."""
        try:
            yield
        except StaleDataError as e:
            self.db.rollback()
            logger.info("Concurrent modification of answer %s", answer_id)
            raise ConflictError(
                ErrorKind.CONCURRENT_MODIFICATION,
                "The answer was modified by another request. Reload and try again.",
            ) from e
        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def _recount(self, question: QuestionModel) -> None:
        """Rewrite the question aggregates from its current approved answers."""
        approved = (
            self.db.query(func.count(AnswerModel.answer_id))
            .filter(
                AnswerModel.question_id == question.question_id,
                AnswerModel.status == AnswerStatus.APPROVED.value,
            )
            .scalar()
        )
        accepted = (
            self.db.query(func.count(AnswerModel.answer_id))
            .filter(
                AnswerModel.question_id == question.question_id,
                AnswerModel.status == AnswerStatus.APPROVED.value,
                AnswerModel.is_accepted.is_(True),
            )
            .scalar()
        )
        question.answers_count = approved
        question.has_accepted_answer = accepted > 0
        if approved:
            question.status = QuestionStatus.ANSWERED.value
            if question.answered_at is None:
                question.answered_at = self.clock()
        else:
            question.status = QuestionStatus.PENDING.value
            question.answered_at = None
        self.db.flush()

    def _adjust_counter(self, column, account_id: str, delta: int) -> None:
        """Add delta to a non-negative account counter in a single UPDATE."""
        new_value = column + delta
        self.db.query(UserModel).filter(UserModel.user_id == account_id).update(
            {column: case((new_value < 0, 0), else_=new_value)},
            synchronize_session=False,
        )

    def _adjust_likes(self, answer_id: str, delta: int) -> None:
        new_value = AnswerModel.likes + delta
        self.db.query(AnswerModel).filter(AnswerModel.answer_id == answer_id).update(
            {AnswerModel.likes: case((new_value < 0, 0), else_=new_value)},
            synchronize_session=False,
        )

    def _revoke_credit(self, expert_id: str, was_accepted: bool) -> None:
        """Undo what an approved (and possibly accepted) answer earned its expert."""
        self._adjust_counter(UserModel.total_answers, expert_id, -1)
        if was_accepted:
            self._adjust_counter(UserModel.rating, expert_id, -self.reputation_bonus)

    # ------------------------------------------------------------------
    # Mirror
    # ------------------------------------------------------------------

    @staticmethod
    def _mirror_payload(answer: Answer, question: Question) -> Dict[str, Any]:
        return {
            "question_id": question.question_id,
            "question_title": question.title,
            "expert_id": answer.expert_id,
            "content": answer.content,
            "url": question_url(question.question_id),
        }

    def _best_effort(
        self,
        operation: str,
        answer_id: str,
        actor_id: Optional[str],
        call: Callable[..., Any],
        *args,
    ) -> Tuple[bool, Any, Optional[str]]:
        try:
            return True, call(*args), None
        except ExternalServiceError as exc:
            logger.warning(
                "Mirror %s failed for answer %s (actor %s): %s",
                operation,
                answer_id,
                actor_id,
                exc.message,
            )
            return False, None, f"Mirror {operation} failed: {exc.message}"
        except Exception as exc:
            # The transition has already committed
            logger.exception(
                "Mirror %s raised unexpectedly for answer %s (actor %s)",
                operation,
                answer_id,
                actor_id,
            )
            return False, None, f"Mirror {operation} failed: {exc}"

    def _store_posts(self, answer_id: str, posts: List[Dict[str, Any]]) -> bool:
        """Record mirror references, only while the answer is still approved."""
        stored = (
            self.db.query(AnswerModel)
            .filter(
                AnswerModel.answer_id == answer_id,
                AnswerModel.status == AnswerStatus.APPROVED.value,
            )
            .update({AnswerModel.social_posts: posts}, synchronize_session=False)
        )
        self.db.commit()
        return stored == 1

    def _clear_posts(self, answer_id: str) -> None:
        self.db.query(AnswerModel).filter(
            AnswerModel.answer_id == answer_id,
            AnswerModel.status != AnswerStatus.APPROVED.value,
        ).update({AnswerModel.social_posts: []}, synchronize_session=False)
        self.db.commit()

    def _publish(self, result: ModerationResult, actor_id: Optional[str]) -> None:
        answer = result.answer
        ok, posts, warning = self._best_effort(
            "publish",
            answer.answer_id,
            actor_id,
            self.mirror.publish,
            answer.answer_id,
            self._mirror_payload(answer, result.question),
        )
        if not ok:
            result.warnings.append(warning)
            return
        posts = list(posts or [])
        if not posts:
            return
        if self._store_posts(answer.answer_id, posts):
            result.answer = answer.model_copy(update={"social_posts": posts})
            return
        # Left the approved state while we were publishing
        ok, _, warning = self._best_effort(
            "retract", answer.answer_id, actor_id, self.mirror.retract, answer.answer_id, posts
        )
        if not ok:
            result.warnings.append(warning)

    def _retract(
        self, result: ModerationResult, answer_id: str, posts: List[Dict[str, Any]], actor_id: Optional[str]
    ) -> None:
        if not posts:
            return
        ok, _, warning = self._best_effort(
            "retract", answer_id, actor_id, self.mirror.retract, answer_id, posts
        )
        if not ok:
            result.warnings.append(warning)
            return
        if result.answer is not None:
            self._clear_posts(answer_id)
            result.answer = result.answer.model_copy(update={"social_posts": []})

    def _republish(
        self, result: ModerationResult, posts: List[Dict[str, Any]], actor_id: Optional[str]
    ) -> None:
        answer = result.answer
        ok, new_posts, warning = self._best_effort(
            "republish",
            answer.answer_id,
            actor_id,
            self.mirror.republish,
            answer.answer_id,
            self._mirror_payload(answer, result.question),
            posts,
        )
        if not ok:
            result.warnings.append(warning)
            return
        new_posts = list(new_posts or [])
        if new_posts != posts and self._store_posts(answer.answer_id, new_posts):
            result.answer = answer.model_copy(update={"social_posts": new_posts})

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create_answer(self, expert: UserModel, question_id: str, content: str) -> ModerationResult:
        """Create a pending answer.

        Raises:
            ForbiddenError: insufficient_role or own_question.
            NotFoundError: question_not_found.
            ConflictError: already_answered.
            ValidationError: Content length out of range.
        """
        if expert.role not in EXPERT_ROLES:
            raise ForbiddenError(ErrorKind.INSUFFICIENT_ROLE, "Only experts can answer questions")
        content = self._validate_content(content)

        question = (
            self.db.query(QuestionModel)
            .filter(QuestionModel.question_id == question_id)
            .first()
        )
        if question is None:
            raise NotFoundError(ErrorKind.QUESTION_NOT_FOUND, f"Question '{question_id}' not found")
        if question.author_id == expert.user_id:
            raise ForbiddenError(ErrorKind.OWN_QUESTION, "You cannot answer your own question")

        existing = (
            self.db.query(AnswerModel.answer_id)
            .filter(
                AnswerModel.question_id == question_id,
                AnswerModel.expert_id == expert.user_id,
            )
            .first()
        )
        if existing is not None:
            raise ConflictError(ErrorKind.ALREADY_ANSWERED, "You have already answered this question")

        now = self.clock()
        answer = AnswerModel(
            answer_id=str(uuid.uuid4()),
            question_id=question_id,
            expert_id=expert.user_id,
            content=content,
            status=AnswerStatus.PENDING.value,
            was_approved=False,
            is_accepted=False,
            social_posts=[],
            likes=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(answer)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(
                ErrorKind.ALREADY_ANSWERED, "You have already answered this question"
            ) from e
        result = ModerationResult(answer=model_to_answer(answer), question=model_to_question(question))
        self.db.commit()

        log_user_action(expert.user_id, "ANSWER_CREATED", f"Answered question {question_id}")
        return result

    def approve(
        self, answer_id: str, moderator: UserModel, comment: Optional[str] = None
    ) -> ModerationResult:
        """Approve a pending or rejected answer and publish it to the mirror.

        Raises:
            ForbiddenError: insufficient_role.
            NotFoundError: answer_not_found.
            ConflictError: already_reviewed or concurrent_modification.
        """
        self._require_moderator(moderator)
        answer = self._get_answer(answer_id)
        if answer.status == AnswerStatus.APPROVED.value:
            raise ConflictError(ErrorKind.ALREADY_REVIEWED, "Answer is already approved")

        with self._transition(answer_id):
            question = self._lock_question(answer.question_id)
            now = self.clock()
            answer.status = AnswerStatus.APPROVED.value
            answer.was_approved = True
            answer.is_accepted = False
            answer.moderated_by = moderator.user_id
            answer.moderated_at = now
            answer.moderation_comment = comment
            answer.updated_at = now
            self.db.flush()

            self.db.query(QuestionModel).filter(
                QuestionModel.question_id == question.question_id
            ).update(
                {
                    QuestionModel.answers_count: QuestionModel.answers_count + 1,
                    QuestionModel.status: QuestionStatus.ANSWERED.value,
                    QuestionModel.answered_at: func.coalesce(QuestionModel.answered_at, now),
                },
                synchronize_session=False,
            )
            self._adjust_counter(UserModel.total_answers, answer.expert_id, 1)
            self.db.refresh(question)

            result = ModerationResult(
                answer=model_to_answer(answer), question=model_to_question(question)
            )
            self.db.commit()

        log_user_action(moderator.user_id, "ANSWER_APPROVED", f"Approved answer {answer_id}")
        self._publish(result, moderator.user_id)
        return result

    def reject(
        self, answer_id: str, moderator: UserModel, comment: Optional[str] = None
    ) -> ModerationResult:
        """Reject a pending answer or revoke an approved one.

        Revoking clears acceptance, takes back the expert's credit, recounts
        the question and retracts mirror posts.

        Raises:
            ForbiddenError: insufficient_role.
            NotFoundError: answer_not_found.
            ConflictError: already_reviewed or concurrent_modification.
        """
        self._require_moderator(moderator)
        answer = self._get_answer(answer_id)
        if answer.status == AnswerStatus.REJECTED.value:
            raise ConflictError(ErrorKind.ALREADY_REVIEWED, "Answer is already rejected")

        with self._transition(answer_id):
            question = self._lock_question(answer.question_id)
            was_counted = answer.status == AnswerStatus.APPROVED.value
            was_accepted = bool(answer.is_accepted)
            posts = list(answer.social_posts or [])

            now = self.clock()
            answer.status = AnswerStatus.REJECTED.value
            answer.is_accepted = False
            answer.moderated_by = moderator.user_id
            answer.moderated_at = now
            answer.moderation_comment = comment
            answer.updated_at = now
            self.db.flush()

            if was_counted:
                self._revoke_credit(answer.expert_id, was_accepted)
                self._recount(question)

            result = ModerationResult(
                answer=model_to_answer(answer), question=model_to_question(question)
            )
            self.db.commit()

        log_user_action(
            moderator.user_id,
            "ANSWER_REJECTED",
            f"Rejected answer {answer_id} (was approved: {was_counted}, was accepted: {was_accepted})",
        )
        if was_counted:
            self._retract(result, answer_id, posts, moderator.user_id)
        return result

    def moderate(
        self,
        answer_id: str,
        moderator: UserModel,
        approve: bool,
        comment: Optional[str] = None,
    ) -> ModerationResult:
        if approve:
            return self.approve(answer_id, moderator, comment)
        return self.reject(answer_id, moderator, comment)

    def accept(self, answer_id: str, actor: UserModel) -> ModerationResult:
        """Mark an approved answer as the accepted one for its question.

        The question row is claimed with a conditional UPDATE, so of two
        concurrent accepts on the same question only one can win.

        Raises:
            NotFoundError: answer_not_found.
            ConflictError: not_approved or already_accepted.
            ForbiddenError: not_question_author.
        """
        answer = self._get_answer(answer_id)
        if answer.status != AnswerStatus.APPROVED.value:
            raise ConflictError(ErrorKind.NOT_APPROVED, "Only approved answers can be accepted")

        with self._transition(answer_id):
            question = self._lock_question(answer.question_id)
            if question.author_id != actor.user_id:
                raise ForbiddenError(
                    ErrorKind.NOT_QUESTION_AUTHOR, "Only the question author can accept an answer"
                )
            if answer.is_accepted or question.has_accepted_answer:
                raise ConflictError(ErrorKind.ALREADY_ACCEPTED, "Question already has an accepted answer")

            answer.is_accepted = True
            answer.updated_at = self.clock()
            self.db.flush()

            claimed = (
                self.db.query(QuestionModel)
                .filter(
                    QuestionModel.question_id == question.question_id,
                    QuestionModel.has_accepted_answer.is_(False),
                )
                .update(
                    {
                        QuestionModel.has_accepted_answer: True,
                        QuestionModel.status: QuestionStatus.ANSWERED.value,
                    },
                    synchronize_session=False,
                )
            )
            if claimed != 1:
                raise ConflictError(ErrorKind.ALREADY_ACCEPTED, "Question already has an accepted answer")

            self._adjust_counter(UserModel.rating, answer.expert_id, self.reputation_bonus)
            self.db.refresh(question)

            result = ModerationResult(
                answer=model_to_answer(answer), question=model_to_question(question)
            )
            self.db.commit()

        log_user_action(
            actor.user_id,
            "ANSWER_ACCEPTED",
            f"Accepted answer {answer_id}, +{self.reputation_bonus} to {result.answer.expert_id}",
        )
        return result

    def edit(self, answer_id: str, actor: UserModel, content: str) -> ModerationResult:
        """Replace an answer's content.

        An administrator edits in place and the mirror is republished. When
        the owning expert edits an approved answer, approval is revoked as on
        a rejection; a rejected answer goes back to pending.

        Raises:
            ValidationError: Content length out of range.
            NotFoundError: answer_not_found.
            ForbiddenError: not_answer_owner.
            ConflictError: concurrent_modification.
        """
        content = self._validate_content(content)
        answer = self._get_answer(answer_id)
        is_admin = actor.role in MODERATOR_ROLES
        if answer.expert_id != actor.user_id and not is_admin:
            raise ForbiddenError(ErrorKind.NOT_ANSWER_OWNER, "You can only edit your own answers")

        with self._transition(answer_id):
            question = self._lock_question(answer.question_id)
            was_counted = answer.status == AnswerStatus.APPROVED.value
            was_accepted = bool(answer.is_accepted)
            posts = list(answer.social_posts or [])
            revoked = was_counted and not is_admin

            answer.content = content
            answer.updated_at = self.clock()
            if not is_admin and answer.status != AnswerStatus.PENDING.value:
                answer.status = AnswerStatus.PENDING.value
                answer.is_accepted = False
            self.db.flush()

            if revoked:
                self._revoke_credit(answer.expert_id, was_accepted)
                self._recount(question)

            result = ModerationResult(
                answer=model_to_answer(answer), question=model_to_question(question)
            )
            self.db.commit()

        log_user_action(
            actor.user_id,
            "ANSWER_UPDATED",
            f"Edited answer {answer_id} (admin: {is_admin}, approval revoked: {revoked})",
        )
        if revoked:
            self._retract(result, answer_id, posts, actor.user_id)
        elif is_admin and was_counted and posts:
            self._republish(result, posts, actor.user_id)
        return result

    def delete(self, answer_id: str, actor: UserModel) -> ModerationResult:
        """Delete an answer.

        Owners may only delete answers that were never approved. Mirror posts
        are retracted once the deletion has committed; a failed retract only
        adds a warning.

        Raises:
            NotFoundError: answer_not_found.
            ForbiddenError: not_answer_owner or previously_approved.
            ConflictError: concurrent_modification.
        """
        answer = self._get_answer(answer_id)
        is_admin = actor.role in MODERATOR_ROLES
        if answer.expert_id != actor.user_id and not is_admin:
            raise ForbiddenError(ErrorKind.NOT_ANSWER_OWNER, "You can only delete your own answers")
        if not is_admin and answer.was_approved:
            raise ForbiddenError(
                ErrorKind.PREVIOUSLY_APPROVED,
                "An answer that has been approved cannot be deleted",
            )

        with self._transition(answer_id):
            question = self._lock_question(answer.question_id)
            was_counted = answer.status == AnswerStatus.APPROVED.value
            was_accepted = bool(answer.is_accepted)
            expert_id = answer.expert_id
            posts = list(answer.social_posts or [])

            self.db.query(AnswerLikeModel).filter(
                AnswerLikeModel.answer_id == answer_id
            ).delete(synchronize_session=False)
            self.db.delete(answer)
            self.db.flush()

            if was_counted:
                self._revoke_credit(expert_id, was_accepted)
                self._recount(question)

            result = ModerationResult(answer=None, question=model_to_question(question))
            self.db.commit()

        log_user_action(actor.user_id, "ANSWER_DELETED", f"Deleted answer {answer_id}")
        self._retract(result, answer_id, posts, actor.user_id)
        return result

    def toggle_like(self, answer_id: str, actor: UserModel) -> LikeResponse:
        """Like an answer, or remove the caller's like if there already is one.

        One like per account and answer. The counter is kept on the answer and
        never drops below zero.

        Raises:
            NotFoundError: answer_not_found.
        """
        self._get_answer(answer_id)
        mine = self.db.query(AnswerLikeModel).filter(
            AnswerLikeModel.answer_id == answer_id,
            AnswerLikeModel.user_id == actor.user_id,
        )
        try:
            if mine.delete(synchronize_session=False):
                self._adjust_likes(answer_id, -1)
                liked, action = False, "removed"
            else:
                self.db.add(
                    AnswerLikeModel(
                        like_id=str(uuid.uuid4()),
                        answer_id=answer_id,
                        user_id=actor.user_id,
                        created_at=self.clock(),
                    )
                )
                self.db.flush()
                self._adjust_likes(answer_id, 1)
                liked, action = True, "added"
            self.db.commit()
        except IntegrityError:
            # A parallel request from the same account got there first
            self.db.rollback()
            liked, action = True, "duplicate"
        except Exception:
            self.db.rollback()
            raise

        likes = (
            self.db.query(AnswerModel.likes)
            .filter(AnswerModel.answer_id == answer_id)
            .scalar()
        )
        log_user_action(
            actor.user_id,
            "ANSWER_LIKED" if liked else "ANSWER_UNLIKED",
            f"{action} like for answer {answer_id}",
        )
        return LikeResponse(answer_id=answer_id, liked=liked, action=action, likes=likes or 0)

    def recount(self, question_id: str) -> Question:
        """Recompute a question's aggregates from its approved answers."""
        with self._transition(question_id):
            question = self._lock_question(question_id)
            self._recount(question)
            snapshot = model_to_question(question)
            self.db.commit()
        return snapshot

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_answer(self, answer_id: str) -> Answer:
        return model_to_answer(self._get_answer(answer_id))

    def list_pending(self, page: int = 1, limit: int = 20) -> AnswerPage:
        """Answers awaiting moderation, oldest first."""
        page = max(1, page)
        limit = min(max(1, limit), 100)
        query = self.db.query(AnswerModel).filter(
            AnswerModel.status == AnswerStatus.PENDING.value
        )
        total = query.count()
        models = (
            query.order_by(AnswerModel.created_at.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return AnswerPage(
            items=[model_to_answer(m) for m in models],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0,
        )

    def list_for_question(self, question_id: str, include_unapproved: bool = False) -> List[Answer]:
        """Answers of a question, the accepted one first.

        Args:
            question_id: Parent question.
            include_unapproved: Also return pending and rejected answers.
        """
        query = self.db.query(AnswerModel).filter(AnswerModel.question_id == question_id)
        if not include_unapproved:
            query = query.filter(AnswerModel.status == AnswerStatus.APPROVED.value)
        models = query.order_by(
            AnswerModel.is_accepted.desc(), AnswerModel.created_at.asc()
        ).all()
        return [model_to_answer(m) for m in models]
