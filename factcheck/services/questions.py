"""Idempotent persistence and gapless reordering of critical questions."""

import logging
from typing import Iterable, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from factcheck.errors import NotFound, OwnershipViolation, ValidationError
from factcheck.models.question import Question
from factcheck.schemas.question import QuestionReorderItem, SaveBatchResult
from factcheck.schemas.results import ReceivedQuestion

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 5
MAX_QUESTION_LENGTH = 200

# Added on top of max index + row count when parking rows before a reorder
REORDER_OFFSET = 100


def validate_question_text(text: Optional[str]) -> str:
    """Trim and bound-check question text, raising ValidationError."""
    trimmed = (text or "").strip()
    if len(trimmed) < MIN_QUESTION_LENGTH or len(trimmed) > MAX_QUESTION_LENGTH:
        raise ValidationError(
            f"Question text must be between {MIN_QUESTION_LENGTH} and {MAX_QUESTION_LENGTH} characters"
        )
    return trimmed


class QuestionStore:
    """Question persistence for a verification."""

    def __init__(self, db: Session):
        self.db = db

    def count(self, verification_id: UUID) -> int:
        return (
            self.db.query(func.count(Question.id))
            .filter(Question.verification_id == verification_id)
            .scalar()
        )

    def list(self, verification_id: UUID) -> List[Question]:
        return (
            self.db.query(Question)
            .filter(Question.verification_id == verification_id)
            .order_by(Question.order_index)
            .all()
        )

    def get(self, question_id: UUID) -> Question:
        question = self.db.get(Question, question_id)
        if question is None:
            raise NotFound(f"Question {question_id} not found")
        return question

    def _get_owned(self, question_id: UUID, verification_id: Optional[UUID]) -> Question:
        question = self.get(question_id)
        if verification_id is not None and question.verification_id != verification_id:
            raise OwnershipViolation(f"Question {question_id} does not belong to verification {verification_id}")
        return question

    def save_batch(
        self,
        verification_id: UUID,
        questions: Iterable[Union[ReceivedQuestion, dict]],
    ) -> SaveBatchResult:
        """
        Persist a batch of generated or confirmed questions exactly once.

        If any question already exists for the verification the batch is
        treated as applied and nothing is written. Invalid candidates are
        skipped and logged rather than failing the batch.

        Returns:
            SaveBatchResult with the number of rows for the verification and
            whether they were already there
        """
        existing = self.count(verification_id)
        if existing > 0:
            logger.info(f"Questions already exist for verification {verification_id}, skipping save")
            return SaveBatchResult(count=existing, existed=True)

        records = []
        for position, raw in enumerate(questions or []):
            candidate = raw if isinstance(raw, ReceivedQuestion) else ReceivedQuestion(**raw)
            text = (candidate.question_text or "").strip()

            if not text:
                logger.warning(f"Skipping empty question at index {position}")
                continue
            if len(text) < MIN_QUESTION_LENGTH or len(text) > MAX_QUESTION_LENGTH:
                logger.warning(f"Skipping question at index {position}: invalid length ({len(text)} characters)")
                continue

            order_index = candidate.order_index if candidate.order_index is not None else position
            if order_index < 0:
                logger.warning(f"Skipping question at index {position}: negative order index {order_index}")
                continue

            records.append(
                Question(
                    verification_id=verification_id,
                    question_text=text,
                    original_question=(candidate.original_question or "").strip() or text,
                    is_edited=False,
                    order_index=order_index,
                )
            )

        if not records:
            logger.warning(f"No valid questions to save for verification {verification_id}")
            return SaveBatchResult(count=0, existed=False)

        self.db.add_all(records)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # A concurrent delivery of the same batch may have won the race
            existing = self.count(verification_id)
            if existing > 0:
                logger.info(f"Questions for verification {verification_id} saved concurrently, skipping")
                return SaveBatchResult(count=existing, existed=True)
            raise ValidationError(f"Duplicate order index found for verification {verification_id}") from e

        logger.info(f"Saved {len(records)} critical questions for verification {verification_id}")
        return SaveBatchResult(count=len(records), existed=False)

    def add(self, verification_id: UUID, question_text: str) -> Question:
        """Append a user-written question after the current last one."""
        text = validate_question_text(question_text)

        max_order = (
            self.db.query(func.max(Question.order_index))
            .filter(Question.verification_id == verification_id)
            .scalar()
        )
        question = Question(
            verification_id=verification_id,
            question_text=text,
            original_question=text,
            is_edited=False,
            order_index=0 if max_order is None else max_order + 1,
        )
        self.db.add(question)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError("Question order changed concurrently, please retry") from e

        logger.info(f"Question {question.id} added to verification {verification_id}")
        return question

    def update(self, question_id: UUID, question_text: str, verification_id: Optional[UUID] = None) -> Question:
        """Replace the text of a question and mark it edited."""
        text = validate_question_text(question_text)
        question = self._get_owned(question_id, verification_id)

        question.question_text = text
        question.is_edited = True
        self.db.commit()

        logger.info(f"Updated critical question {question_id}")
        return question

    def delete(self, question_id: UUID, verification_id: Optional[UUID] = None) -> None:
        question = self._get_owned(question_id, verification_id)
        self.db.delete(question)
        self.db.commit()
        logger.info(f"Deleted critical question {question_id}")

    def reorder(self, verification_id: UUID, items: Sequence[QuestionReorderItem]) -> List[Question]:
        """
        Reassign order indices without ever holding a duplicate index.

        All rows are first parked in an index range above every current
        value, then the requested positions are written and the remaining
        rows fill the free slots in their previous relative order. The whole
        update is one transaction.

        Raises:
            OwnershipViolation: A requested id is not a question of this verification
            ValidationError: Duplicate ids, duplicate or out-of-range indices
        """
        existing = self.list(verification_id)
        existing_ids = {q.id for q in existing}

        for item in items:
            if item.id not in existing_ids:
                raise OwnershipViolation(f"Question {item.id} does not belong to verification {verification_id}")

        requested_ids = [item.id for item in items]
        requested_indices = [item.order_index for item in items]
        if len(set(requested_ids)) != len(requested_ids):
            raise ValidationError("Each question may appear only once in a reorder request")
        if len(set(requested_indices)) != len(requested_indices):
            raise ValidationError("Order indices in a reorder request must be unique")
        for index in requested_indices:
            if index < 0 or index >= len(existing):
                raise ValidationError(f"Order index {index} is outside 0..{len(existing) - 1}")

        if not items:
            return existing

        max_index = max(q.order_index for q in existing)
        offset = max_index + len(existing) + REORDER_OFFSET

        taken = set(requested_indices)
        free_slots = (index for index in range(len(existing)) if index not in taken)
        untouched = [q.id for q in existing if q.id not in set(requested_ids)]

        try:
            # Phase 1: park every row in a disjoint range
            self.db.query(Question).filter(Question.verification_id == verification_id).update(
                {Question.order_index: Question.order_index + offset}, synchronize_session=False
            )

            # Phase 2: requested positions
            for item in items:
                self.db.query(Question).filter(Question.id == item.id).update(
                    {Question.order_index: item.order_index}, synchronize_session=False
                )

            # Phase 3: close the gaps with the rows nobody asked to move
            for question_id in untouched:
                self.db.query(Question).filter(Question.id == question_id).update(
                    {Question.order_index: next(free_slots)}, synchronize_session=False
                )

            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError(f"Reorder conflicted for verification {verification_id}") from e

        self.db.expire_all()
        logger.info(f"Reordered {len(items)} questions for verification {verification_id}")
        return self.list(verification_id)

    def ensure_ready(self, verification_id: UUID) -> List[Question]:
        """Check the questions can be sent on to source search."""
        questions = self.list(verification_id)
        if not questions:
            raise ValidationError("At least one question is required to continue")
        for question in questions:
            if len((question.question_text or "").strip()) < MIN_QUESTION_LENGTH:
                raise ValidationError(f"All questions must have at least {MIN_QUESTION_LENGTH} characters")
        return questions
