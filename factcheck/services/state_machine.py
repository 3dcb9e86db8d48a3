"""Verification lifecycle: creation, table-driven transitions and forced errors."""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Set, Union
from uuid import UUID

from sqlalchemy.orm import Session

from factcheck.errors import InvalidTransition, NotFound, ValidationError
from factcheck.models.verification import Verification
from factcheck.services.process_log import AuditLog

logger = logging.getLogger(__name__)

DRAFT = "draft"
PROCESSING_QUESTIONS = "processing_questions"
SOURCES_READY = "sources_ready"
GENERATING_SUMMARY = "generating_summary"
COMPLETED = "completed"
ERROR = "error"

STATUSES = (DRAFT, PROCESSING_QUESTIONS, SOURCES_READY, GENERATING_SUMMARY, COMPLETED, ERROR)
TERMINAL_STATUSES = (COMPLETED, ERROR)

ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    DRAFT: {PROCESSING_QUESTIONS, ERROR},
    PROCESSING_QUESTIONS: {SOURCES_READY, ERROR},
    SOURCES_READY: {GENERATING_SUMMARY, ERROR},
    GENERATING_SUMMARY: {COMPLETED, ERROR},
    COMPLETED: set(),
    ERROR: set(),
}

MIN_TEXT_LENGTH = 10
MAX_TEXT_LENGTH = 5000


# Main path, in order; error sits outside it
PIPELINE_ORDER = (DRAFT, PROCESSING_QUESTIONS, SOURCES_READY, GENERATING_SUMMARY, COMPLETED)


def is_allowed(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def has_passed(current: str, status: str) -> bool:
    """True if current lies strictly beyond status on the main path."""
    if current not in PIPELINE_ORDER or status not in PIPELINE_ORDER:
        return False
    return PIPELINE_ORDER.index(current) > PIPELINE_ORDER.index(status)


class VerificationStateMachine:
    """Owns the status column of verifications."""

    def __init__(self, db: Session, audit: Optional[AuditLog] = None):
        self.db = db
        self.audit = audit or AuditLog(db)

    def create(self, user_id: str, text: str, language: str = "es") -> Verification:
        """
        Insert a new verification in 'draft'.

        Raises:
            ValidationError: If the trimmed text is outside 10-5000 characters
        """
        trimmed = (text or "").strip()
        if len(trimmed) < MIN_TEXT_LENGTH or len(trimmed) > MAX_TEXT_LENGTH:
            raise ValidationError(
                f"Claim text must be between {MIN_TEXT_LENGTH} and {MAX_TEXT_LENGTH} characters "
                f"(got {len(trimmed)})"
            )

        verification = Verification(
            user_id=str(user_id),
            original_text=trimmed,
            language=language,
            status=DRAFT,
        )
        self.db.add(verification)
        self.db.commit()

        logger.info(f"Verification created: {verification.id} for user {user_id}")
        return verification

    def get(self, verification_id: UUID) -> Verification:
        verification = self.db.get(Verification, verification_id)
        if verification is None:
            raise NotFound(f"Verification {verification_id} not found")
        return verification

    def list_for_user(self, user_id: str, status: Optional[str] = None) -> List[Verification]:
        query = self.db.query(Verification).filter(Verification.user_id == str(user_id))
        if status:
            query = query.filter(Verification.status == status)
        return query.order_by(Verification.created_at.desc()).all()

    def transition(
        self,
        verification_id: UUID,
        target: str,
        expected_from: Optional[str] = None,
    ) -> Verification:
        """
        Apply a table-allowed transition with a conditional update.

        The UPDATE only matches while the row still holds the 'from' status,
        so of two concurrent callers advancing the same verification exactly
        one wins; the other gets InvalidTransition and nothing is written.

        Args:
            verification_id: Verification to advance
            target: Desired status
            expected_from: Status the caller believes is current; defaults
                to the status read from the store

        Raises:
            NotFound: If the verification does not exist
            InvalidTransition: If the move is not in the table or the row
                changed underneath the caller
        """
        if target not in STATUSES:
            raise InvalidTransition(None, target)

        current = expected_from
        if current is None:
            current = self.get(verification_id).status

        if not is_allowed(current, target):
            raise InvalidTransition(current, target)

        updated = (
            self.db.query(Verification)
            .filter(Verification.id == verification_id, Verification.status == current)
            .update({"status": target, "updated_at": datetime.utcnow()}, synchronize_session=False)
        )
        if updated == 0:
            self.db.rollback()
            actual = self.db.get(Verification, verification_id)
            if actual is None:
                raise NotFound(f"Verification {verification_id} not found")
            logger.warning(
                f"Verification {verification_id} moved to '{actual.status}' before {current} -> {target}"
            )
            raise InvalidTransition(actual.status, target)

        self.db.commit()
        logger.info(f"Verification {verification_id} status: {current} -> {target}")
        return self.get(verification_id)

    def force_error(
        self,
        verification_id: UUID,
        cause: Union[str, Exception],
        step: Optional[str] = None,
    ) -> Verification:
        """
        Move a verification to 'error' unconditionally.

        Orchestration failures arrive already audited and pass no step.
        Any other cause must name the step so an error entry is appended.
        """
        message = str(cause) or cause.__class__.__name__
        self.db.rollback()

        updated = (
            self.db.query(Verification)
            .filter(Verification.id == verification_id)
            .update({"status": ERROR, "updated_at": datetime.utcnow()}, synchronize_session=False)
        )
        if updated == 0:
            self.db.rollback()
            raise NotFound(f"Verification {verification_id} not found")
        self.db.commit()

        if step is not None:
            self.audit.log_error(verification_id, step, message)

        logger.error(f"Verification {verification_id} forced to error: {message}")
        return self.get(verification_id)
