"""Append-only audit trail of orchestration steps."""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from factcheck.config import settings
from factcheck.errors import ValidationError
from factcheck.models.process_log import ProcessLog
from factcheck.schemas.process_log import ProcessStatistics

logger = logging.getLogger(__name__)

STARTED = "started"
COMPLETED = "completed"
ERROR = "error"

LOG_STATUSES = (STARTED, COMPLETED, ERROR)

MAX_STEP_LENGTH = 100


def _to_json(payload: Any) -> Any:
    """Coerce an arbitrary payload into something a JSON column accepts."""
    if payload is None:
        return None
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    if isinstance(payload, BaseException):
        return {"type": payload.__class__.__name__, "message": str(payload)}
    return json.loads(json.dumps(payload, default=str))


class AuditLog:
    """Writes and queries process log entries for verifications."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        verification_id: UUID,
        step: str,
        status: str,
        error_message: Optional[str] = None,
        api_response: Any = None,
    ) -> ProcessLog:
        """
        Append a single entry and commit it.

        Args:
            verification_id: Parent verification
            step: Step name, e.g. 'generate_questions'
            status: One of 'started', 'completed', 'error'
            error_message: Required iff status is 'error'
            api_response: Optional payload stored as JSON

        Returns:
            The persisted entry

        Raises:
            ValidationError: On an unknown status, a bad step name, or an
                error message given for (or missing from) the wrong status
        """
        if status not in LOG_STATUSES:
            raise ValidationError(f"Unknown process log status: {status}")
        if not step or len(step) > MAX_STEP_LENGTH:
            raise ValidationError(f"Step name must be between 1 and {MAX_STEP_LENGTH} characters")
        if status == ERROR:
            if not error_message or not error_message.strip():
                raise ValidationError('Error message is required when status is "error"')
        elif error_message is not None:
            raise ValidationError(f'Error message is only allowed when status is "error", got "{status}"')

        entry = ProcessLog(
            verification_id=verification_id,
            step=step,
            status=status,
            error_message=error_message,
            api_response=_to_json(api_response),
        )
        self.db.add(entry)
        self.db.commit()

        logger.info(f"Process log {entry.log_id} for verification {verification_id}: {step} ({status})")
        return entry

    def log_start(self, verification_id: UUID, step: str) -> ProcessLog:
        return self.record(verification_id, step, STARTED)

    def log_completed(self, verification_id: UUID, step: str, api_response: Any = None) -> ProcessLog:
        return self.record(verification_id, step, COMPLETED, api_response=api_response)

    def log_error(
        self, verification_id: UUID, step: str, error_message: str, api_response: Any = None
    ) -> ProcessLog:
        return self.record(verification_id, step, ERROR, error_message=error_message, api_response=api_response)

    def _query(self, verification_id: UUID):
        return (
            self.db.query(ProcessLog)
            .filter(ProcessLog.verification_id == verification_id)
            .order_by(ProcessLog.created_at.desc(), ProcessLog.log_pk.desc())
        )

    def list_for_verification(self, verification_id: UUID) -> List[ProcessLog]:
        """All entries, newest first."""
        return self._query(verification_id).all()

    def latest_for_step(self, verification_id: UUID, step: str) -> Optional[ProcessLog]:
        return self._query(verification_id).filter(ProcessLog.step == step).first()

    def is_step_completed(self, verification_id: UUID, step: str) -> bool:
        latest = self.latest_for_step(verification_id, step)
        return latest is not None and latest.status == COMPLETED

    def errors(self, verification_id: UUID) -> List[ProcessLog]:
        return self._query(verification_id).filter(ProcessLog.status == ERROR).all()

    def statistics(self, verification_id: UUID) -> ProcessStatistics:
        logs = self.list_for_verification(verification_id)
        return ProcessStatistics(
            total=len(logs),
            started=sum(1 for log in logs if log.status == STARTED),
            completed=sum(1 for log in logs if log.status == COMPLETED),
            errors=sum(1 for log in logs if log.status == ERROR),
            unique_steps=len({log.step for log in logs}),
            last_activity=logs[0].created_at if logs else None,
        )

    def purge_older_than(self, days: Optional[int] = None, now: Optional[datetime] = None) -> int:
        """
        Delete entries older than the retention horizon.

        Maintenance only; nothing in the request path depends on it.

        Returns:
            Number of deleted entries
        """
        days = settings.PROCESS_LOG_RETENTION_DAYS if days is None else days
        cutoff = (now or datetime.utcnow()) - timedelta(days=days)

        deleted = (
            self.db.query(ProcessLog)
            .filter(ProcessLog.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()

        logger.info(f"Purged {deleted} process logs older than {days} days")
        return deleted
