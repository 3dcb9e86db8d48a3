"""Drives external jobs: submission with backoff, then polling to a terminal status."""

import logging
import threading
import time
from typing import Callable, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from tenacity import Retrying, before_sleep_log, stop_after_attempt, wait_exponential

from factcheck.config import settings
from factcheck.errors import EmptyResult, JobFailed, PollingCancelled, PollingTimeout, TransientError
from factcheck.services.external_api import ExternalApiClient
from factcheck.services.process_log import AuditLog

logger = logging.getLogger(__name__)

T = TypeVar("T")

FAILED_JOB_STATUSES = ("failed", "error")


def backoff_delay(attempt: int, base_ms: int) -> int:
    """Delay in milliseconds after a failed attempt: base * 2^(attempt-1)."""
    return base_ms * 2 ** (attempt - 1)


class JobOrchestrator:
    """
    Run one external job stage with bounded retries and bounded polling.

    Every call to run_with_retry writes exactly one 'started' entry and one
    terminal entry. poll_until_done writes exactly one terminal entry per
    outcome, except on cancellation which writes nothing.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[ExternalApiClient] = None,
        audit: Optional[AuditLog] = None,
        max_retries: Optional[int] = None,
        retry_delay_ms: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
        poll_max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.client = client or ExternalApiClient()
        self.audit = audit or AuditLog(db)
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay_ms = settings.RETRY_DELAY_MS if retry_delay_ms is None else retry_delay_ms
        self.poll_interval_ms = settings.POLL_INTERVAL_MS if poll_interval_ms is None else poll_interval_ms
        self.poll_max_attempts = settings.POLL_MAX_ATTEMPTS if poll_max_attempts is None else poll_max_attempts
        self.sleep = sleep

    def _retrying(self) -> Retrying:
        # wait_exponential yields multiplier * 2^(attempt-1), i.e. backoff_delay in seconds
        return Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay_ms / 1000, exp_base=2),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def run_with_retry(self, verification_id: UUID, step: str, operation: Callable[[], T]) -> T:
        """
        Call a submission operation until it succeeds or retries run out.

        Args:
            verification_id: Verification the work belongs to
            step: Step name recorded in the audit log
            operation: Zero-argument callable, e.g. a job submission

        Returns:
            Whatever the operation returned on its first success

        Raises:
            TransientError: All attempts failed; carries the last failure's message
        """
        self.audit.log_start(verification_id, step)

        try:
            result = self._retrying()(operation)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"{step} failed after {self.max_retries} attempts for {verification_id}: {message}")
            self.audit.log_error(verification_id, step, message, api_response=e)
            raise TransientError(step, message) from e

        self.audit.log_completed(verification_id, step, api_response=result)
        return result

    def _wait(self, stop_event: Optional[threading.Event]) -> bool:
        """Sleep one poll interval; True if cancelled meanwhile."""
        seconds = self.poll_interval_ms / 1000
        if stop_event is not None:
            return stop_event.wait(seconds)
        self.sleep(seconds)
        return False

    def poll_until_done(
        self,
        job_id: str,
        step: str,
        verification_id: UUID,
        result_model: Optional[Type[BaseModel]] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Query a job until it reaches a terminal status or the budget runs out.

        Args:
            job_id: External job id returned at submission
            step: Step name recorded in the audit log
            verification_id: Verification the job belongs to
            result_model: Optional model the completed payload must satisfy
            stop_event: Set to abandon polling without touching the verification

        Returns:
            The result payload, parsed into result_model when given

        Raises:
            JobFailed: The job reported 'failed' or 'error'
            EmptyResult: Completed without a payload, or with a malformed one
            PollingTimeout: No terminal status within the attempt budget
            PollingCancelled: stop_event was set
        """
        for attempt in range(1, self.poll_max_attempts + 1):
            if stop_event is not None and stop_event.is_set():
                raise PollingCancelled(f"{step}: polling for job {job_id} cancelled")

            try:
                job = self.client.get_job_status(job_id)
            except Exception as e:
                # A failed status query costs one attempt, nothing more
                logger.warning(f"Status query {attempt}/{self.poll_max_attempts} for job {job_id} failed: {e}")
                job = None

            if job is not None:
                logger.info(f"Job {job_id} ({step}) status '{job.status}' [{attempt}/{self.poll_max_attempts}]")

                if job.status == "completed":
                    return self._accept_result(job_id, step, verification_id, job.result, result_model)

                if job.status in FAILED_JOB_STATUSES:
                    message = job.error or f"Job {job_id} reported status '{job.status}'"
                    self.audit.log_error(verification_id, step, message, api_response=job)
                    raise JobFailed(step, message)

            if attempt < self.poll_max_attempts and self._wait(stop_event):
                raise PollingCancelled(f"{step}: polling for job {job_id} cancelled")

        message = f"Job {job_id} did not finish after {self.poll_max_attempts} polling attempts"
        self.audit.log_error(verification_id, step, message)
        raise PollingTimeout(step, message)

    def _accept_result(self, job_id, step, verification_id, payload, result_model):
        if not payload:
            message = f"Job {job_id} completed without a result"
            self.audit.log_error(verification_id, step, message)
            raise EmptyResult(step, message)

        if result_model is None:
            self.audit.log_completed(verification_id, step, api_response=payload)
            return payload

        try:
            parsed = result_model.model_validate(payload)
        except PydanticValidationError as e:
            message = f"Job {job_id} returned a malformed result: {e.error_count()} validation error(s)"
            self.audit.log_error(verification_id, step, message, api_response=payload)
            raise EmptyResult(step, message) from e

        self.audit.log_completed(verification_id, step, api_response=payload)
        return parsed
