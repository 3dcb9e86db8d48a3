"""Stage flows: each begins or continues one stage of a verification."""

import logging
import threading
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from factcheck.config import settings
from factcheck.errors import InvalidState, OrchestrationError, ValidationError
from factcheck.models.final_result import FinalResult
from factcheck.models.job import Job
from factcheck.models.source import Source
from factcheck.models.verification import Verification
from factcheck.schemas.question import SaveBatchResult
from factcheck.schemas.results import AnalysisResult, QuestionsResult, SourcesResult
from factcheck.services.external_api import ExternalApiClient
from factcheck.services.final_result import FinalResultStore
from factcheck.services.orchestrator import JobOrchestrator
from factcheck.services.permissions import PermissionGate
from factcheck.services.process_log import STARTED, AuditLog
from factcheck.services.questions import QuestionStore
from factcheck.services.sources import SourceStore
from factcheck.services.state_machine import (
    COMPLETED,
    GENERATING_SUMMARY,
    PROCESSING_QUESTIONS,
    SOURCES_READY,
    VerificationStateMachine,
    has_passed,
)

logger = logging.getLogger(__name__)

GENERATE_QUESTIONS = "generate_questions"
SEARCH_SOURCES = "search_sources"
GENERATE_ARTICLE = "generate_article"

# Worker stages, each resuming a submitted external job
COLLECT_QUESTIONS = "collect_questions"
COLLECT_SOURCES = "collect_sources"
COLLECT_ANALYSIS = "collect_analysis"

# Step whose external job each stage collects
STAGE_STEPS = {
    COLLECT_QUESTIONS: GENERATE_QUESTIONS,
    COLLECT_SOURCES: SEARCH_SOURCES,
    COLLECT_ANALYSIS: GENERATE_ARTICLE,
}


class VerificationPipeline:
    """Ties the state machine, orchestrator and artifact stores together."""

    def __init__(
        self,
        db: Session,
        client: Optional[ExternalApiClient] = None,
        orchestrator: Optional[JobOrchestrator] = None,
    ):
        self.db = db
        self.audit = AuditLog(db)
        self.state = VerificationStateMachine(db, self.audit)
        self.gate = PermissionGate(db)
        self.questions = QuestionStore(db)
        self.sources = SourceStore(db)
        self.results = FinalResultStore(db)
        self.orchestrator = orchestrator or JobOrchestrator(db, client=client, audit=self.audit)

    @property
    def client(self) -> ExternalApiClient:
        return self.orchestrator.client

    def _enqueue(self, verification_id: UUID, stage: str, external_job_id: str) -> Job:
        job = Job(
            verification_id=verification_id,
            stage=stage,
            status="queued",
            payload={"external_job_id": external_job_id},
        )
        self.db.add(job)
        self.db.commit()
        logger.info(f"Enqueued {stage} for verification {verification_id} (external job {external_job_id})")
        return job

    def _submit(self, verification_id: UUID, step: str, payload: dict) -> str:
        """Submit a step's job; on failure the verification is forced to error."""
        try:
            return self.orchestrator.run_with_retry(
                verification_id, step, lambda: self.client.submit(step, payload)
            )
        except OrchestrationError as e:
            self.state.force_error(verification_id, e)
            raise

    def _collect(self, verification_id: UUID, step: str, external_job_id: str, result_model, stop_event):
        """Poll a step's job; on failure the verification is forced to error."""
        try:
            return self.orchestrator.poll_until_done(
                external_job_id, step, verification_id, result_model=result_model, stop_event=stop_event
            )
        except OrchestrationError as e:
            self.state.force_error(verification_id, e)
            raise

    def _active_job(self, verification_id: UUID, stage: str) -> Optional[Job]:
        return (
            self.db.query(Job)
            .filter(Job.verification_id == verification_id, Job.stage == stage, Job.status != "failed")
            .order_by(Job.created_at)
            .first()
        )

    def _already_applied(self, verification: Verification, status: str, stage: str) -> bool:
        """True if the verification has moved past the status a stage works in."""
        if not has_passed(verification.status, status):
            return False
        logger.info(
            f"{stage} for verification {verification.id} already applied "
            f"(status '{verification.status}'), skipping"
        )
        return True

    def _require_status(self, verification: Verification, status: str) -> None:
        if verification.status != status:
            raise InvalidState(
                f"Verification {verification.id} is '{verification.status}', expected '{status}'",
                status=verification.status,
            )

    # Stage 1: question generation

    def start_verification(self, user_id: str, text: str, language: Optional[str] = None) -> Tuple[Verification, str]:
        """
        Create a verification and submit its question-generation job.

        Returns:
            (verification, external job id)
        """
        verification = self.state.create(user_id, text, language or settings.DEFAULT_LANGUAGE)
        self.state.transition(verification.id, PROCESSING_QUESTIONS, expected_from="draft")

        job_id = self._submit(
            verification.id,
            GENERATE_QUESTIONS,
            {
                "verification_id": str(verification.id),
                "input": verification.original_text,
                "language": verification.language,
                "location": settings.LOCATION,
                "model": settings.MODEL,
                "max_questions": settings.MAX_QUESTIONS,
            },
        )
        self._enqueue(verification.id, COLLECT_QUESTIONS, job_id)
        return self.state.get(verification.id), job_id

    def collect_questions(
        self, verification_id: UUID, external_job_id: str, stop_event: Optional[threading.Event] = None
    ) -> Optional[SaveBatchResult]:
        """Store generated questions; None if a duplicate job finds the stage already applied."""
        verification = self.state.get(verification_id)
        if self._already_applied(verification, PROCESSING_QUESTIONS, COLLECT_QUESTIONS):
            return None
        self._require_status(verification, PROCESSING_QUESTIONS)

        existing = self.questions.count(verification_id)
        if existing > 0:
            logger.info(f"Questions for verification {verification_id} already collected, skipping poll")
            return SaveBatchResult(count=existing, existed=True)

        result = self._collect(verification_id, GENERATE_QUESTIONS, external_job_id, QuestionsResult, stop_event)
        return self.questions.save_batch(verification_id, result.questions)

    # Stage 2: source discovery

    def confirm_questions(self, user_id: str, verification_id: UUID) -> str:
        """
        Submit the reviewed questions for source search.

        A repeated confirmation returns the job already queued instead of
        submitting a second search.

        Returns:
            The external job id
        """
        verification = self.gate.authorize(verification_id, user_id, require_edit=True)

        queued = self._active_job(verification_id, COLLECT_SOURCES)
        if queued is not None:
            logger.info(f"Source search already queued for verification {verification_id}")
            return queued.payload["external_job_id"]
        latest = self.audit.latest_for_step(verification_id, SEARCH_SOURCES)
        if latest is not None and latest.status == STARTED:
            raise InvalidState("Source search is already being submitted", status=verification.status)

        questions = self.questions.ensure_ready(verification_id)

        job_id = self._submit(
            verification_id,
            SEARCH_SOURCES,
            {
                "verification_id": str(verification_id),
                "questions": [q.question_text for q in questions],
                "input": verification.original_text,
                "language": verification.language,
                "location": settings.LOCATION,
                "model": settings.MODEL,
            },
        )
        self._enqueue(verification_id, COLLECT_SOURCES, job_id)
        return job_id

    def collect_sources(
        self, verification_id: UUID, external_job_id: str, stop_event: Optional[threading.Event] = None
    ) -> Optional[int]:
        verification = self.state.get(verification_id)
        if self._already_applied(verification, PROCESSING_QUESTIONS, COLLECT_SOURCES):
            return None
        self._require_status(verification, PROCESSING_QUESTIONS)

        result = self._collect(verification_id, SEARCH_SOURCES, external_job_id, SourcesResult, stop_event)
        count = self.sources.save_batch(verification_id, result.sources)
        self.state.transition(verification_id, SOURCES_READY, expected_from=PROCESSING_QUESTIONS)
        return count

    def select_source(self, user_id: str, verification_id: UUID, source_id: UUID, is_selected: bool) -> Source:
        verification = self.gate.authorize(verification_id, user_id)
        self._require_status(verification, SOURCES_READY)
        return self.sources.set_selection(verification_id, source_id, is_selected)

    # Stage 3: analysis

    def request_analysis(self, user_id: str, verification_id: UUID) -> str:
        """Submit the selected sources for the final analysis. Returns the external job id."""
        verification = self.gate.authorize(verification_id, user_id)
        self._require_status(verification, SOURCES_READY)

        selected = self.sources.selected(verification_id)
        if not selected:
            raise ValidationError("No sources were selected for the analysis")
        questions = self.questions.list(verification_id)

        self.state.transition(verification_id, GENERATING_SUMMARY, expected_from=SOURCES_READY)

        job_id = self._submit(
            verification_id,
            GENERATE_ARTICLE,
            {
                "verification_id": str(verification_id),
                "questions": [q.question_text for q in questions],
                "input": verification.original_text,
                "language": verification.language,
                "location": settings.LOCATION,
                "model": settings.MODEL,
                "sources": [
                    {
                        "title": s.title,
                        "link": s.url,
                        "snippet": s.summary,
                        "favicon": s.favicon,
                        "base_url": s.domain,
                    }
                    for s in selected
                ],
            },
        )
        self._enqueue(verification_id, COLLECT_ANALYSIS, job_id)
        return job_id

    def collect_analysis(
        self, verification_id: UUID, external_job_id: str, stop_event: Optional[threading.Event] = None
    ) -> Optional[FinalResult]:
        verification = self.state.get(verification_id)
        if self._already_applied(verification, GENERATING_SUMMARY, COLLECT_ANALYSIS):
            return None
        self._require_status(verification, GENERATING_SUMMARY)

        result = self.results.get(verification_id)
        if result is None:
            analysis: AnalysisResult = self._collect(
                verification_id, GENERATE_ARTICLE, external_job_id, AnalysisResult, stop_event
            )
            result, _ = self.results.save(verification_id, analysis)
        self.state.transition(verification_id, COMPLETED, expected_from=GENERATING_SUMMARY)
        return result

    def run_stage(
        self, stage: str, verification_id: UUID, external_job_id: str, stop_event: Optional[threading.Event] = None
    ):
        """Dispatch a worker stage by name."""
        handlers = {
            COLLECT_QUESTIONS: self.collect_questions,
            COLLECT_SOURCES: self.collect_sources,
            COLLECT_ANALYSIS: self.collect_analysis,
        }
        handler = handlers.get(stage)
        if handler is None:
            raise ValueError(f"Unknown stage: {stage}")
        return handler(verification_id, external_job_id, stop_event=stop_event)
