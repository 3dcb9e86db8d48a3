"""Verification routes."""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends

from factcheck.errors import NotFound
from factcheck.routes.deps import get_current_user_id, get_pipeline
from factcheck.schemas.process_log import ProcessLogResponse, ProcessStatistics
from factcheck.schemas.verification import (
    FinalResultResponse,
    PermissionCheck,
    SourceResponse,
    SourceSelection,
    StatusResponse,
    VerificationCreate,
    VerificationResponse,
    VerificationStartResponse,
)
from factcheck.services.pipeline import VerificationPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verifications", tags=["verifications"])


@router.post("", response_model=VerificationStartResponse)
def start_verification(
    data: VerificationCreate,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Submit a claim and start question generation."""
    verification, job_id = pipeline.start_verification(user_id, data.text, data.language)
    logger.info(f"Started verification {verification.id} for user {user_id}, job {job_id}")
    return VerificationStartResponse(
        verification_id=verification.id,
        job_id=job_id,
        message="Job for question generation started successfully.",
    )


@router.get("", response_model=List[VerificationResponse])
def list_own_verifications(
    status: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    return pipeline.state.list_for_user(user_id, status=status)


@router.get("/{verification_id}", response_model=VerificationResponse)
def get_verification(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    return pipeline.gate.authorize(verification_id, user_id)


@router.get("/{verification_id}/status", response_model=StatusResponse)
def get_status(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    verification = pipeline.gate.authorize(verification_id, user_id)
    return StatusResponse(verification_id=verification.id, status=verification.status)


@router.get("/{verification_id}/permissions", response_model=PermissionCheck)
def check_permissions(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    return pipeline.gate.check(verification_id, user_id)


@router.get("/{verification_id}/logs", response_model=List[ProcessLogResponse])
def get_process_logs(
    verification_id: uuid.UUID,
    errors_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Process log, newest first."""
    pipeline.gate.authorize(verification_id, user_id)
    if errors_only:
        return pipeline.audit.errors(verification_id)
    return pipeline.audit.list_for_verification(verification_id)


@router.get("/{verification_id}/logs/statistics", response_model=ProcessStatistics)
def get_process_statistics(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id)
    return pipeline.audit.statistics(verification_id)


@router.post("/{verification_id}/confirm-questions", response_model=VerificationStartResponse)
def confirm_questions(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Confirm the reviewed questions and start source search."""
    job_id = pipeline.confirm_questions(user_id, verification_id)
    return VerificationStartResponse(
        verification_id=verification_id,
        job_id=job_id,
        message="Job for source searching started successfully.",
    )


@router.get("/{verification_id}/sources", response_model=List[SourceResponse])
def list_sources(
    verification_id: uuid.UUID,
    domain: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "date_desc",
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id)
    return pipeline.sources.list(verification_id, domain=domain, search=search, sort_by=sort_by)


@router.put("/{verification_id}/sources/{source_id}", response_model=SourceResponse)
def update_source_selection(
    verification_id: uuid.UUID,
    source_id: uuid.UUID,
    data: SourceSelection,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    return pipeline.select_source(user_id, verification_id, source_id, data.is_selected)


@router.post("/{verification_id}/analysis", response_model=VerificationStartResponse)
def request_analysis(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Start the final analysis over the selected sources."""
    job_id = pipeline.request_analysis(user_id, verification_id)
    return VerificationStartResponse(
        verification_id=verification_id,
        job_id=job_id,
        message="Analysis started.",
    )


@router.get("/{verification_id}/result", response_model=FinalResultResponse)
def get_final_result(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id)
    result = pipeline.results.get(verification_id)
    if result is None:
        raise NotFound(f"No final result for verification {verification_id}")
    return result
