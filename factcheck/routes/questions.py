"""Question routes, nested under a verification."""

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends

from factcheck.routes.deps import get_current_user_id, get_pipeline
from factcheck.schemas.question import QuestionCreate, QuestionResponse, QuestionsReorder, QuestionUpdate
from factcheck.services.pipeline import VerificationPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verifications/{verification_id}/questions", tags=["questions"])


@router.get("", response_model=List[QuestionResponse])
def list_questions(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id)
    return pipeline.questions.list(verification_id)


@router.post("", response_model=QuestionResponse)
def add_question(
    verification_id: uuid.UUID,
    data: QuestionCreate,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id, require_edit=True)
    return pipeline.questions.add(verification_id, data.question_text)


@router.put("/order", response_model=List[QuestionResponse])
def reorder_questions(
    verification_id: uuid.UUID,
    data: QuestionsReorder,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id, require_edit=True)
    logger.info(f"Reordering {len(data.questions)} questions of verification {verification_id}")
    return pipeline.questions.reorder(verification_id, data.questions)


@router.put("/{question_id}", response_model=QuestionResponse)
def update_question(
    verification_id: uuid.UUID,
    question_id: uuid.UUID,
    data: QuestionUpdate,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id, require_edit=True)
    return pipeline.questions.update(question_id, data.question_text, verification_id=verification_id)


@router.delete("/{question_id}")
def delete_question(
    verification_id: uuid.UUID,
    question_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    pipeline.gate.authorize(verification_id, user_id, require_edit=True)
    pipeline.questions.delete(question_id, verification_id=verification_id)
    return {"message": "Question deleted"}
