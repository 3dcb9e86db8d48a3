"""Question-related Pydantic schemas."""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class QuestionCreate(BaseModel):
    question_text: str


class QuestionUpdate(BaseModel):
    question_text: str


class QuestionReorderItem(BaseModel):
    id: UUID
    order_index: int


class QuestionsReorder(BaseModel):
    questions: List[QuestionReorderItem]


class QuestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question_text: str
    original_question: str
    is_edited: bool
    order_index: int
    created_at: datetime


class SaveBatchResult(BaseModel):
    """Outcome of an idempotent batch save."""

    count: int
    existed: bool
