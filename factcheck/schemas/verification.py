"""Verification-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class VerificationCreate(BaseModel):
    """Schema for submitting a claim."""

    text: str
    language: Literal["es", "eu", "ca", "gl"] = "es"


class VerificationResponse(BaseModel):
    """Verification detail."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    original_text: str
    language: str
    status: str
    created_at: datetime
    updated_at: datetime


class VerificationStartResponse(BaseModel):
    """Response after a stage job has been submitted."""

    verification_id: UUID
    job_id: str
    message: str


class StatusResponse(BaseModel):
    verification_id: UUID
    status: str


class PermissionCheck(BaseModel):
    """Result of a permission check; never raises."""

    exists: bool
    is_owner: bool
    status: Optional[str] = None
    can_edit: bool


class SourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    title: Optional[str] = None
    summary: Optional[str] = None
    domain: Optional[str] = None
    favicon: Optional[str] = None
    is_selected: bool


class SourceSelection(BaseModel):
    is_selected: bool


class FinalResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    final_text: str
    labels_json: Optional[List[Any]] = None
    citations_json: Optional[List[Any]] = None
    answers_json: Optional[List[Any]] = None
    result_metadata: Optional[Dict[str, Any]] = Field(default=None, serialization_alias="metadata")
    created_at: datetime


class ShareTokenResponse(BaseModel):
    share_token: str


class SharedResultResponse(BaseModel):
    """Public view of a completed verification. Owner id is never exposed."""

    id: UUID
    original_text: str
    language: str
    status: str
    created_at: datetime
    sources: List[SourceResponse]
    final_result: FinalResultResponse
