"""Process log Pydantic schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProcessLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    log_id: UUID
    step: str
    status: str
    error_message: Optional[str] = None
    api_response: Optional[Any] = None
    created_at: datetime


class ProcessStatistics(BaseModel):
    total: int
    started: int
    completed: int
    errors: int
    unique_steps: int
    last_activity: Optional[datetime] = None
