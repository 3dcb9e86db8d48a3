"""Job model for worker queue."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from factcheck.database import Base
from factcheck.models.types import JSONType


class Job(Base):
    """Job represents a queued pipeline stage for the worker."""

    __tablename__ = "jobs"

    job_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    verification_id = Column(Uuid, ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False)
    stage = Column(Text, nullable=False)  # 'collect_questions', 'collect_sources', 'collect_analysis'
    status = Column(Text, nullable=False)  # 'queued', 'running', 'done', 'failed'
    payload = Column(JSONType)  # Holds the external job id
    retries = Column(Integer, default=0)
    last_error = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    verification = relationship("Verification", back_populates="jobs")

    __table_args__ = (
        Index("idx_jobs_status", "status"),
        Index("idx_jobs_verification_id", "verification_id"),
    )
