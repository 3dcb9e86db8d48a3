"""Process log (audit trail) model."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from factcheck.database import Base
from factcheck.models.types import JSONType


class ProcessLog(Base):
    """Append-only record of one orchestration boundary for a verification."""

    __tablename__ = "process_logs"

    log_pk = Column(Integer, primary_key=True, autoincrement=True)
    log_id = Column(Uuid, nullable=False, unique=True, default=uuid.uuid4)
    verification_id = Column(Uuid, ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False)
    step = Column(String(100), nullable=False)
    status = Column(String(16), nullable=False)  # 'started', 'completed', 'error'
    error_message = Column(Text)
    api_response = Column(JSONType)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    verification = relationship("Verification", back_populates="process_logs")

    __table_args__ = (
        Index("idx_process_logs_verification_id", "verification_id"),
        Index("idx_process_logs_step_status", "verification_id", "step", "status"),
        Index("idx_process_logs_created_at", "created_at"),
        CheckConstraint("status IN ('started', 'completed', 'error')", name="chk_process_logs_status"),
        CheckConstraint(
            "(status = 'error' AND error_message IS NOT NULL) OR (status != 'error' AND error_message IS NULL)",
            name="chk_process_logs_error_message",
        ),
    )
