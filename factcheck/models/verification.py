"""Verification model."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import relationship

from factcheck.database import Base


class Verification(Base):
    """A user-submitted claim moving through the fact-check pipeline."""

    __tablename__ = "verifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(36), nullable=False)
    original_text = Column(Text, nullable=False)
    language = Column(String(8), nullable=False, default="es")
    # 'draft', 'processing_questions', 'sources_ready', 'generating_summary', 'completed', 'error'
    status = Column(String(32), nullable=False, default="draft")
    share_token = Column(String(36), unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    questions = relationship(
        "Question",
        back_populates="verification",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )
    sources = relationship("Source", back_populates="verification", cascade="all, delete-orphan")
    final_result = relationship(
        "FinalResult", back_populates="verification", cascade="all, delete-orphan", uselist=False
    )
    process_logs = relationship("ProcessLog", back_populates="verification", cascade="all, delete-orphan")
    jobs = relationship("Job", back_populates="verification", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_verification_user_id", "user_id"),
        Index("idx_verification_status", "status"),
        Index("idx_verification_user_status", "user_id", "status"),
        CheckConstraint(
            "status IN ('draft', 'processing_questions', 'sources_ready', "
            "'generating_summary', 'completed', 'error')",
            name="chk_verification_status",
        ),
    )

    def __repr__(self):
        return f"<Verification(id={self.id}, status='{self.status}')>"
