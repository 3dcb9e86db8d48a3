"""Final result model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from factcheck.database import Base
from factcheck.models.types import JSONType


class FinalResult(Base):
    """Terminal artifact stored when the analysis stage succeeds."""

    __tablename__ = "final_results"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    verification_id = Column(
        Uuid, ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    final_text = Column(Text, nullable=False)
    labels_json = Column(JSONType)  # Array of category labels
    citations_json = Column(JSONType)  # Array of cited sources
    answers_json = Column(JSONType)  # Array of {question, answer, sources_id}
    result_metadata = Column("metadata", JSONType)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    verification = relationship("Verification", back_populates="final_result")
