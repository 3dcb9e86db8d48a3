"""Source model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import relationship

from factcheck.database import Base


class Source(Base):
    """Candidate source found for a verification; selected ones feed the analysis."""

    __tablename__ = "sources"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    verification_id = Column(Uuid, ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False)
    url = Column(String(2048), nullable=False)
    title = Column(String(500))
    summary = Column(Text)
    domain = Column(String(255))
    favicon = Column(String(2048))
    is_selected = Column(Boolean, nullable=False, default=False)
    scraping_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    verification = relationship("Verification", back_populates="sources")

    __table_args__ = (
        Index("idx_source_verification_id", "verification_id"),
        Index("idx_source_is_selected", "verification_id", "is_selected"),
    )
