"""Critical question model."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from factcheck.database import Base


class Question(Base):
    """Ordered critical question attached to a verification."""

    __tablename__ = "critical_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    verification_id = Column(Uuid, ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False)
    question_text = Column(Text, nullable=False)
    original_question = Column(Text, nullable=False)
    is_edited = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    verification = relationship("Verification", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("verification_id", "order_index", name="uk_critical_questions_verification_order"),
        CheckConstraint("order_index >= 0", name="chk_critical_questions_order_index"),
        Index("idx_critical_questions_verification_id", "verification_id"),
    )
