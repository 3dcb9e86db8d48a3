"""Storage of the final analysis produced by the last stage."""

import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from factcheck.models.final_result import FinalResult
from factcheck.schemas.results import AnalysisResult

logger = logging.getLogger(__name__)


class FinalResultStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, verification_id: UUID) -> Optional[FinalResult]:
        return self.db.query(FinalResult).filter(FinalResult.verification_id == verification_id).first()

    def save(self, verification_id: UUID, analysis: AnalysisResult) -> Tuple[FinalResult, bool]:
        """
        Store the analysis once; a second delivery returns the stored row.

        Returns:
            (final result, created)
        """
        existing = self.get(verification_id)
        if existing is not None:
            logger.warning(f"Final result already exists for verification {verification_id}, skipping insert")
            return existing, False

        result = FinalResult(
            verification_id=verification_id,
            final_text=analysis.answer,
            labels_json=list(analysis.metadata.categories),
            citations_json=analysis.sources,
            answers_json=[q.model_dump() for q in analysis.related_questions],
            result_metadata=analysis.metadata.model_dump(),
        )
        self.db.add(result)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get(verification_id)
            if existing is None:
                raise
            return existing, False

        logger.info(f"Final analysis saved for verification {verification_id}")
        return result, True
