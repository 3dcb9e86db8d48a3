"""Persistence and selection of candidate sources."""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from factcheck.errors import NotFound, OwnershipViolation
from factcheck.models.source import Source
from factcheck.schemas.results import ReceivedSource

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048


def _clip(value: Optional[str], limit: int) -> Optional[str]:
    return value[:limit] if value else None


class SourceStore:
    """Source rows for a verification."""

    def __init__(self, db: Session):
        self.db = db

    def count(self, verification_id: UUID) -> int:
        return (
            self.db.query(func.count(Source.id))
            .filter(Source.verification_id == verification_id)
            .scalar()
        )

    def save_batch(self, verification_id: UUID, sources: Iterable[Union[ReceivedSource, dict]]) -> int:
        """
        Persist the search_sources result once per verification.

        Returns:
            Number of source rows the verification has afterwards
        """
        existing = self.count(verification_id)
        if existing > 0:
            logger.info(f"Sources already exist for verification {verification_id}, skipping save")
            return existing

        scraped_at = datetime.utcnow()
        records = []
        for position, raw in enumerate(sources or []):
            candidate = raw if isinstance(raw, ReceivedSource) else ReceivedSource(**raw)
            url = (candidate.url or "").strip()
            if not url or len(url) > MAX_URL_LENGTH:
                logger.warning(f"Skipping source at index {position}: invalid url")
                continue

            records.append(
                Source(
                    verification_id=verification_id,
                    url=url,
                    title=_clip(candidate.title, 500),
                    summary=candidate.summary,
                    domain=_clip(candidate.domain, 255),
                    favicon=candidate.favicon,
                    is_selected=candidate.is_selected,
                    scraping_date=scraped_at,
                )
            )

        if records:
            self.db.add_all(records)
            self.db.commit()

        logger.info(f"Saved {len(records)} sources for verification {verification_id}")
        return len(records)

    def list(
        self,
        verification_id: UUID,
        domain: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "date_desc",
    ) -> List[Source]:
        query = self.db.query(Source).filter(Source.verification_id == verification_id)

        if domain:
            query = query.filter(Source.domain == domain)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Source.title.like(pattern), Source.summary.like(pattern)))

        if sort_by == "date_asc":
            query = query.order_by(Source.created_at.asc())
        else:
            query = query.order_by(Source.created_at.desc())
        return query.all()

    def selected(self, verification_id: UUID) -> List[Source]:
        return (
            self.db.query(Source)
            .filter(Source.verification_id == verification_id, Source.is_selected.is_(True))
            .order_by(Source.created_at)
            .all()
        )

    def set_selection(self, verification_id: UUID, source_id: UUID, is_selected: bool) -> Source:
        source = self.db.get(Source, source_id)
        if source is None:
            raise NotFound(f"Source {source_id} not found")
        if source.verification_id != verification_id:
            raise OwnershipViolation(f"Source {source_id} does not belong to verification {verification_id}")

        source.is_selected = is_selected
        self.db.commit()
        return source
