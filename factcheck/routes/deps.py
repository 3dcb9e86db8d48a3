"""Shared route dependencies."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from factcheck.database import get_db
from factcheck.services.external_api import ExternalApiClient
from factcheck.services.pipeline import VerificationPipeline


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity as established by the upstream authentication provider."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def get_external_client() -> ExternalApiClient:
    return ExternalApiClient()


def get_pipeline(
    db: Session = Depends(get_db),
    client: ExternalApiClient = Depends(get_external_client),
) -> VerificationPipeline:
    return VerificationPipeline(db, client=client)
