"""Share link routes."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from factcheck.database import get_db
from factcheck.routes.deps import get_current_user_id
from factcheck.schemas.verification import (
    FinalResultResponse,
    SharedResultResponse,
    ShareTokenResponse,
    SourceResponse,
)
from factcheck.services.share import ShareService
from factcheck.services.sources import SourceStore

router = APIRouter(prefix="/share", tags=["share"])


@router.post("/{verification_id}", response_model=ShareTokenResponse)
def create_share_link(
    verification_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    token = ShareService(db).create_share_token(user_id, verification_id)
    return ShareTokenResponse(share_token=token)


@router.get("/{share_token}", response_model=SharedResultResponse)
def get_shared_result(share_token: str, db: Session = Depends(get_db)):
    """Public: no authentication, owner id is never returned."""
    verification = ShareService(db).get_shared(share_token)
    selected = SourceStore(db).selected(verification.id)
    return SharedResultResponse(
        id=verification.id,
        original_text=verification.original_text,
        language=verification.language,
        status=verification.status,
        created_at=verification.created_at,
        sources=[SourceResponse.model_validate(s) for s in selected],
        final_result=FinalResultResponse.model_validate(verification.final_result),
    )
