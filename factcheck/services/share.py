"""Public share links for completed verifications."""

import logging
import uuid
from uuid import UUID

from sqlalchemy.orm import Session

from factcheck.errors import NotFound
from factcheck.models.verification import Verification
from factcheck.services.permissions import PermissionGate
from factcheck.services.state_machine import COMPLETED

logger = logging.getLogger(__name__)


class ShareService:
    def __init__(self, db: Session):
        self.db = db
        self.gate = PermissionGate(db)

    def create_share_token(self, user_id: str, verification_id: UUID) -> str:
        """Return the verification's share token, assigning one on first use."""
        verification = self.gate.authorize(verification_id, user_id)
        if verification.share_token:
            return verification.share_token

        # Only fills an empty slot; a concurrent caller's token is kept
        self.db.query(Verification).filter(
            Verification.id == verification_id, Verification.share_token.is_(None)
        ).update({"share_token": str(uuid.uuid4())}, synchronize_session=False)
        self.db.commit()
        self.db.expire_all()

        token = self.db.get(Verification, verification_id).share_token
        logger.info(f"Share token ready for verification {verification_id}")
        return token

    def get_shared(self, share_token: str) -> Verification:
        """Resolve a token to a completed verification with a final result."""
        verification = self.db.query(Verification).filter(Verification.share_token == share_token).first()
        if verification is None or verification.status != COMPLETED or verification.final_result is None:
            raise NotFound("Share link is invalid or the verification is not complete")
        return verification
