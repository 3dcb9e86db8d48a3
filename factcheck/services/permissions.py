"""Access checks tying mutation rights to ownership and status."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from factcheck.errors import Forbidden, InvalidState, NotFound
from factcheck.models.verification import Verification
from factcheck.schemas.verification import PermissionCheck
from factcheck.services.state_machine import PROCESSING_QUESTIONS

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (PROCESSING_QUESTIONS,)


class PermissionGate:
    """Pure read-side gate; never mutates anything."""

    def __init__(self, db: Session):
        self.db = db

    def check(self, verification_id: UUID, user_id: str) -> PermissionCheck:
        verification = self.db.get(Verification, verification_id)
        if verification is None:
            return PermissionCheck(exists=False, is_owner=False, status=None, can_edit=False)

        is_owner = verification.user_id == str(user_id)
        return PermissionCheck(
            exists=True,
            is_owner=is_owner,
            status=verification.status,
            can_edit=is_owner and verification.status in EDITABLE_STATUSES,
        )

    def authorize(self, verification_id: UUID, user_id: str, require_edit: bool = False) -> Verification:
        """
        Gate every owner operation on a verification.

        Returns:
            The verification, for callers that need it

        Raises:
            NotFound: Unknown verification
            Forbidden: Caller is not the owner
            InvalidState: Edit required but the status does not allow it
        """
        permissions = self.check(verification_id, user_id)

        if not permissions.exists:
            raise NotFound(f"Verification {verification_id} not found")

        if not permissions.is_owner:
            logger.warning(f"User {user_id} denied access to verification {verification_id}")
            raise Forbidden("You do not have permission to access this verification")

        if require_edit and not permissions.can_edit:
            raise InvalidState(
                f"Verification is not editable in its current status: {permissions.status}",
                status=permissions.status,
            )

        return self.db.get(Verification, verification_id)
