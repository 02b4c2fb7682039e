"""Repository for Invitation model operations."""

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session
from trustee_portal.models.invitation import Invitation


class InvitationRepository:
    """Repository for Invitation model operations.

    State transitions are conditional UPDATEs on the pending state so that
    concurrent callers cannot both win; each returns True only when this
    call performed the transition.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, invitation_id: int) -> Invitation | None:
        return self.db.get(Invitation, invitation_id)

    def get_by_token_hash(self, token_hash: str) -> Invitation | None:
        return self.db.query(Invitation).filter(Invitation.token_hash == token_hash).first()

    def get_open_for_email(self, tenant_id: int, email: str) -> list[Invitation]:
        """
        Invitations for (tenant, email) that are neither accepted nor cancelled.

        Expiry is not filtered here; callers apply their own clock.
        """
        return (
            self.db.query(Invitation)
            .filter(
                Invitation.tenant_id == tenant_id,
                Invitation.email == email,
                Invitation.accepted_at.is_(None),
                Invitation.cancelled_at.is_(None),
            )
            .all()
        )

    def list_for_tenant(self, tenant_id: int) -> list[Invitation]:
        return (
            self.db.query(Invitation)
            .filter(Invitation.tenant_id == tenant_id)
            .order_by(Invitation.issued_at.desc(), Invitation.id.desc())
            .all()
        )

    def add(self, invitation: Invitation) -> Invitation:
        """
        Stage a new invitation and flush to populate its ID.

        Raises:
            IntegrityError: If token_hash collides with an existing row, or
                another open invitation exists for the same (tenant, email)
        """
        self.db.add(invitation)
        self.db.flush()
        return invitation

    def _transition_pending(self, invitation_id: int, now: datetime, **values) -> bool:
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.accepted_at.is_(None),
                Invitation.cancelled_at.is_(None),
                Invitation.expires_at > now,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_accepted(self, invitation_id: int, accepted_by: int, now: datetime) -> bool:
        """Compare-and-set Pending -> Accepted."""
        return self._transition_pending(invitation_id, now, accepted_at=now, accepted_by=accepted_by)

    def mark_cancelled(self, invitation_id: int, now: datetime) -> bool:
        """Compare-and-set open -> Cancelled. Expired invitations may be cancelled."""
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.accepted_at.is_(None),
                Invitation.cancelled_at.is_(None),
            )
            .values(cancelled_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def close_expired_open(self, tenant_id: int, email: str, now: datetime) -> int:
        """
        Cancel open invitations for (tenant, email) whose expiry has passed.

        Live invitations are left untouched, so a concurrent issuer cannot
        close one another's fresh row.

        Returns:
            Number of rows closed
        """
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.tenant_id == tenant_id,
                Invitation.email == email,
                Invitation.accepted_at.is_(None),
                Invitation.cancelled_at.is_(None),
                Invitation.expires_at <= now,
            )
            .values(cancelled_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def rotate_token(self, invitation_id: int, token_hash: str, expires_at: datetime) -> bool:
        """Replace the token hash and expiry of an open invitation."""
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.accepted_at.is_(None),
                Invitation.cancelled_at.is_(None),
            )
            .values(token_hash=token_hash, expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def refresh(self, invitation: Invitation) -> Invitation:
        self.db.refresh(invitation)
        return invitation
