from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select, update, delete
from app.models.refresh_token import RefreshToken


class CRUDRefreshToken:
    """
    Refresh token ledger.

    None of these methods commit: token issuance and rotation run as a
    single unit of work and the auth service owns the commit.
    """

    def __init__(self):
        self.model = RefreshToken

    def create(self, db: Session, *, user_id: UUID, expires_at: datetime) -> RefreshToken:
        """
        Insert a record with an empty hash placeholder and flush to get its id.

        The empty hash never matches a token, so a record orphaned before
        set_hash() is inert.
        """
        record = RefreshToken(user_id=user_id, token_hash="", revoked=False, expires_at=expires_at)
        db.add(record)
        db.flush()
        return record

    def set_hash(self, db: Session, *, record: RefreshToken, token_hash: str) -> RefreshToken:
        record.token_hash = token_hash
        db.add(record)
        db.flush()
        return record

    def get_active(self, db: Session, *, token_id: UUID, user_id: UUID) -> Optional[RefreshToken]:
        """
        Retrieve a non-revoked, unexpired record owned by the given user.

        Args:
            db: Database session
            token_id: Record ID taken from the signed refresh token claims
            user_id: Subject of the same claims

        Returns:
            RefreshToken instance or None
        """
        now = datetime.now(timezone.utc)
        stmt = select(RefreshToken).where(
            RefreshToken.id == token_id,
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at > now,
        )
        return db.execute(stmt).scalar_one_or_none()

    def get_for_update(self, db: Session, *, token_id: UUID) -> Optional[RefreshToken]:
        """Lock a record row for rotation (no-op lock on SQLite)."""
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.id == token_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return db.execute(stmt).scalar_one_or_none()

    def mark_revoked(self, db: Session, *, record: RefreshToken) -> RefreshToken:
        record.revoked = True
        db.add(record)
        db.flush()
        return record

    def revoke_all_active(self, db: Session, *, user_id: UUID) -> int:
        """
        Set revoked on every non-revoked record of a user.

        Returns:
            Number of records revoked
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session="fetch")
        )
        return db.execute(stmt).rowcount

    def delete_expired(self, db: Session, *, user_id: UUID) -> int:
        """
        Remove a user's records that are past expiry.

        Returns:
            Number of records deleted
        """
        now = datetime.now(timezone.utc)
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount


# Create singleton instance
refresh_token = CRUDRefreshToken()
