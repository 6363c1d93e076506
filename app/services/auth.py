import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.exceptions import DuplicateEmailError, InvalidCredentialsError, InvalidRefreshTokenError
from app.core.logging_config import logger
from app.core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    hash_refresh_token,
    verify_password,
)
from app.core.tenant_context import Identity, TenantMembershipClaim, memberships_to_claims
from app.crud.membership import membership as membership_crud
from app.crud.refresh_token import refresh_token as refresh_token_crud
from app.crud.user import user as user_crud
from app.models.user import User
from app.schemas.auth import RegisterRequest


@dataclass
class IssuedSession:
    """Result of login/refresh. ``refresh_token`` is for the cookie only."""
    user: User
    access_token: str
    refresh_token: str
    memberships: List[TenantMembershipClaim]


class AuthService:
    """
    Register, login, refresh and logout.

    Session lifecycle: anonymous -> authenticated (access + refresh) ->
    authenticated (rotated, on every refresh) -> logged out. With
    SINGLE_SESSION_PER_USER a login ends every other session of the user.
    """

    def __init__(self):
        self._dummy_hash: Optional[str] = None

    def register(self, db: Session, data: RegisterRequest) -> Tuple[User, Optional[IssuedSession]]:
        """
        Create an active user with a default profile.

        Args:
            db: Database session
            data: Registration data

        Returns:
            (created User, IssuedSession when AUTO_LOGIN_ON_REGISTER else None)

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        if user_crud.get_by_email(db, email=data.email):
            raise DuplicateEmailError()

        # The unique constraint still decides races between concurrent registrations
        user = user_crud.create(
            db,
            email=data.email,
            password=data.password,
            display_name=data.display_name or data.email.split("@")[0],
        )
        logger.info(f"User registered: user_id={user.id}")

        if not settings.AUTO_LOGIN_ON_REGISTER:
            return user, None
        return user, self.issue_session(db, user, revoke_existing=False)

    def login(self, db: Session, email: str, password: str) -> IssuedSession:
        """
        Verify credentials and start a new session.

        Raises:
            InvalidCredentialsError: Unknown email, wrong password or inactive
                account, indistinguishable from each other
        """
        user = user_crud.get_by_email(db, email=email)

        if user is None:
            # Spend the same bcrypt time as a real check
            verify_password(password, self._get_dummy_hash())
            logger.info("Login failed: unknown email")
            raise InvalidCredentialsError()

        if not verify_password(password, user.hashed_password):
            logger.info(f"Login failed: wrong password for user_id={user.id}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info(f"Login failed: inactive user_id={user.id}")
            raise InvalidCredentialsError()

        session = self.issue_session(db, user, revoke_existing=settings.SINGLE_SESSION_PER_USER)
        logger.info(f"User logged in: user_id={user.id}")
        return session

    def refresh(self, db: Session, identity: Identity) -> IssuedSession:
        """
        Rotate the refresh token bound to ``identity``.

        The bound record is revoked and a brand new pair is issued in the
        same transaction, so each refresh token works exactly once.

        Raises:
            InvalidRefreshTokenError: If the bound record was revoked
                concurrently, or the user is gone or inactive
        """
        if identity.refresh_token_id is None:
            raise InvalidRefreshTokenError()

        token_id = uuid.UUID(identity.refresh_token_id)
        record = refresh_token_crud.get_for_update(db, token_id=token_id)
        if record is None or record.revoked or str(record.user_id) != identity.id:
            db.rollback()
            logger.warning(f"Refresh rejected: record {token_id} already used (user_id={identity.id})")
            raise InvalidRefreshTokenError()

        user = user_crud.get(db, record.user_id)
        if user is None or not user.is_active:
            db.rollback()
            raise InvalidRefreshTokenError()

        refresh_token_crud.mark_revoked(db, record=record)
        session = self.issue_session(db, user, revoke_existing=False)
        logger.info(f"Refresh token rotated: user_id={user.id}")
        return session

    def logout(self, db: Session, identity: Identity) -> int:
        """
        Revoke every refresh token of the user, ending all sessions.

        Returns:
            Number of refresh tokens revoked
        """
        revoked = refresh_token_crud.revoke_all_active(db, user_id=uuid.UUID(identity.id))
        db.commit()
        logger.info(f"User logged out: user_id={identity.id} revoked={revoked}")
        return revoked

    def issue_session(self, db: Session, user: User, *, revoke_existing: bool) -> IssuedSession:
        """
        Mint an access/refresh pair for ``user`` as one unit of work.

        Order: revoke prior tokens (optional), purge expired ones, insert the
        ledger record with an empty hash, sign both tokens (the refresh token
        embeds the record id), write the hash back, commit once.
        """
        try:
            memberships = self.load_membership_claims(db, user.id)

            if revoke_existing:
                refresh_token_crud.revoke_all_active(db, user_id=user.id)
            refresh_token_crud.delete_expired(db, user_id=user.id)

            expires_at = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
            record = refresh_token_crud.create(db, user_id=user.id, expires_at=expires_at)

            claims = {
                "sub": str(user.id),
                "email": user.email,
                "organizations": memberships_to_claims(memberships),
            }
            access_token = create_access_token(claims)
            refresh_token = create_refresh_token({**claims, "tokenId": str(record.id)})

            refresh_token_crud.set_hash(db, record=record, token_hash=hash_refresh_token(refresh_token))
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(user)
        return IssuedSession(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
            memberships=memberships,
        )

    def load_membership_claims(self, db: Session, user_id: uuid.UUID) -> List[TenantMembershipClaim]:
        """Active memberships of a user in claim form. Pending requests grant nothing."""
        return [
            TenantMembershipClaim(
                tenant_id=str(m.organization_id),
                tenant_name=m.organization.name,
                role=m.role,
            )
            for m in membership_crud.get_by_user(db, user_id, active_only=True)
        ]

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = get_password_hash(uuid.uuid4().hex)
        return self._dummy_hash


# Create a singleton instance
auth_service = AuthService()
