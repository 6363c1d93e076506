from typing import Optional, Dict, Any
from uuid import UUID
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from app.models.user import User, UserProfile
from app.core.config import settings
from app.core.exceptions import DuplicateEmailError
from app.core.security import get_password_hash

PROFILE_FIELDS = ("avatar_url", "bio", "profile_metadata")


class CRUDUser:
    """
    CRUD operations for User and its one-to-one UserProfile.

    Users are global (not tenant-scoped), so this class does not inherit
    from CRUDBase.
    """

    def __init__(self):
        self.model = User

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """
        Retrieve user by email address (exact, case-sensitive match).

        Args:
            db: Database session
            email: User email

        Returns:
            User instance or None if not found
        """
        stmt = select(User).where(User.email == email)
        result = db.execute(stmt)
        return result.scalar_one_or_none()

    def get(self, db: Session, user_id: UUID) -> Optional[User]:
        """
        Retrieve user by ID with the profile preloaded.

        Args:
            db: Database session
            user_id: User ID

        Returns:
            User instance or None if not found
        """
        stmt = select(User).where(User.id == user_id).options(selectinload(User.profile))
        result = db.execute(stmt)
        return result.scalar_one_or_none()

    def create(
        self,
        db: Session,
        *,
        email: str,
        password: str,
        display_name: str,
        is_active: bool = True,
        commit: bool = True
    ) -> User:
        """
        Create a new user with hashed password and a default profile.

        Args:
            db: Database session
            email: User email
            password: Plain text password (will be hashed)
            display_name: Name shown in the CMS
            is_active: Whether user is active
            commit: Whether to commit immediately

        Returns:
            Created User instance

        Raises:
            DuplicateEmailError: If the email unique constraint fires
        """
        db_user = User(
            email=email,
            hashed_password=get_password_hash(password),
            display_name=display_name,
            is_active=is_active,
        )
        db_user.profile = UserProfile(
            avatar_url=settings.DEFAULT_AVATAR_URL,
            bio="",
            profile_metadata={},
        )
        db.add(db_user)

        try:
            if commit:
                db.commit()
                db.refresh(db_user)
            else:
                db.flush()  # Get ID without committing
        except IntegrityError as e:
            db.rollback()
            if "unique constraint" in str(e).lower() or "users_email_key" in str(e):
                raise DuplicateEmailError() from e
            raise e

        return db_user

    def update(self, db: Session, *, db_obj: User, obj_in: Dict[str, Any]) -> User:
        """
        Update user and profile fields in one commit.

        Keys in PROFILE_FIELDS go to the profile, everything else to the user.
        """
        for field, value in obj_in.items():
            target = db_obj.profile if field in PROFILE_FIELDS else db_obj
            setattr(target, field, value)

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, db_obj: User, commit: bool = True) -> None:
        """Hard-delete a user. Profile, memberships and refresh tokens cascade."""
        db.delete(db_obj)
        if commit:
            db.commit()


# Create singleton instance
user = CRUDUser()
