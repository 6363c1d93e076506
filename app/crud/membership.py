from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from app.core.exceptions import ConflictError
from app.models.organization import OrganizationUser, Role

ADMIN_ROLES = (Role.admin, Role.superadmin)


class CRUDMembership:
    """CRUD operations for OrganizationUser (tenant membership)."""

    def __init__(self):
        self.model = OrganizationUser

    def get_by_user(self, db: Session, user_id: UUID, *, active_only: bool = False) -> List[OrganizationUser]:
        """
        Retrieve all memberships of a user with their organizations loaded.

        Args:
            db: Database session
            user_id: User ID
            active_only: Skip pending (inactive) memberships

        Returns:
            List of OrganizationUser ordered by creation
        """
        stmt = (
            select(OrganizationUser)
            .where(OrganizationUser.user_id == user_id)
            .options(joinedload(OrganizationUser.organization))
            .order_by(OrganizationUser.created_at)
        )
        if active_only:
            stmt = stmt.where(OrganizationUser.is_active.is_(True))
        return list(db.execute(stmt).scalars().all())

    def get_by_user_and_tenant(
        self, db: Session, user_id: UUID, organization_id: UUID
    ) -> Optional[OrganizationUser]:
        stmt = (
            select(OrganizationUser)
            .where(
                OrganizationUser.user_id == user_id,
                OrganizationUser.organization_id == organization_id,
            )
            .options(joinedload(OrganizationUser.user), joinedload(OrganizationUser.organization))
        )
        return db.execute(stmt).scalar_one_or_none()

    def get_members(self, db: Session, organization_id: UUID, *, is_active: bool = True) -> List[OrganizationUser]:
        """Members (or pending requests, with is_active=False) of an organization."""
        stmt = (
            select(OrganizationUser)
            .where(
                OrganizationUser.organization_id == organization_id,
                OrganizationUser.is_active.is_(is_active),
            )
            .options(joinedload(OrganizationUser.user))
            .order_by(OrganizationUser.created_at)
        )
        return list(db.execute(stmt).scalars().all())

    def count_active_admins(self, db: Session, organization_id: UUID) -> int:
        stmt = select(func.count()).select_from(OrganizationUser).where(
            OrganizationUser.organization_id == organization_id,
            OrganizationUser.is_active.is_(True),
            OrganizationUser.role.in_(ADMIN_ROLES),
        )
        return db.execute(stmt).scalar_one()

    def create(
        self,
        db: Session,
        *,
        user_id: UUID,
        organization_id: UUID,
        role: Role,
        is_active: bool = True
    ) -> OrganizationUser:
        """
        Add a user to an organization.

        Raises:
            ConflictError: If the (user, organization) pair already exists
        """
        membership = OrganizationUser(
            user_id=user_id,
            organization_id=organization_id,
            role=role,
            is_active=is_active,
        )
        db.add(membership)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if "uix_user_organization" in str(e) or "unique constraint" in str(e).lower():
                raise ConflictError("User is already a member of this organization") from e
            raise e
        db.refresh(membership)
        return membership

    def update(self, db: Session, *, db_obj: OrganizationUser, role: Optional[Role] = None,
               is_active: Optional[bool] = None) -> OrganizationUser:
        if role is not None:
            db_obj.role = role
        if is_active is not None:
            db_obj.is_active = is_active
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, db_obj: OrganizationUser) -> None:
        db.delete(db_obj)
        db.commit()


# Create singleton instance
membership = CRUDMembership()
