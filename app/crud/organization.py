from typing import Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from app.crud.base import CRUDBase
from app.core.exceptions import ConflictError
from app.models.organization import Organization, OrganizationUser, Role
from app.schemas.organization import OrganizationCreate, OrganizationUpdate


class CRUDOrganization(CRUDBase[Organization, OrganizationCreate, OrganizationUpdate]):
    """
    CRUD operations for Organization model.

    Organization is the tenant itself, so lookups are by its own id.
    """

    def get_by_name(self, db: Session, name: str) -> Optional[Organization]:
        stmt = select(Organization).where(Organization.name == name)
        return db.execute(stmt).scalar_one_or_none()

    def create_with_admin(
        self,
        db: Session,
        *,
        obj_in: OrganizationCreate,
        user_id: UUID,
        commit: bool = True
    ) -> Tuple[Organization, OrganizationUser]:
        """
        Create an organization and make the given user its admin atomically.

        Args:
            db: Database session
            obj_in: Organization data
            user_id: User who becomes admin
            commit: Whether to commit, or only flush so the caller can
                extend the transaction

        Returns:
            Tuple of (created Organization, admin OrganizationUser)

        Raises:
            ConflictError: If an organization with this name already exists
        """
        try:
            organization = Organization(name=obj_in.name, description=obj_in.description)
            db.add(organization)
            db.flush()  # Get organization.id without committing

            membership = OrganizationUser(
                user_id=user_id,
                organization_id=organization.id,
                role=Role.admin,
                is_active=True,
            )
            db.add(membership)

            if commit:
                db.commit()
                db.refresh(organization)
                db.refresh(membership)
            else:
                db.flush()

            return organization, membership

        except IntegrityError as e:
            db.rollback()
            if "organizations_name_key" in str(e) or "unique constraint" in str(e).lower():
                raise ConflictError("An organization with this name already exists") from e
            raise e


# Create singleton instance
organization = CRUDOrganization(Organization)
