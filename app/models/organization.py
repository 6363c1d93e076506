import enum
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum, Uuid, UniqueConstraint, func
from sqlalchemy.orm import relationship
from app.database import Base, TimestampMixin

class Role(str, enum.Enum):
    visitor = "visitor"
    editor = "editor"
    admin = "admin"
    superadmin = "superadmin"


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)

    members = relationship(
        "OrganizationUser", back_populates="organization", cascade="all, delete-orphan"
    )


class OrganizationUser(Base):
    """
    Tenant membership: the role a user holds in one organization.

    Inactive rows are pending join requests and grant nothing.
    """
    __tablename__ = "organization_users"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uix_user_organization"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(Role, name="organization_role"), nullable=False, default=Role.editor)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="members")
