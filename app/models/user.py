import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from app.database import Base, TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    display_name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)

    profile = relationship(
        "UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )
    memberships = relationship(
        "OrganizationUser", back_populates="user", cascade="all, delete-orphan"
    )


class UserProfile(Base):
    """
    Per-user profile data. Shares its primary key with the user (1:1).
    """
    __tablename__ = "user_profiles"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    avatar_url = Column(String, nullable=False)
    bio = Column(Text, nullable=False, default="")
    # "metadata" is reserved on declarative classes
    profile_metadata = Column(
        "metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )

    user = relationship("User", back_populates="profile")
