import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship
from app.database import Base

class RefreshToken(Base):
    """
    Server-side record of an issued refresh token.

    Only a bcrypt hash of the token is stored. The row is inserted with an
    empty hash first so that its id can be embedded in the token claims,
    then the hash is written back in the same transaction.
    """
    __tablename__ = "refresh_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(255), nullable=False, default="")
    revoked = Column(Boolean, nullable=False, default=False)
    issued_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")
