from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin

class RefreshToken(Base, CreatedAtMixin):
    """
    Refresh tokens issued to users.

    Only the SHA-256 digest of the signed token is stored. A row is deleted
    when the token is redeemed or found expired, so every token works once.
    """
    __tablename__ = "refresh_tokens"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="refresh_tokens")

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
