from core.database import Base
from sqlalchemy import Column, Boolean, DateTime, String, Integer, ForeignKey, Enum
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin

PURPOSE_EMAIL_VERIFICATION = "email_verification"
PURPOSE_PASSWORD_RESET = "password_reset"


class Otp(Base, CreatedAtMixin):
    """
    One-time passcode sent by email.

    A code is scoped to (email, purpose) and valid until expires_at. Older
    codes of the same purpose are deleted when a new one is issued.
    """
    __tablename__ = "otps"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="otps")

    email = Column(String(255), nullable=False, index=True)
    otp_code = Column(String(6), nullable=False)
    purpose = Column(Enum(PURPOSE_EMAIL_VERIFICATION, PURPOSE_PASSWORD_RESET, name="otp_purpose"),
                     nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
