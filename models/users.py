from core.database import Base
from sqlalchemy import (Column, Integer, String, Boolean, Date, DateTime, Enum)
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin

LOGIN_CREDENTIAL = "credential"
LOGIN_GOOGLE = "google"


class User(Base, CreatedAtMixin):
    __tablename__ = "users"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user")
    otps = relationship("Otp", back_populates="user")

    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(50), unique=True, nullable=True, index=True)
    # Null for accounts created through Google OAuth
    hashed_password = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    gender = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    profile_photo = Column(String(1024), nullable=True)
    user_type = Column(String(50), default="member", nullable=False)
    login_type = Column(Enum(LOGIN_CREDENTIAL, LOGIN_GOOGLE, name="login_type"),
                        default=LOGIN_CREDENTIAL, nullable=False)
    google_id = Column(String(255), nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
