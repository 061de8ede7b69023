from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
import phonenumbers
import re

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def validate_password_length(value: str) -> str:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f'Password must be at least {PASSWORD_MIN_LENGTH} characters')

    if len(value) > PASSWORD_MAX_LENGTH:
        raise ValueError(f'Password must be at most {PASSWORD_MAX_LENGTH} characters')

    return value


def require_text(value: str, name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f'{name} is required')
    return value.strip()


class EmailRequest(BaseModel):
    email: EmailStr

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class CreateUserRequest(EmailRequest):
    full_name: str
    password: str
    user_type: str = "member"
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    username: Optional[str] = None

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value):
        return require_text(value, 'full_name')

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_length(value)

    @field_validator('username')
    @classmethod
    def validate_username(cls, value):
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not re.fullmatch(r'[A-Za-z0-9_.]{3,50}', value):
            raise ValueError('Username must be 3-50 letters, digits, "_" or "."')
        return value

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value):
        """
        Validates phone number format using Google's phonenumbers library.
        Accepts international format: +6281234567890
        """
        if value is None or not value.strip():
            return None
        try:
            parsed = phonenumbers.parse(value, None)
            if not phonenumbers.is_valid_number(parsed):
                raise ValueError('Invalid phone number')

            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

        except phonenumbers.NumberParseException:
            raise ValueError('Phone number must include country code (e.g.: +62xxxxxxxxxx)')


class LoginRequest(EmailRequest):
    password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        if not value:
            raise ValueError('Email and password are required')
        return value


class VerifyOtpRequest(EmailRequest):
    otp_code: str

    @field_validator('otp_code')
    @classmethod
    def validate_code(cls, value):
        value = value.strip()
        if not re.fullmatch(r'\d{6}', value):
            raise ValueError('OTP code must be a 6-digit code')
        return value


class VerifyResetPasswordRequest(VerifyOtpRequest):
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_length(value)


class VerifyEmailRequest(BaseModel):
    token: str

    @field_validator('token')
    @classmethod
    def validate_token(cls, value):
        return require_text(value, 'Token')


class GoogleOAuthRequest(EmailRequest):
    google_id: str
    full_name: Optional[str] = None
    profile_photo: Optional[str] = None

    @field_validator('google_id')
    @classmethod
    def validate_google_id(cls, value):
        return require_text(value, 'google_id')


class RefreshTokenRequest(BaseModel):
    refresh_token: str

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if not value or not value.strip():
            raise ValueError('Refresh token is required')
        return value


class ResetPasswordRequest(BaseModel):
    """Legacy reset body, the frontend posts camelCase `newPassword`."""
    model_config = ConfigDict(populate_by_name=True)

    token: str
    new_password: str = Field(alias="newPassword")

    @field_validator('token')
    @classmethod
    def validate_token(cls, value):
        return require_text(value, 'Token')

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_length(value)


class UserResponse(BaseModel):
    """User as returned to clients: everything but the password hash."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: Optional[str] = None
    full_name: str
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    profile_photo: Optional[str] = None
    user_type: str
    login_type: str
    google_id: Optional[str] = None
    is_verified: bool
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserSummary(BaseModel):
    """Returned with a requires_verification login response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    username: Optional[str] = None
    profile_photo: Optional[str] = None
    user_type: str
    is_verified: bool
    login_type: str
    created_at: Optional[datetime] = None
