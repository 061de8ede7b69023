"""
Typed application errors.

Services raise these instead of HTTPException so the HTTP layer is the only
place that knows about status codes and response shapes. Every error carries a
user-facing message; the handlers in main.py turn it into
{"error": {"message": ...}}.
"""

from typing import Optional
from starlette import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidOtpError(ValidationError):
    default_message = "Invalid OTP code"


class ExpiredOtpError(ValidationError):
    default_message = "OTP code has expired"


class ConflictError(AppError):
    """
    Raised when an email or username is already in use.

    Args:
        field: The conflicting column ("email" or "username")
        login_type: Login type of the account that already owns the value, if known
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Account already exists"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None,
                 login_type: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.login_type = login_type


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication failed"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class DeliveryError(AppError):
    """
    Email delivery failed. `reason` is one of EMAIL_LIMIT, CONFIG or SEND.
    """
    EMAIL_LIMIT = "email_limit"
    CONFIG = "config"
    SEND = "send"

    MESSAGES = {
        EMAIL_LIMIT: "Email sending limit exceeded. Please try again later.",
        CONFIG: "Email service is misconfigured",
        SEND: "Failed to send email",
    }

    def __init__(self, reason: str = SEND, message: Optional[str] = None):
        super().__init__(message or self.MESSAGES.get(reason, self.MESSAGES[self.SEND]))
        self.reason = reason


class InternalError(AppError):
    pass
