from core.database import SessionLocal
from typing import Annotated, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from core.config import settings
from core.exceptions import AuthError
from schemas.auth_schemas import UserResponse
from services.auth_service import AuthService
from services.email_service import EmailNotifier
from services.otp_service import OtpService
from services.token_service import TokenService, get_token_service
from services.user_directory import UserDirectory


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_notifier() -> EmailNotifier:
    return EmailNotifier(settings)


def get_auth_service(db: db_dependency,
                     notifier: Annotated[EmailNotifier, Depends(get_notifier)],
                     token_service: Annotated[TokenService, Depends(get_token_service)]) -> AuthService:
    directory = UserDirectory(db)
    return AuthService(directory, OtpService(directory), token_service, notifier)

auth_service_dependency = Annotated[AuthService, Depends(get_auth_service)]


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(request: Request,
                     credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
                     auth_service: auth_service_dependency) -> UserResponse:
    """
    Authentication gate for protected routes.

    Verifies the bearer access token, loads the user it names and rejects
    missing or deactivated accounts. The sanitized user is also stored on
    request.state.user.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError("Authorization token required")

    claims = auth_service.tokens.verify_access_token(credentials.credentials)
    user = auth_service.get_active_user_by_id(claims["userId"])

    principal = UserResponse.model_validate(user)
    request.state.user = principal
    return principal

user_dependency = Annotated[UserResponse, Depends(get_current_user)]
