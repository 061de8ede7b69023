from fastapi import APIRouter, Request
from starlette import status
from schemas.auth_schemas import (CreateUserRequest, LoginRequest, VerifyOtpRequest, EmailRequest,
                                  VerifyEmailRequest, GoogleOAuthRequest, RefreshTokenRequest,
                                  VerifyResetPasswordRequest, ResetPasswordRequest)
from utils.deps import auth_service_dependency, user_dependency
from middleware.rate_limiter import limiter


router = APIRouter(
    prefix="/api/v1/auth",
    tags=["auth"]
)


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
def register(request: Request, body: CreateUserRequest, auth_service: auth_service_dependency):
    return {"data": auth_service.register(body)}


@router.post("/login", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def login(request: Request, body: LoginRequest, auth_service: auth_service_dependency):
    """
    Returns a session for verified users. Unverified users get a fresh OTP
    by email and `requires_verification` instead of tokens.
    """
    return {"data": auth_service.login(body.email, body.password)}


@router.post("/verify-otp", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def verify_otp(request: Request, body: VerifyOtpRequest, auth_service: auth_service_dependency):
    return {"data": auth_service.verify_otp(body.email, body.otp_code)}


@router.post("/resend-otp", status_code=status.HTTP_200_OK)
@limiter.limit("3/minute")
def resend_otp(request: Request, body: EmailRequest, auth_service: auth_service_dependency):
    return {"data": auth_service.resend_otp(body.email)}


@router.post("/verify-email", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def verify_email(request: Request, body: VerifyEmailRequest, auth_service: auth_service_dependency):
    """
    Legacy verification link. The token is the emailed 6-digit code.
    New clients should use /verify-otp.
    """
    return {"data": auth_service.verify_email_token(body.token)}


@router.post("/google-oauth", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def google_oauth(request: Request, body: GoogleOAuthRequest, auth_service: auth_service_dependency):
    return {"data": auth_service.google_oauth(body)}


@router.post("/refresh-token", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def refresh_token(request: Request, body: RefreshTokenRequest, auth_service: auth_service_dependency):
    """
    Rotate a refresh token: the presented token is revoked and a new pair issued.
    """
    return {"data": auth_service.refresh(body.refresh_token)}


@router.post("/forgot-password", status_code=status.HTTP_200_OK)
@limiter.limit("3/minute")
def forgot_password(request: Request, body: EmailRequest, auth_service: auth_service_dependency):
    """
    Same response whether or not the account exists.
    """
    return {"data": auth_service.forgot_password(body.email)}


@router.post("/verify-otp-reset", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def verify_otp_reset(request: Request, body: VerifyOtpRequest, auth_service: auth_service_dependency):
    return {"data": auth_service.verify_otp_reset(body.email, body.otp_code)}


@router.post("/verify-reset-password", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def verify_reset_password(request: Request, body: VerifyResetPasswordRequest,
                          auth_service: auth_service_dependency):
    return {"data": auth_service.verify_reset_password(body.email, body.otp_code, body.new_password)}


@router.post("/reset-password", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def reset_password(request: Request, body: ResetPasswordRequest, auth_service: auth_service_dependency):
    """
    Legacy single-step reset. Signs the user in, unlike /verify-reset-password.
    """
    return {"data": auth_service.reset_password_with_token(body.token, body.new_password)}


@router.get("/me", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
def get_me(request: Request, user: user_dependency):
    return {"data": {"user": user}}
