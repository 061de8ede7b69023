import secrets
from datetime import datetime, timezone
from core.exceptions import AuthError, ConflictError, NotFoundError
from models.users import User, LOGIN_CREDENTIAL, LOGIN_GOOGLE
from models.otps import PURPOSE_EMAIL_VERIFICATION, PURPOSE_PASSWORD_RESET
from schemas.auth_schemas import (CreateUserRequest, GoogleOAuthRequest, UserResponse,
                                  UserSummary)
from services.email_service import EmailNotifier
from services.otp_service import OtpService, CLEAR_ALL, CLEAR_UNUSED
from services.token_service import TokenService
from services.user_directory import UserDirectory
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger, mask_email
from utils.verification import is_expired

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
GOOGLE_ACCOUNT = "Email already registered with Google. Please use Google Sign In."
PASSWORD_ACCOUNT = "Email already registered with password. Please login with email and password."
FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset OTP has been sent"


class AuthService:
    """
    Registration, login, verification, token rotation and password reset.

    Every public method runs inside one directory transaction: all writes of
    a flow are committed together at the end, so a failure part-way (including
    a failed email delivery) leaves nothing behind. Refresh tokens are minted
    as the last step of a flow.
    """

    def __init__(self, directory: UserDirectory, otp_service: OtpService,
                 token_service: TokenService, notifier: EmailNotifier):
        self.directory = directory
        self.otps = otp_service
        self.tokens = token_service
        self.notifier = notifier

    def register(self, request: CreateUserRequest) -> dict:
        """
        Creates an unverified credential user and emails a verification code.

        Flow:
        1. Reject a taken email (message depends on how that account signs in)
        2. Reject a taken username
        3. Create the user and its first verification OTP
        4. Send the OTP
        """
        with self.directory.transaction():
            existing_user = self.directory.get_user_by_email(request.email)
            if existing_user:
                logger.warning(
                    "Registration attempt with existing email",
                    extra={"email": mask_email(request.email), "login_type": existing_user.login_type}
                )
                message = GOOGLE_ACCOUNT if existing_user.login_type == LOGIN_GOOGLE else PASSWORD_ACCOUNT
                raise ConflictError(message, field="email", login_type=existing_user.login_type)

            if request.username and self.directory.get_user_by_username(request.username):
                raise ConflictError("Username already taken", field="username")

            user = self.directory.add_user(User(
                email=request.email,
                username=request.username,
                full_name=request.full_name,
                hashed_password=get_password_hash(request.password),
                user_type=request.user_type,
                phone=request.phone,
                gender=request.gender,
                date_of_birth=request.date_of_birth,
                login_type=LOGIN_CREDENTIAL,
                is_verified=False,
                is_active=True
            ))

            otp = self.otps.issue(user.email, PURPOSE_EMAIL_VERIFICATION, user.id)
            # User and OTP rows are already flushed, constraint failures surface before the email goes out
            self.notifier.send_otp(user.email, otp.otp_code, PURPOSE_EMAIL_VERIFICATION, user.full_name)

        logger.info("User registered", extra={"user_id": user.id, "email": mask_email(user.email)})

        return {
            "message": "Registration successful. Please verify your email.",
            "user": UserResponse.model_validate(user),
            "requires_verification": True
        }

    def login(self, email: str, password: str) -> dict:
        with self.directory.transaction():
            user = self.directory.get_user_by_email(email)

            # Passwordless accounts get the generic message too
            if not user or not user.hashed_password:
                logger.warning("Login failed - unknown user or no password", extra={"email": mask_email(email)})
                raise AuthError(INVALID_CREDENTIALS)

            if user.login_type == LOGIN_GOOGLE:
                logger.warning("Login failed - Google account", extra={"user_id": user.id})
                raise AuthError(GOOGLE_ACCOUNT)

            if not verify_password(password, user.hashed_password):
                logger.warning("Login failed - invalid password", extra={"user_id": user.id})
                raise AuthError(INVALID_CREDENTIALS)

            self._ensure_active(user)

            if not user.is_verified:
                otp = self.otps.issue(user.email, PURPOSE_EMAIL_VERIFICATION, user.id, clear=CLEAR_ALL)
                self.notifier.send_otp(user.email, otp.otp_code, PURPOSE_EMAIL_VERIFICATION, user.full_name)

                logger.info("Login attempt with unverified email, OTP re-sent", extra={"user_id": user.id})

                return {
                    "requires_verification": True,
                    # Opaque value kept for older clients, never stored or checked
                    "verification_token": secrets.token_hex(32),
                    "user": UserSummary.model_validate(user)
                }

            user.last_login = datetime.now(timezone.utc)
            tokens = self._start_session(user)

        logger.info("User logged in", extra={"user_id": user.id})
        return tokens

    def verify_otp(self, email: str, otp_code: str) -> dict:
        with self.directory.transaction():
            otp = self.otps.verify(email, otp_code, PURPOSE_EMAIL_VERIFICATION)
            self.otps.consume(otp)

            user = otp.user
            self._ensure_active(user)
            user.is_verified = True

            self.otps.purge(email, PURPOSE_EMAIL_VERIFICATION, used=True)
            tokens = self._start_session(user)

        logger.info("Email verified", extra={"user_id": user.id})
        return tokens

    def resend_otp(self, email: str) -> dict:
        with self.directory.transaction():
            user = self.directory.get_user_by_email(email)
            if not user:
                raise NotFoundError("User not found")

            otp = self.otps.issue(user.email, PURPOSE_EMAIL_VERIFICATION, user.id, clear=CLEAR_UNUSED)
            self.notifier.send_otp(user.email, otp.otp_code, PURPOSE_EMAIL_VERIFICATION, user.full_name)

        logger.info("Verification OTP re-sent", extra={"user_id": user.id})
        return {"message": "OTP has been resent to your email"}

    def verify_email_token(self, token: str) -> dict:
        """
        Legacy verification link: the token is the 6-digit code itself.
        """
        with self.directory.transaction():
            otp = self.otps.verify_legacy_code(
                token, PURPOSE_EMAIL_VERIFICATION,
                invalid_message="Invalid or expired verification token",
                expired_message="Verification token has expired"
            )
            self.otps.consume(otp)

            user = otp.user
            self._ensure_active(user)
            user.is_verified = True
            tokens = self._start_session(user)

        logger.info("Email verified via legacy token", extra={"user_id": user.id})
        return tokens

    def google_oauth(self, request: GoogleOAuthRequest) -> dict:
        """
        Sign in or sign up with a Google identity, keyed by email.

        Existing password accounts must keep using the password, and an email
        already linked to another Google account cannot be taken over.
        """
        with self.directory.transaction():
            user = self.directory.get_user_by_email(request.email)
            now = datetime.now(timezone.utc)

            if user:
                if user.login_type == LOGIN_CREDENTIAL and user.hashed_password:
                    raise ConflictError(PASSWORD_ACCOUNT, field="email", login_type=LOGIN_CREDENTIAL)

                if user.google_id and user.google_id != request.google_id:
                    logger.warning("Google OAuth with mismatched google_id", extra={"user_id": user.id})
                    raise ConflictError("Email already registered with different Google account.",
                                        field="email", login_type=LOGIN_GOOGLE)

                self._ensure_active(user)

                user.google_id = request.google_id
                user.profile_photo = request.profile_photo or user.profile_photo
                user.full_name = request.full_name or user.full_name
                user.login_type = LOGIN_GOOGLE
                user.is_verified = True
                user.last_login = now
            else:
                user = self.directory.add_user(User(
                    email=request.email,
                    full_name=request.full_name or request.email.split("@")[0],
                    profile_photo=request.profile_photo,
                    google_id=request.google_id,
                    login_type=LOGIN_GOOGLE,
                    is_verified=True,
                    is_active=True,
                    last_login=now
                ))
                logger.info("User created via Google OAuth", extra={"user_id": user.id})

            tokens = self._start_session(user)

        return tokens

    def refresh(self, refresh_token: str) -> dict:
        """
        Exchange a refresh token for a new pair. The presented token is
        deleted, so it can never be redeemed twice.
        """
        # Signature and expiry first, no store access for forged tokens
        self.tokens.verify_refresh_token(refresh_token)

        with self.directory.transaction():
            record = self.directory.get_refresh_token(refresh_token)
            expired = record is not None and is_expired(record.expires_at)
            if record is not None:
                record_id, user_id = record.id, record.user_id
            if expired:
                # Reaped even though the request is rejected
                self.directory.delete_refresh_token(record_id)

        if not record or expired:
            logger.warning("Refresh failed - unknown or expired token", extra={"expired": expired})
            raise AuthError("Invalid or expired refresh token")

        with self.directory.transaction():
            # Deleting the row claims the token, a concurrent redemption finds nothing left
            if self.directory.delete_refresh_token(record_id) != 1:
                logger.warning("Refresh failed - token already redeemed", extra={"user_id": user_id})
                raise AuthError("Invalid or expired refresh token")

            user = self.directory.get_user_by_id(user_id)
            if not user:
                raise AuthError("User not found")
            self._ensure_active(user)

            tokens = self._start_session(user)

        logger.info("Refresh token rotated", extra={"user_id": user.id})
        return tokens

    def forgot_password(self, email: str) -> dict:
        with self.directory.transaction():
            user = self.directory.get_user_by_email(email)

            if user and user.hashed_password and user.login_type == LOGIN_CREDENTIAL:
                otp = self.otps.issue(user.email, PURPOSE_PASSWORD_RESET, user.id, clear=CLEAR_ALL)
                self.notifier.send_otp(user.email, otp.otp_code, PURPOSE_PASSWORD_RESET, user.full_name)
                logger.info("Password reset OTP sent", extra={"user_id": user.id})
            else:
                logger.info("Password reset requested for unknown or passwordless account",
                            extra={"email": mask_email(email)})

        return {"message": FORGOT_PASSWORD_MESSAGE}

    def verify_otp_reset(self, email: str, otp_code: str) -> dict:
        """
        First step of the two-step reset: checks and consumes the code
        without touching the password.
        """
        with self.directory.transaction():
            otp = self.otps.verify(email, otp_code, PURPOSE_PASSWORD_RESET,
                                   invalid_message="Invalid or expired OTP code")
            self.otps.consume(otp)

        return {"message": "OTP verified successfully"}

    def verify_reset_password(self, email: str, otp_code: str, new_password: str) -> dict:
        """
        Second step of the two-step reset. The code may already have been
        consumed by verify_otp_reset. No tokens are issued, the user logs in
        again with the new password.
        """
        with self.directory.transaction():
            otp = self.otps.verify(email, otp_code, PURPOSE_PASSWORD_RESET, include_used=True)
            if not otp.used:
                self.otps.consume(otp)

            user = otp.user
            user.hashed_password = get_password_hash(new_password)

            self.otps.purge(email, PURPOSE_PASSWORD_RESET, used=True)

        logger.info("Password reset", extra={"user_id": user.id})
        return {"message": "Password has been reset successfully"}

    def reset_password_with_token(self, token: str, new_password: str) -> dict:
        """
        Legacy single-step reset: the token is the reset code itself. Unlike
        verify_reset_password this signs the user in.
        """
        with self.directory.transaction():
            otp = self.otps.verify_legacy_code(
                token, PURPOSE_PASSWORD_RESET,
                invalid_message="Invalid or expired token",
                expired_message="Invalid or expired token"
            )
            self.otps.consume(otp)

            user = otp.user
            self._ensure_active(user)
            user.hashed_password = get_password_hash(new_password)
            tokens = self._start_session(user)

        logger.info("Password reset via legacy token", extra={"user_id": user.id})
        return tokens

    def get_active_user_by_id(self, user_id: int) -> User:
        user = self.directory.get_user_by_id(user_id)
        if not user:
            raise AuthError("User not found")
        self._ensure_active(user)
        return user

    def _start_session(self, user: User) -> dict:
        """Mint a token pair and persist the refresh token."""
        tokens, refresh_expires_at = self.tokens.create_token_pair(user)
        self.directory.add_refresh_token(user.id, tokens["refresh_token"], refresh_expires_at)

        return {"user": UserResponse.model_validate(user), **tokens}

    @staticmethod
    def _ensure_active(user: User) -> None:
        if not user.is_active:
            logger.warning("Rejected deactivated account", extra={"user_id": user.id})
            raise AuthError("Account is deactivated")
