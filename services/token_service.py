import secrets
import hashlib
from datetime import datetime, timezone, timedelta
from functools import lru_cache
from jose import jwt, JWTError
from core.config import Settings, settings
from core.exceptions import AuthError
from models.users import User


ACCESS = "access"
REFRESH = "refresh"


class TokenService:
    """
    Signs and verifies bearer tokens.

    Access and refresh tokens use different secrets, so a leaked access secret
    cannot be used to forge refresh tokens and vice versa. Persistence of
    refresh tokens is the caller's job (see AuthService).
    """

    def __init__(self, config: Settings):
        self._access_secret = config.JWT_SECRET
        self._refresh_secret = config.JWT_REFRESH_SECRET
        self._algorithm = config.ALGORITHM
        self.access_ttl = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS)

    def create_access_token(self, user: User, expires_delta: timedelta = None) -> str:
        """
        Creates a JWT access token.

        Claims: userId, email, role (user_type), loginType, type="access", exp.
        """
        expire = datetime.now(timezone.utc) + (expires_delta or self.access_ttl)

        payload = {
            "userId": user.id,
            "email": user.email,
            "role": user.user_type,
            "loginType": user.login_type,
            "type": ACCESS,
            "exp": expire
        }

        return jwt.encode(payload, self._access_secret, algorithm=self._algorithm)

    def create_refresh_token(self, user: User, expires_delta: timedelta = None):
        """
        Creates a JWT refresh token.

        Returns:
            Tuple of (refresh_token_string, expires_at)
        """
        expire = datetime.now(timezone.utc) + (expires_delta or self.refresh_ttl)

        payload = {
            "userId": user.id,
            "email": user.email,
            "type": REFRESH,
            # Two tokens minted for the same user in the same second must differ
            "jti": secrets.token_urlsafe(16),
            "exp": expire
        }

        return jwt.encode(payload, self._refresh_secret, algorithm=self._algorithm), expire

    def create_token_pair(self, user: User):
        """
        Returns:
            Tuple of ({"access_token", "refresh_token", "expires_in"}, refresh_expires_at)
        """
        access_token = self.create_access_token(user)
        refresh_token, refresh_expires_at = self.create_refresh_token(user)

        tokens = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_in": int(self.access_ttl.total_seconds())
        }
        return tokens, refresh_expires_at

    def verify_access_token(self, token: str) -> dict:
        return self._decode(token, self._access_secret, ACCESS, "Invalid or expired token")

    def verify_refresh_token(self, token: str) -> dict:
        return self._decode(token, self._refresh_secret, REFRESH, "Invalid or expired refresh token")

    def _decode(self, token: str, secret: str, expected_type: str, error_message: str) -> dict:
        try:
            payload = jwt.decode(token, secret, algorithms=[self._algorithm])
        except JWTError:
            raise AuthError(error_message)

        if payload.get("type") != expected_type or payload.get("userId") is None:
            raise AuthError(error_message)

        return payload

    @staticmethod
    def hash_token(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()


@lru_cache
def get_token_service() -> TokenService:
    return TokenService(settings)
