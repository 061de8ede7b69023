from typing import Optional
from core.config import settings
from core.exceptions import InvalidOtpError, ExpiredOtpError
from models.otps import Otp
from services.user_directory import UserDirectory
from utils.verification import generate_verification_code, get_code_expiry_time, is_expired
from utils.logger import get_logger

logger = get_logger(__name__)

# What to delete for (email, purpose) before a new code is issued
CLEAR_NONE = None
CLEAR_ALL = "all"
CLEAR_UNUSED = "unused"


class OtpService:
    """
    Issues and checks one-time passcodes.

    Codes are scoped to (email, purpose). Nothing here commits: the caller's
    transaction makes the delete of superseded codes and the insert of the new
    one durable together.
    """

    def __init__(self, directory: UserDirectory, expire_minutes: int = settings.OTP_EXPIRE_MINUTES):
        self.directory = directory
        self.expire_minutes = expire_minutes

    @staticmethod
    def generate() -> str:
        return generate_verification_code()

    def issue(self, email: str, purpose: str, user_id: int, clear: Optional[str] = CLEAR_NONE) -> Otp:
        """
        Create a fresh code for (email, purpose).

        Args:
            clear: CLEAR_NONE keeps existing codes, CLEAR_ALL deletes every code
                for (email, purpose), CLEAR_UNUSED only the unused ones.
        """
        if clear == CLEAR_ALL:
            self.directory.delete_otps(email, purpose)
        elif clear == CLEAR_UNUSED:
            self.directory.delete_otps(email, purpose, used=False)

        otp = Otp(
            email=email,
            otp_code=self.generate(),
            purpose=purpose,
            expires_at=get_code_expiry_time(minutes=self.expire_minutes),
            used=False,
            user_id=user_id
        )
        self.directory.add_otp(otp)

        logger.debug("OTP issued", extra={"user_id": user_id, "purpose": purpose})
        return otp

    def verify(self, email: str, code: str, purpose: str, include_used: bool = False,
               invalid_message: Optional[str] = None) -> Otp:
        """
        Return the newest code matching (email, code, purpose).

        Raises:
            InvalidOtpError: no matching code (or only used ones, unless include_used)
            ExpiredOtpError: the newest match is past its expiry
        """
        otp = self.directory.find_latest_otp(email, code, purpose, include_used=include_used)

        if not otp:
            raise InvalidOtpError(invalid_message)

        if is_expired(otp.expires_at):
            raise ExpiredOtpError()

        return otp

    def verify_legacy_code(self, code: str, purpose: str, invalid_message: str,
                           expired_message: str) -> Otp:
        """
        Compatibility path for clients that post an opaque "token" instead of
        (email, code). The token is looked up as a code of any email. Do not
        use for new integrations.
        """
        otp = self.directory.find_latest_otp_by_code(code, purpose)

        if not otp:
            raise InvalidOtpError(invalid_message)

        if is_expired(otp.expires_at):
            raise ExpiredOtpError(expired_message)

        return otp

    def consume(self, otp: Otp) -> None:
        otp.used = True
        # Flushed so a following purge of used codes sees it
        self.directory.flush()

    def purge(self, email: str, purpose: str, used: Optional[bool] = None) -> int:
        return self.directory.delete_otps(email, purpose, used=used)
