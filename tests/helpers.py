from sqlalchemy.orm import Session
from core.exceptions import DeliveryError
from models.users import User
from utils.hashing import get_password_hash

AUTH = "/api/v1/auth"
TEST_PASSWORD = "TestPassword123!"


class RecordingNotifier:
    """
    Stands in for EmailNotifier: records every OTP instead of sending it.
    Set `fail_with` to a DeliveryError reason to simulate SMTP failures.
    """

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send_otp(self, email, code, purpose, display_name=None):
        if self.fail_with:
            raise DeliveryError(self.fail_with)
        self.sent.append({"email": email, "code": code, "purpose": purpose, "display_name": display_name})
        return True

    def last_code(self, email, purpose="email_verification"):
        for message in reversed(self.sent):
            if message["email"] == email and message["purpose"] == purpose:
                return message["code"]
        return None


def create_user(session: Session, **overrides) -> User:
    """Insert a user directly; verified credential account by default."""
    fields = {
        "email": "user@example.com",
        "full_name": "Test User",
        "hashed_password": get_password_hash(TEST_PASSWORD),
        "login_type": "credential",
        "is_verified": True,
        "is_active": True,
    }
    fields.update(overrides)

    user = User(**fields)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
