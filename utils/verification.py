import secrets
from datetime import datetime, timezone, timedelta

def generate_verification_code() -> str:
    # Uniform over 100000..999999
    return str(100000 + secrets.randbelow(900000))

def get_code_expiry_time(minutes: int=10) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)

def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def is_expired(expires_at: datetime) -> bool:
    return datetime.now(timezone.utc) > as_utc(expires_at)
