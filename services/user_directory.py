from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from core.exceptions import ConflictError
from models.users import User
from models.otps import Otp
from models.refresh_tokens import RefreshToken
from services.token_service import TokenService
from utils.logger import get_logger

logger = get_logger(__name__)


def _conflict_from(exc: IntegrityError) -> ConflictError:
    """
    Map a unique-constraint violation to a ConflictError naming the column.

    SQLite reports "UNIQUE constraint failed: users.email", PostgreSQL names
    the index or constraint ("ix_users_email", "users_username_key").
    """
    detail = str(exc.orig).lower()
    if "username" in detail:
        return ConflictError("Username already taken", field="username")
    if "email" in detail:
        return ConflictError("Email already registered", field="email")
    return ConflictError()


class UserDirectory:
    """
    Storage access for users, OTPs and refresh tokens.

    Wraps one request-scoped Session. Writes are staged on the session and
    made durable by `transaction()`, which commits once at the end of a flow
    and rolls everything back if the flow raises.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise _conflict_from(exc) from exc
        except Exception:
            self.db.rollback()
            raise

    def flush(self) -> None:
        self.db.flush()

    # Users

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).one_or_none()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).one_or_none()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).one_or_none()

    def add_user(self, user: User) -> User:
        """Stage a new user and flush so it gets an id."""
        self.db.add(user)
        self.db.flush()
        return user

    # OTPs

    def add_otp(self, otp: Otp) -> Otp:
        self.db.add(otp)
        self.db.flush()
        return otp

    def find_latest_otp(self, email: str, code: str, purpose: str,
                        include_used: bool = False) -> Optional[Otp]:
        query = self.db.query(Otp).filter(
            Otp.email == email,
            Otp.otp_code == code,
            Otp.purpose == purpose
        )
        if not include_used:
            query = query.filter(Otp.used == False)
        return query.order_by(Otp.created_at.desc(), Otp.id.desc()).first()

    def find_latest_otp_by_code(self, code: str, purpose: str) -> Optional[Otp]:
        return self.db.query(Otp).filter(
            Otp.otp_code == code,
            Otp.purpose == purpose,
            Otp.used == False
        ).order_by(Otp.created_at.desc(), Otp.id.desc()).first()

    def delete_otps(self, email: str, purpose: str, used: Optional[bool] = None) -> int:
        """
        Delete OTPs for (email, purpose). `used=None` deletes regardless of state.
        """
        query = self.db.query(Otp).filter(Otp.email == email, Otp.purpose == purpose)
        if used is not None:
            query = query.filter(Otp.used == used)
        count = query.delete()
        logger.debug("Deleted OTPs", extra={"purpose": purpose, "used": used, "count": count})
        return count

    # Refresh tokens

    def add_refresh_token(self, user_id: int, token: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(
            user_id=user_id,
            token_hash=TokenService.hash_token(token),
            expires_at=expires_at
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        return self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == TokenService.hash_token(token)
        ).one_or_none()

    def delete_refresh_token(self, record_id: int) -> int:
        """
        Delete a stored refresh token by id. Returns the number of rows
        removed, 0 when another request already redeemed it.
        """
        return self.db.query(RefreshToken).filter(RefreshToken.id == record_id).delete()
