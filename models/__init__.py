from models.users import User
from models.otps import Otp
from models.refresh_tokens import RefreshToken

__all__ = ["User", "Otp", "RefreshToken"]
