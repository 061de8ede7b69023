from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from core.exceptions import AuthError
from services.token_service import get_token_service

def get_user_id(request: Request):
    """
    Rate-limit key: the user id of a valid access token, else the client address.
    """
    authorization = request.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        try:
            claims = get_token_service().verify_access_token(authorization[len("Bearer "):])
            return f"user:{claims['userId']}"
        except AuthError:
            pass

    return get_remote_address(request)

limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
