from datetime import timedelta
from types import SimpleNamespace
from jose import jwt
import pytest
from core.config import settings
from core.exceptions import AuthError
from services.token_service import TokenService, get_token_service


def make_user(**overrides):
    fields = {"id": 1, "email": "user@example.com", "user_type": "member", "login_type": "credential"}
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def token_service():
    return get_token_service()


def test_access_token_claims(token_service):
    token = token_service.create_access_token(make_user())

    payload = jwt.decode(token, key=settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    assert payload["userId"] == 1
    assert payload["email"] == "user@example.com"
    assert payload["role"] == "member"
    assert payload["loginType"] == "credential"
    assert payload["type"] == "access"
    assert payload["exp"]


def test_refresh_token_claims(token_service):
    token, expires_at = token_service.create_refresh_token(make_user())

    payload = jwt.decode(token, key=settings.JWT_REFRESH_SECRET, algorithms=[settings.ALGORITHM])
    assert payload["userId"] == 1
    assert payload["email"] == "user@example.com"
    assert payload["type"] == "refresh"
    assert payload["jti"]
    assert "role" not in payload
    assert expires_at is not None


def test_token_pair(token_service):
    tokens, refresh_expires_at = token_service.create_token_pair(make_user())

    assert tokens["expires_in"] == 900
    assert token_service.verify_access_token(tokens["access_token"])["userId"] == 1
    assert token_service.verify_refresh_token(tokens["refresh_token"])["userId"] == 1


def test_refresh_tokens_are_unique(token_service):
    user = make_user()
    first, _ = token_service.create_refresh_token(user)
    second, _ = token_service.create_refresh_token(user)
    assert first != second


def test_secrets_are_independent(token_service):
    tokens, _ = token_service.create_token_pair(make_user())

    with pytest.raises(AuthError):
        token_service.verify_refresh_token(tokens["access_token"])

    with pytest.raises(AuthError):
        token_service.verify_access_token(tokens["refresh_token"])


def test_access_token_signed_with_refresh_secret_is_rejected(token_service):
    forged = jwt.encode(
        {"userId": 1, "email": "user@example.com", "type": "access"},
        settings.JWT_REFRESH_SECRET,
        algorithm=settings.ALGORITHM
    )
    with pytest.raises(AuthError):
        token_service.verify_access_token(forged)


def test_expired_token_is_rejected(token_service):
    token = token_service.create_access_token(make_user(), expires_delta=timedelta(seconds=-1))

    with pytest.raises(AuthError) as exc_info:
        token_service.verify_access_token(token)
    assert exc_info.value.status_code == 401


def test_garbage_token_is_rejected(token_service):
    with pytest.raises(AuthError):
        token_service.verify_refresh_token("invalid_token_format")


def test_hash_token_is_stable():
    assert TokenService.hash_token("abc") == TokenService.hash_token("abc")
    assert len(TokenService.hash_token("abc")) == 64
