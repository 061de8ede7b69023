import pytest
from core.exceptions import ConflictError, AuthError
from models.users import User
from services.user_directory import UserDirectory
from tests.helpers import create_user


def test_lookup_by_email_and_username(session):
    user = create_user(session, email="lookup@example.com", username="lookup_user")
    directory = UserDirectory(session)

    assert directory.get_user_by_email("lookup@example.com").id == user.id
    assert directory.get_user_by_username("lookup_user").id == user.id
    assert directory.get_user_by_id(user.id).email == "lookup@example.com"
    assert directory.get_user_by_email("missing@example.com") is None


def test_transaction_commits(session):
    directory = UserDirectory(session)

    with directory.transaction():
        directory.add_user(User(email="new@example.com", full_name="New User", login_type="credential"))

    session.expunge_all()
    stored = session.query(User).filter(User.email == "new@example.com").first()
    assert stored is not None
    assert stored.is_verified is False
    assert stored.is_active is True
    assert stored.user_type == "member"
    assert stored.created_at is not None


def test_transaction_rolls_back_on_error(session):
    directory = UserDirectory(session)

    with pytest.raises(AuthError):
        with directory.transaction():
            directory.add_user(User(email="rollback@example.com", full_name="Rollback", login_type="credential"))
            raise AuthError("boom")

    assert session.query(User).filter(User.email == "rollback@example.com").first() is None


def test_duplicate_email_maps_to_conflict(session):
    create_user(session, email="taken@example.com")
    directory = UserDirectory(session)

    with pytest.raises(ConflictError) as exc_info:
        with directory.transaction():
            directory.add_user(User(email="taken@example.com", full_name="Second", login_type="credential"))

    assert exc_info.value.field == "email"
    assert exc_info.value.status_code == 400


def test_duplicate_username_maps_to_conflict(session):
    create_user(session, email="first@example.com", username="same_name")
    directory = UserDirectory(session)

    with pytest.raises(ConflictError) as exc_info:
        with directory.transaction():
            directory.add_user(User(email="second@example.com", username="same_name",
                                    full_name="Second", login_type="credential"))

    assert exc_info.value.field == "username"
    assert exc_info.value.message == "Username already taken"
