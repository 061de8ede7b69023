from datetime import datetime, timedelta, UTC
from models.otps import Otp
from tests.helpers import AUTH, TEST_PASSWORD

NEW_PASSWORD = "NewPassword456!"
FORGOT_MESSAGE = "If the email exists, a password reset OTP has been sent"


async def request_reset(client, notifier, email):
    response = await client.post(f"{AUTH}/forgot-password", json={"email": email})
    assert response.status_code == 200
    return notifier.last_code(email, "password_reset")


async def test_forgot_password_existing_user(client, session, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)

    assert code is not None
    otp = session.query(Otp).filter(Otp.email == verified_user.email, Otp.purpose == "password_reset").one()
    assert otp.otp_code == code


async def test_forgot_password_unknown_email(client, notifier):
    """Same response as for an existing account."""
    response = await client.post(f"{AUTH}/forgot-password", json={"email": "ghost@example.com"})

    assert response.status_code == 200
    assert response.json()["data"]["message"] == FORGOT_MESSAGE
    assert notifier.sent == []


async def test_forgot_password_google_account(client, notifier, google_user):
    response = await client.post(f"{AUTH}/forgot-password", json={"email": google_user.email})

    assert response.status_code == 200
    assert response.json()["data"]["message"] == FORGOT_MESSAGE
    assert notifier.sent == []


async def test_forgot_password_replaces_previous_codes(client, session, notifier, verified_user):
    await request_reset(client, notifier, verified_user.email)
    latest = await request_reset(client, notifier, verified_user.email)

    session.expire_all()
    otps = session.query(Otp).filter(Otp.email == verified_user.email, Otp.purpose == "password_reset").all()
    assert [otp.otp_code for otp in otps] == [latest]


async def test_two_step_reset(client, session, notifier, verified_user):
    """verify-otp-reset then verify-reset-password with the same code."""
    code = await request_reset(client, notifier, verified_user.email)

    response = await client.post(f"{AUTH}/verify-otp-reset", json={
        "email": verified_user.email,
        "otp_code": code
    })
    assert response.status_code == 200
    assert response.json()["data"]["message"] == "OTP verified successfully"

    response = await client.post(f"{AUTH}/verify-reset-password", json={
        "email": verified_user.email,
        "otp_code": code,
        "new_password": NEW_PASSWORD
    })
    assert response.status_code == 200
    assert response.json()["data"]["message"] == "Password has been reset successfully"
    assert "access_token" not in response.json()["data"]

    # Used reset codes are purged
    session.expire_all()
    assert session.query(Otp).filter(Otp.email == verified_user.email, Otp.purpose == "password_reset").count() == 0

    old_login = await client.post(f"{AUTH}/login", json={"email": verified_user.email, "password": TEST_PASSWORD})
    assert old_login.status_code == 401

    new_login = await client.post(f"{AUTH}/login", json={"email": verified_user.email, "password": NEW_PASSWORD})
    assert new_login.status_code == 200


async def test_reset_without_prior_verification(client, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)

    response = await client.post(f"{AUTH}/verify-reset-password", json={
        "email": verified_user.email,
        "otp_code": code,
        "new_password": NEW_PASSWORD
    })

    assert response.status_code == 200


async def test_reset_code_cannot_be_replayed(client, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)
    body = {"email": verified_user.email, "otp_code": code, "new_password": NEW_PASSWORD}

    first = await client.post(f"{AUTH}/verify-reset-password", json=body)
    second = await client.post(f"{AUTH}/verify-reset-password", json=body)

    assert first.status_code == 200
    assert second.status_code == 400


async def test_verify_otp_reset_wrong_code(client, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)
    wrong = "000000" if code != "000000" else "111111"

    response = await client.post(f"{AUTH}/verify-otp-reset", json={
        "email": verified_user.email,
        "otp_code": wrong
    })

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid or expired OTP code"


async def test_verify_otp_reset_expired(client, session, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)

    otp = session.query(Otp).filter(Otp.email == verified_user.email, Otp.purpose == "password_reset").one()
    otp.expires_at = datetime.now(UTC) - timedelta(seconds=1)
    session.commit()

    response = await client.post(f"{AUTH}/verify-otp-reset", json={
        "email": verified_user.email,
        "otp_code": code
    })

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "OTP code has expired"


async def test_verify_reset_password_weak_password(client, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)

    response = await client.post(f"{AUTH}/verify-reset-password", json={
        "email": verified_user.email,
        "otp_code": code,
        "new_password": "short"
    })

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Password must be at least 8 characters"


async def test_legacy_reset_password(client, notifier, verified_user):
    """Single-step reset with the code as token signs the user in."""
    code = await request_reset(client, notifier, verified_user.email)

    response = await client.post(f"{AUTH}/reset-password", json={"token": code, "newPassword": NEW_PASSWORD})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["id"] == verified_user.id
    assert data["access_token"]
    assert data["refresh_token"]

    login = await client.post(f"{AUTH}/login", json={"email": verified_user.email, "password": NEW_PASSWORD})
    assert login.status_code == 200

    replay = await client.post(f"{AUTH}/reset-password", json={"token": code, "newPassword": "Another789!"})
    assert replay.status_code == 400
    assert replay.json()["error"]["message"] == "Invalid or expired token"


async def test_legacy_reset_password_expired(client, session, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)

    otp = session.query(Otp).filter(Otp.email == verified_user.email, Otp.purpose == "password_reset").one()
    otp.expires_at = datetime.now(UTC) - timedelta(seconds=1)
    session.commit()

    response = await client.post(f"{AUTH}/reset-password", json={"token": code, "newPassword": NEW_PASSWORD})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid or expired token"


async def test_legacy_reset_password_deactivated_account(client, session, notifier, verified_user):
    code = await request_reset(client, notifier, verified_user.email)

    verified_user.is_active = False
    session.commit()

    response = await client.post(f"{AUTH}/reset-password", json={"token": code, "newPassword": NEW_PASSWORD})

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Account is deactivated"

    # Password unchanged
    verified_user.is_active = True
    session.commit()
    login = await client.post(f"{AUTH}/login", json={"email": verified_user.email, "password": TEST_PASSWORD})
    assert login.status_code == 200
