from models.otps import Otp
from core.exceptions import DeliveryError
from tests.helpers import AUTH


async def test_resend_otp_success(client, session, notifier, unverified_user):
    response = await client.post(f"{AUTH}/resend-otp", json={"email": unverified_user.email})

    assert response.status_code == 200
    assert response.json()["data"]["message"] == "OTP has been resent to your email"
    assert notifier.last_code(unverified_user.email) is not None


async def test_resend_otp_replaces_unused_codes(client, session, notifier, unverified_user):
    await client.post(f"{AUTH}/resend-otp", json={"email": unverified_user.email})
    first_code = notifier.last_code(unverified_user.email)
    await client.post(f"{AUTH}/resend-otp", json={"email": unverified_user.email})
    second_code = notifier.last_code(unverified_user.email)

    session.expire_all()
    otps = session.query(Otp).filter(Otp.email == unverified_user.email).all()
    assert len(otps) == 1
    assert otps[0].otp_code == second_code

    # The superseded code no longer works (unless both happen to match)
    if first_code != second_code:
        response = await client.post(f"{AUTH}/verify-otp", json={
            "email": unverified_user.email,
            "otp_code": first_code
        })
        assert response.status_code == 400


async def test_resend_otp_unknown_email(client, notifier):
    response = await client.post(f"{AUTH}/resend-otp", json={"email": "ghost@example.com"})

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "User not found"
    assert notifier.sent == []


async def test_resend_otp_delivery_failure(client, notifier, unverified_user):
    notifier.fail_with = DeliveryError.SEND

    response = await client.post(f"{AUTH}/resend-otp", json={"email": unverified_user.email})

    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Failed to send email"
