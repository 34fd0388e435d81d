"""Authentication endpoint tests."""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from linkauth.config import settings
from linkauth.models import Account
from linkauth.services.accounts import get_account_by_email, get_account_by_id
from linkauth.services.auth import SessionIssuer
from linkauth.utils.clock import utc_now
from tests.conftest import AuthenticatedClient, FakeClock, RecordingNotifier, token_from_link


def session_cookie(token: str) -> dict[str, str]:
    return {"Cookie": f"{settings.session_cookie_name}={token}"}


@pytest.mark.asyncio
async def test_signup_creates_unverified_account(
    client: AsyncClient, session: AsyncSession, notifier: RecordingNotifier
):
    """Signup stores a new account and sends it a link."""
    response = await client.post(
        "/api/auth/signup",
        json={"email": "new@example.com", "name": "New User"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Verification link sent to your email! Check your inbox."
    assert data["data"] == {"email": "new@example.com", "name": "New User"}
    # Links are never echoed without an explicit opt-in
    assert data["magic_link"] is None

    assert len(notifier.sent) == 1
    assert notifier.sent[0]["to"] == "new@example.com"
    assert notifier.sent[0]["name"] == "New User"
    assert notifier.last_link.startswith(settings.magic_link_base_url)

    account = await get_account_by_email(session, "new@example.com")
    assert account is not None
    assert account.verified is False
    assert account.magic_link_token == notifier.last_token
    assert account.magic_link_expires is not None
    assert account.magic_link_used is False


@pytest.mark.asyncio
async def test_signup_without_name(client: AsyncClient, notifier: RecordingNotifier):
    response = await client.post("/api/auth/signup", json={"email": "anon@example.com"})
    assert response.status_code == 200
    assert response.json()["data"]["name"] is None
    assert notifier.sent[0]["name"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("email", ["", "no-at-sign", "@example.com", "user@", "has space@example.com"])
async def test_signup_rejects_invalid_email(
    client: AsyncClient, notifier: RecordingNotifier, email: str
):
    response = await client.post("/api/auth/signup", json={"email": email})
    assert response.status_code == 400
    assert response.json()["detail"] == "Valid email is required"
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_signup_missing_email_is_rejected(client: AsyncClient):
    """Bodies without an email fail request validation."""
    response = await client.post("/api/auth/signup", json={"name": "Nobody"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_repeat_signup_supersedes_previous_link(
    client: AsyncClient, notifier: RecordingNotifier
):
    """Only the most recently issued link verifies."""
    await client.post("/api/auth/signup", json={"email": "twice@example.com"})
    first = notifier.last_token
    await client.post("/api/auth/signup", json={"email": "twice@example.com", "name": "Second"})
    second = notifier.last_token
    assert first != second

    response = await client.post("/api/auth/verify", json={"token": first})
    assert response.status_code == 400

    response = await client.post("/api/auth/verify", json={"token": second})
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Second"


@pytest.mark.asyncio
async def test_signup_for_verified_account_conflicts(
    client: AsyncClient,
    session: AsyncSession,
    notifier: RecordingNotifier,
    verified_account: Account,
):
    """A verified account is left untouched by signup."""
    response = await client.post(
        "/api/auth/signup",
        json={"email": verified_account.email, "name": "Impostor"},
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Account is already verified"
    assert notifier.sent == []

    account = await get_account_by_id(session, verified_account.id)
    assert account is not None
    assert account.name == "Verified User"
    assert account.magic_link_token is None


@pytest.mark.asyncio
async def test_email_is_matched_literally(client: AsyncClient, verified_account: Account):
    """Addresses differing only in case are different accounts."""
    response = await client.post("/api/auth/signup", json={"email": "Verified@example.com"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_sends_link_to_verified_account(
    client: AsyncClient,
    session: AsyncSession,
    notifier: RecordingNotifier,
    verified_account: Account,
):
    response = await client.post("/api/auth/login", json={"email": verified_account.email})
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Login link sent to your email! Check your inbox."
    assert data["data"]["email"] == verified_account.email

    account = await get_account_by_id(session, verified_account.id)
    assert account is not None
    assert account.magic_link_token == notifier.last_token


@pytest.mark.asyncio
async def test_login_unknown_and_unverified_are_indistinguishable(
    client: AsyncClient, notifier: RecordingNotifier, pending_account: Account
):
    missing = await client.post("/api/auth/login", json={"email": "ghost@example.com"})
    unverified = await client.post("/api/auth/login", json={"email": pending_account.email})

    assert missing.status_code == unverified.status_code == 404
    assert missing.json() == unverified.json()
    assert missing.json()["detail"] == "No verified account found with this email"
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_login_rejects_invalid_email(client: AsyncClient):
    response = await client.post("/api/auth/login", json={"email": "nope"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_resend_verification(
    client: AsyncClient,
    session: AsyncSession,
    notifier: RecordingNotifier,
    pending_account: Account,
):
    """Resend replaces the outstanding token."""
    old_token = pending_account.magic_link_token

    response = await client.post(
        "/api/auth/resend-verification", json={"email": pending_account.email}
    )
    assert response.status_code == 200
    assert response.json()["message"] == "New verification link sent to your email!"

    account = await get_account_by_id(session, pending_account.id)
    assert account is not None
    assert account.magic_link_token == notifier.last_token
    assert account.magic_link_token != old_token
    assert account.name == "Pending User"


@pytest.mark.asyncio
async def test_resend_for_unknown_email(client: AsyncClient):
    response = await client.post(
        "/api/auth/resend-verification", json={"email": "ghost@example.com"}
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "No account found with this email"


@pytest.mark.asyncio
async def test_resend_for_verified_account(client: AsyncClient, verified_account: Account):
    response = await client.post(
        "/api/auth/resend-verification", json={"email": verified_account.email}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_verify_sets_session_cookie(
    client: AsyncClient, session: AsyncSession, notifier: RecordingNotifier
):
    await client.post("/api/auth/signup", json={"email": "new@example.com", "name": "New"})

    response = await client.post("/api/auth/verify", json={"token": notifier.last_token})
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Successfully authenticated! Welcome back!"
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["verified"] is True

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.session_cookie_name}=")
    assert "HttpOnly" in set_cookie
    assert "samesite=lax" in set_cookie.lower()

    account = await get_account_by_email(session, "new@example.com")
    assert account is not None
    assert account.verified is True
    assert account.magic_link_token is None
    assert account.magic_link_expires is None
    assert account.magic_link_used is True


@pytest.mark.asyncio
async def test_verify_via_link_query_string(client: AsyncClient, notifier: RecordingNotifier):
    """The emailed link itself can be followed."""
    await client.post("/api/auth/signup", json={"email": "new@example.com"})

    response = await client.get("/api/auth/verify", params={"token": notifier.last_token})
    assert response.status_code == 200
    assert response.json()["user"]["verified"] is True


@pytest.mark.asyncio
async def test_verify_succeeds_only_once(client: AsyncClient, notifier: RecordingNotifier):
    await client.post("/api/auth/signup", json={"email": "new@example.com"})
    token = notifier.last_token

    first = await client.post("/api/auth/verify", json={"token": token})
    second = await client.post("/api/auth/verify", json={"token": token})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"] == "Invalid or expired verification link"


@pytest.mark.asyncio
async def test_verify_unknown_token(client: AsyncClient):
    response = await client.post("/api/auth/verify", json={"token": "invalid-token"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired verification link"


@pytest.mark.asyncio
async def test_verify_empty_token(client: AsyncClient):
    response = await client.post("/api/auth/verify", json={"token": ""})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_verify_within_expiry_window(
    client: AsyncClient, clock: FakeClock, notifier: RecordingNotifier
):
    await client.post("/api/auth/signup", json={"email": "new@example.com"})
    clock.advance(minutes=14)

    response = await client.post("/api/auth/verify", json={"token": notifier.last_token})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_verify_expired_token(
    client: AsyncClient, session: AsyncSession, clock: FakeClock, notifier: RecordingNotifier
):
    """An expired link fails and the account stays unverified."""
    await client.post("/api/auth/signup", json={"email": "new@example.com"})
    clock.advance(minutes=16)

    response = await client.post("/api/auth/verify", json={"token": notifier.last_token})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired verification link"

    account = await get_account_by_email(session, "new@example.com")
    assert account is not None
    assert account.verified is False


@pytest.mark.asyncio
async def test_login_link_after_verification(
    client: AsyncClient, notifier: RecordingNotifier, verified_account: Account
):
    """A verified account logs in through a fresh link."""
    await client.post("/api/auth/login", json={"email": verified_account.email})

    response = await client.post("/api/auth/verify", json={"token": notifier.last_token})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == verified_account.id


@pytest.mark.asyncio
async def test_concurrent_verify_has_single_winner(
    client: AsyncClient, notifier: RecordingNotifier
):
    """Racing requests for the same token: exactly one succeeds."""
    await client.post("/api/auth/signup", json={"email": "race@example.com"})
    token = notifier.last_token

    responses = await asyncio.gather(
        *(client.post("/api/auth/verify", json={"token": token}) for _ in range(5))
    )

    codes = sorted(r.status_code for r in responses)
    assert codes == [200, 400, 400, 400, 400]


@pytest.mark.asyncio
async def test_notifier_failure_keeps_token(
    client: AsyncClient, session: AsyncSession, notifier: RecordingNotifier
):
    """Delivery failure is a 500, but the stored token still verifies."""
    notifier.result = False

    response = await client.post("/api/auth/signup", json={"email": "new@example.com"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to send magic link. Please try again."

    account = await get_account_by_email(session, "new@example.com")
    assert account is not None
    assert account.magic_link_token == notifier.last_token

    response = await client.post("/api/auth/verify", json={"token": notifier.last_token})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_notifier_exception(client: AsyncClient, notifier: RecordingNotifier):
    notifier.error = ConnectionError("smtp down")

    response = await client.post("/api/auth/signup", json={"email": "new@example.com"})
    assert response.status_code == 500
    assert "smtp down" not in response.text


@pytest.mark.asyncio
async def test_get_current_account_with_bearer(
    authenticated_client: AuthenticatedClient, verified_account: Account
):
    response = await authenticated_client.get("/api/auth/me")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == verified_account.id
    assert data["email"] == verified_account.email
    assert data["verified"] is True


@pytest.mark.asyncio
async def test_get_current_account_with_cookie(client: AsyncClient, notifier: RecordingNotifier):
    """The cookie set by verify authenticates later requests."""
    await client.post("/api/auth/signup", json={"email": "new@example.com", "name": "New"})
    verified = await client.post("/api/auth/verify", json={"token": notifier.last_token})
    token = verified.cookies[settings.session_cookie_name]

    response = await client.get("/api/auth/me", headers=session_cookie(token))
    assert response.status_code == 200
    assert response.json()["email"] == "new@example.com"
    assert response.json()["name"] == "New"


@pytest.mark.asyncio
async def test_get_current_account_unauthenticated(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_get_current_account_forged_token(client: AsyncClient, verified_account: Account):
    forged = SessionIssuer(secret="x" * 32).create_token(verified_account)

    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_current_account_expired_session(client: AsyncClient, verified_account: Account):
    issued_long_ago = FakeClock(utc_now() - timedelta(days=8))
    expired = SessionIssuer(secret=settings.session_secret, clock=issued_long_ago).create_token(
        verified_account
    )

    response = await client.get("/api/auth/me", headers=session_cookie(expired))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_session_expires_after_seven_days(
    client: AsyncClient, clock: FakeClock, notifier: RecordingNotifier
):
    await client.post("/api/auth/signup", json={"email": "new@example.com"})
    verified = await client.post("/api/auth/verify", json={"token": notifier.last_token})
    assert verified.status_code == 200
    headers = session_cookie(verified.cookies[settings.session_cookie_name])

    clock.advance(days=6, hours=23)
    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200

    clock.advance(hours=1, seconds=1)
    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_current_account_deleted(
    authenticated_client: AuthenticatedClient, session: AsyncSession, verified_account: Account
):
    """Sessions for deleted accounts stop working."""
    account = await get_account_by_id(session, verified_account.id)
    await session.delete(account)
    await session.commit()

    response = await authenticated_client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


@pytest.mark.asyncio
async def test_logout_clears_cookie(authenticated_client: AuthenticatedClient):
    response = await authenticated_client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Successfully logged out"}

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.session_cookie_name}=")
    assert "Max-Age=0" in set_cookie


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/api/auth/me", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("environment", "expose", "echoed"),
    [
        ("development", False, False),
        ("development", True, True),
        ("production", True, False),
    ],
)
async def test_magic_link_echo_requires_opt_in(
    client: AsyncClient,
    notifier: RecordingNotifier,
    environment: str,
    expose: bool,
    echoed: bool,
):
    """An unset environment alone never puts the link in the response."""
    with (
        patch.object(settings, "environment", environment),
        patch.object(settings, "expose_magic_links", expose),
    ):
        response = await client.post("/api/auth/signup", json={"email": "new@example.com"})

    assert response.status_code == 200
    expected = notifier.last_link if echoed else None
    assert response.json()["magic_link"] == expected
