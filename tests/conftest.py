"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from linkauth.api.deps import get_clock, get_notifier
from linkauth.config import settings
from linkauth.database import create_engine, create_session_factory, get_session
from linkauth.main import app
from linkauth.models import Account
from linkauth.services.auth import SessionIssuer
from linkauth.services.tokens import generate_token
from linkauth.utils.clock import utc_now


class FakeClock:
    """Controllable time source; call it like ``utc_now``."""

    def __init__(self, start: datetime | None = None):
        self.now = start or utc_now()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Notifier that keeps every link instead of sending email."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.result = True
        self.error: Exception | None = None

    async def send_magic_link(self, to: str, magic_link: str, name: str | None = None) -> bool:
        self.sent.append({"to": to, "magic_link": magic_link, "name": name})
        if self.error is not None:
            raise self.error
        return self.result

    @property
    def last_link(self) -> str:
        return self.sent[-1]["magic_link"]

    @property
    def last_token(self) -> str:
        return token_from_link(self.last_link)


def token_from_link(link: str) -> str:
    """Pull the token query parameter out of a magic link."""
    return httpx.URL(link).params["token"]


@pytest.fixture(autouse=True)
def mock_queue():
    """Mock the SAQ queue to avoid Redis connections in tests."""
    mock_job = MagicMock()
    mock_job.id = "test-job-id"
    mock_job.key = "test-job-key"

    with patch("linkauth.tasks.queue.queue.enqueue", new_callable=AsyncMock) as mock_enqueue:
        mock_enqueue.return_value = mock_job
        yield mock_enqueue


@pytest.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite engine per test.

    NullPool gives every session its own connection, so concurrent requests
    really do race against each other.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FakeClock,
    notifier: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client.

    Each request gets its own session, as it would in production.
    """

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def session_issuer(clock: FakeClock) -> SessionIssuer:
    return SessionIssuer(secret=settings.session_secret, clock=clock)


async def make_account(
    session: AsyncSession,
    email: str,
    *,
    name: str | None = None,
    verified: bool = False,
    token: str | None = None,
    expires: datetime | None = None,
) -> Account:
    """Insert an account directly, bypassing issuance."""
    account = Account(
        email=email,
        name=name,
        verified=verified,
        magic_link_token=token,
        magic_link_expires=expires,
    )
    session.add(account)
    await session.commit()
    return account


@pytest.fixture
async def verified_account(session: AsyncSession) -> Account:
    """A verified account with no outstanding link."""
    return await make_account(session, "verified@example.com", name="Verified User", verified=True)


@pytest.fixture
async def pending_account(session: AsyncSession, clock: FakeClock) -> Account:
    """An unverified account holding a live link."""
    return await make_account(
        session,
        "pending@example.com",
        name="Pending User",
        token=generate_token(),
        expires=clock() + timedelta(minutes=15),
    )


@pytest.fixture
def auth_headers(verified_account: Account, session_issuer: SessionIssuer) -> dict[str, str]:
    """Bearer headers for the verified account."""
    return {"Authorization": f"Bearer {session_issuer.create_token(verified_account)}"}


# Helper to make authenticated requests
class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)


@pytest.fixture
def authenticated_client(client: AsyncClient, auth_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated test client."""
    return AuthenticatedClient(client, auth_headers)
