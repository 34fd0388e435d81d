"""FastAPI dependencies for dependency injection."""

import logging
from typing import Annotated

from fastapi import Depends
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from linkauth.config import settings
from linkauth.database import get_session
from linkauth.models import Account
from linkauth.services.auth import SessionIssuer
from linkauth.services.email import email_service
from linkauth.services.magic_link import MagicLinkIssuer, Notifier
from linkauth.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]

# Security schemes: the browser sends the cookie, other clients may use a bearer token
session_cookie = APIKeyCookie(name=settings.session_cookie_name, auto_error=False)
bearer = HTTPBearer(auto_error=False)


def get_clock() -> Clock:
    """Time source for token issuance and verification."""
    return utc_now


def get_notifier() -> Notifier:
    """Notifier used to deliver magic links."""
    return email_service


ClockDep = Annotated[Clock, Depends(get_clock)]


def get_magic_link_issuer(
    notifier: Annotated[Notifier, Depends(get_notifier)],
    clock: ClockDep,
) -> MagicLinkIssuer:
    """Build the magic link issuer from settings."""
    return MagicLinkIssuer(
        notifier=notifier,
        base_url=settings.magic_link_base_url,
        expiration_minutes=settings.magic_link_expiration_minutes,
        notify_timeout=settings.email_timeout_seconds,
        clock=clock,
    )


def get_session_issuer(clock: ClockDep) -> SessionIssuer:
    """Build the session issuer from settings."""
    return SessionIssuer(
        secret=settings.session_secret,
        algorithm=settings.jwt_algorithm,
        expiration_days=settings.jwt_expiration_days,
        clock=clock,
    )


IssuerDep = Annotated[MagicLinkIssuer, Depends(get_magic_link_issuer)]
SessionIssuerDep = Annotated[SessionIssuer, Depends(get_session_issuer)]


def get_session_token(
    cookie: Annotated[str | None, Depends(session_cookie)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer)],
) -> str | None:
    """Session token from the auth cookie, falling back to a bearer header."""
    if cookie:
        return cookie
    if credentials:
        return credentials.credentials
    return None


async def get_current_account(
    session: SessionDep,
    issuer: SessionIssuerDep,
    token: Annotated[str | None, Depends(get_session_token)],
) -> Account:
    """Get the authenticated account or raise Unauthenticated (401)."""
    return await issuer.read_session(session, token)


CurrentAccount = Annotated[Account, Depends(get_current_account)]
