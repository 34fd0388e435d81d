"""Magic link issuance and verification."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from linkauth.models import Account
from linkauth.services.accounts import (
    claim_magic_link,
    create_account,
    get_account_by_email,
    get_account_by_id,
    store_magic_link,
    validate_email,
)
from linkauth.services.errors import (
    AccountNotFound,
    AlreadyVerified,
    InvalidOrExpiredToken,
    NotifierFailure,
)
from linkauth.services.tokens import build_magic_link, generate_token, token_expiry
from linkauth.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class IssueMode(str, Enum):
    """Why a magic link is being issued."""

    SIGNUP = "signup"
    LOGIN = "login"
    RESEND = "resend"


class Notifier(Protocol):
    """Delivers a magic link to an email address."""

    async def send_magic_link(self, to: str, magic_link: str, name: str | None = None) -> bool: ...


@dataclass
class IssuedLink:
    """Result of a successful issuance."""

    account: Account
    token: str
    link: str
    expires: datetime


class MagicLinkIssuer:
    """Creates or refreshes an account's outstanding token and sends the link.

    Every issuance overwrites the account's previous token, so only the most
    recently sent link can ever verify.
    """

    def __init__(
        self,
        notifier: Notifier,
        base_url: str,
        expiration_minutes: int = 15,
        notify_timeout: float = 15.0,
        clock: Clock = utc_now,
    ) -> None:
        self.notifier = notifier
        self.base_url = base_url
        self.expiration_minutes = expiration_minutes
        self.notify_timeout = notify_timeout
        self.clock = clock

    def build_link(self, token: str) -> str:
        """Append the token to the base URL as a query parameter."""
        return build_magic_link(self.base_url, token)

    async def issue(
        self,
        session: AsyncSession,
        email: str,
        name: str | None = None,
        mode: IssueMode = IssueMode.SIGNUP,
    ) -> IssuedLink:
        """Issue a fresh magic link for ``email``.

        The token is committed before the notifier is called. If delivery
        fails the token stays stored; issuing again simply replaces it.

        Raises:
            InvalidInput: malformed email
            AlreadyVerified: signup or resend for a verified account
            AccountNotFound: login for a missing or unverified account, or
                resend for a missing account
            StoreConflict: token collision
            NotifierFailure: the link could not be delivered
        """
        validate_email(email)
        account = await get_account_by_email(session, email)

        token = generate_token()
        expires = token_expiry(self.clock(), self.expiration_minutes)

        if mode is IssueMode.SIGNUP:
            if account is None:
                account = await create_account(session, email, name, token, expires)
            elif account.verified:
                raise AlreadyVerified()
            else:
                await self._store(session, account, token, expires, verified=False, name=name)
        elif mode is IssueMode.LOGIN:
            # Absent and unverified accounts get the same answer
            if account is None or not account.verified:
                raise AccountNotFound()
            await self._store(session, account, token, expires, verified=True)
        else:
            if account is None:
                raise AccountNotFound("No account found with this email")
            if account.verified:
                raise AlreadyVerified()
            await self._store(session, account, token, expires, verified=False)

        account_id = account.id
        await session.commit()
        refreshed = await get_account_by_id(session, account_id)
        if refreshed is None:
            raise AccountNotFound()

        link = self.build_link(token)
        logger.info(f"Issued {mode.value} magic link for account {account_id}")
        await self._notify(refreshed, link)

        return IssuedLink(account=refreshed, token=token, link=link, expires=expires)

    async def _store(
        self,
        session: AsyncSession,
        account: Account,
        token: str,
        expires: datetime,
        *,
        verified: bool,
        name: str | None = None,
    ) -> None:
        stored = await store_magic_link(
            session, account.id, token, expires, verified=verified, name=name
        )
        if not stored:
            # verified only moves false -> true, so the account was verified
            # between the lookup and the write
            raise AlreadyVerified()

    async def _notify(self, account: Account, link: str) -> None:
        try:
            sent = await asyncio.wait_for(
                self.notifier.send_magic_link(to=account.email, magic_link=link, name=account.name),
                timeout=self.notify_timeout,
            )
        except TimeoutError as e:
            logger.error(
                f"Magic link delivery to {account.email} timed out after {self.notify_timeout}s"
            )
            raise NotifierFailure() from e
        except Exception as e:
            logger.exception(f"Magic link delivery to {account.email} failed: {e}")
            raise NotifierFailure() from e

        if not sent:
            logger.error(f"Magic link delivery to {account.email} was rejected by the email backend")
            raise NotifierFailure()


async def verify_magic_link(session: AsyncSession, token: str, clock: Clock = utc_now) -> Account:
    """Consume a magic link token, verifying its account.

    Succeeds at most once per issued token. Unknown, expired and already used
    tokens all fail the same way.

    Raises:
        InvalidOrExpiredToken: the token is not live
    """
    if not token:
        raise InvalidOrExpiredToken()

    account = await claim_magic_link(session, token, clock())
    if account is None:
        await session.rollback()
        raise InvalidOrExpiredToken()

    await session.commit()
    logger.info(f"Magic link consumed for account {account.id}")
    return account
