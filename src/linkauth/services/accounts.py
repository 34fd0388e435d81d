"""Account store: lookups and the conditional updates behind magic links.

Functions here stage changes on the session and leave committing to the
caller. Every write that depends on the current state of a row is expressed
as a single conditional ``UPDATE`` so concurrent requests cannot interleave
between the check and the write.
"""

import logging
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from linkauth.models import Account
from linkauth.services.errors import InvalidInput, StoreConflict

logger = logging.getLogger(__name__)

MAX_EMAIL_LENGTH = 255


def validate_email(email: str) -> str:
    """Check that an email address is usable, returning it unchanged.

    Addresses are matched literally, so no case folding or trimming is done.
    """
    if not email or len(email) > MAX_EMAIL_LENGTH:
        raise InvalidInput()
    local, sep, domain = email.rpartition("@")
    if not sep or not local or not domain or any(ch.isspace() for ch in email):
        raise InvalidInput()
    return email


async def get_account_by_email(session: AsyncSession, email: str) -> Account | None:
    """Find an account by its exact email address."""
    stmt = select(Account).where(Account.email == email)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_account_by_id(session: AsyncSession, account_id: str) -> Account | None:
    """Find an account by ID, bypassing any stale copy in the identity map."""
    stmt = select(Account).where(Account.id == account_id).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_account(
    session: AsyncSession,
    email: str,
    name: str | None,
    token: str,
    expires: datetime,
) -> Account:
    """Insert a new unverified account holding an outstanding token.

    Raises:
        StoreConflict: the email or token is already taken (a concurrent
            signup for the same address, or a token collision)
    """
    account = Account(
        email=email,
        name=name,
        magic_link_token=token,
        magic_link_expires=expires,
        magic_link_used=False,
    )
    session.add(account)
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        logger.error(f"Account insert conflicted for {email}: {e.orig!r}")
        raise StoreConflict() from e
    return account


async def store_magic_link(
    session: AsyncSession,
    account_id: str,
    token: str,
    expires: datetime,
    *,
    verified: bool,
    name: str | None = None,
) -> bool:
    """Overwrite an account's outstanding token.

    The write only applies while the account's ``verified`` flag still equals
    ``verified``. Returns False if it did not.

    Raises:
        StoreConflict: the token is already held by another account
    """
    values: dict[str, object] = {
        "magic_link_token": token,
        "magic_link_expires": expires,
        "magic_link_used": False,
    }
    if name:
        values["name"] = name

    stmt = (
        update(Account)
        .where(col(Account.id) == account_id)
        .where(col(Account.verified).is_(verified))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = await session.execute(stmt)
    except IntegrityError as e:
        await session.rollback()
        logger.error(f"Magic link token collided for account {account_id}: {e.orig!r}")
        raise StoreConflict() from e
    return result.rowcount == 1  # type: ignore[attr-defined]


async def claim_magic_link(session: AsyncSession, token: str, now: datetime) -> Account | None:
    """Consume a live token and mark its account verified.

    A token is live while it is unused and ``now`` is before its expiry. The
    claim is one conditional ``UPDATE``; when several sessions race on the
    same token exactly one of them sees a matched row.

    Returns:
        The refreshed account, or None if the token was not live
    """
    stmt = select(Account.id).where(Account.magic_link_token == token)
    result = await session.execute(stmt)
    account_id = result.scalar_one_or_none()
    if account_id is None:
        return None

    claim = (
        update(Account)
        .where(col(Account.id) == account_id)
        .where(col(Account.magic_link_token) == token)
        .where(col(Account.magic_link_used).is_(False))
        .where(col(Account.magic_link_expires) > now)
        .values(
            verified=True,
            magic_link_token=None,
            magic_link_expires=None,
            magic_link_used=True,
        )
        .execution_options(synchronize_session=False)
    )
    claimed = await session.execute(claim)
    if claimed.rowcount != 1:  # type: ignore[attr-defined]
        return None

    return await get_account_by_id(session, account_id)


async def count_expired_tokens(session: AsyncSession, now: datetime) -> int:
    """Count accounts still holding a token that expired before ``now``."""
    stmt = (
        select(func.count())
        .select_from(Account)
        .where(col(Account.magic_link_token).is_not(None))
        .where(col(Account.magic_link_expires) < now)
    )
    result = await session.execute(stmt)
    return result.scalar_one()


async def sweep_expired_tokens(session: AsyncSession, now: datetime) -> int:
    """Clear token state from every account whose token expired before ``now``.

    ``verified`` is left untouched. Returns the number of accounts cleared.
    """
    stmt = (
        update(Account)
        .where(col(Account.magic_link_token).is_not(None))
        .where(col(Account.magic_link_expires) < now)
        .values(
            magic_link_token=None,
            magic_link_expires=None,
            magic_link_used=False,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[attr-defined,no-any-return]
