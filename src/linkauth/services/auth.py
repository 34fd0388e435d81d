"""Session credentials: signed JWTs minted after a magic link is verified."""

import logging
from datetime import timedelta

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from linkauth.models import Account
from linkauth.services.accounts import get_account_by_id
from linkauth.services.errors import Unauthenticated
from linkauth.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class SessionIssuer:
    """Creates and reads stateless session tokens.

    Nothing is stored server-side; a token is valid while its signature checks
    out, it has not expired, and its account still exists.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiration_days: int = 7,
        clock: Clock = utc_now,
    ) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.expiration = timedelta(days=expiration_days)
        self.clock = clock

    def create_token(self, account: Account) -> str:
        """Create a session token for an account."""
        issued_at = self.clock()
        payload = {
            "sub": account.id,
            "email": account.email,
            "verified": account.verified,
            "iat": issued_at,
            "exp": issued_at + self.expiration,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_token(self, token: str) -> dict:
        """Decode and validate a session token.

        Expiry is checked against the issuer's clock, not the wall clock.
        """
        try:
            payload = jwt.decode(
                token, self.secret, algorithms=[self.algorithm], options={"verify_exp": False}
            )
        except JWTError as e:
            raise Unauthenticated("Invalid token") from e

        expires_at = payload.get("exp")
        if not isinstance(expires_at, int | float) or expires_at <= self.clock().timestamp():
            raise Unauthenticated("Invalid token")
        return payload

    async def read_session(self, session: AsyncSession, token: str | None) -> Account:
        """Resolve a session token to its current account.

        Only the account ID is trusted from the token; everything else is read
        fresh from the database.
        """
        if not token:
            raise Unauthenticated()

        payload = self.decode_token(token)
        account_id = payload.get("sub")
        if not account_id or not isinstance(account_id, str):
            raise Unauthenticated("Invalid token")

        account = await get_account_by_id(session, account_id)
        if account is None:
            logger.debug(f"Session token refers to missing account {account_id}")
            raise Unauthenticated("User not found")

        return account
