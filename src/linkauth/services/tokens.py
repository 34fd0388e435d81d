"""Magic link token generation."""

from datetime import datetime, timedelta
from secrets import token_hex

import httpx

# 32 random bytes, hex encoded: 256 bits of entropy, safe in a query string
TOKEN_BYTES = 32


def generate_token() -> str:
    """Generate an unpredictable single-use token."""
    return token_hex(TOKEN_BYTES)


def token_expiry(now: datetime, minutes: int) -> datetime:
    """Expiration time for a token issued at ``now``."""
    return now + timedelta(minutes=minutes)


def build_magic_link(base_url: str, token: str) -> str:
    """Append the token to ``base_url`` as a ``token`` query parameter."""
    return str(httpx.URL(base_url).copy_merge_params({"token": token}))
