"""SQLModel database models."""

from linkauth.models.account import Account, AccountRead
from linkauth.models.base import BaseModel, TimestampMixin

__all__ = [
    "Account",
    "AccountRead",
    "BaseModel",
    "TimestampMixin",
]
