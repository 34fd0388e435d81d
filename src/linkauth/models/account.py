"""Account model."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from linkauth.models.base import BaseModel


class Account(BaseModel, table=True):
    """An email address and the state of its outstanding magic link.

    The token columns are overwritten on every issuance; at most one link per
    account is ever live.
    """

    __tablename__ = "accounts"

    email: str = Field(unique=True, index=True, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    verified: bool = Field(default=False)
    magic_link_token: str | None = Field(
        default=None,
        unique=True,
        index=True,
        max_length=255,
        description="Outstanding single-use token",
    )
    magic_link_expires: datetime | None = Field(
        default=None,
        index=True,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="Expiration of the outstanding token",
    )
    magic_link_used: bool = Field(default=False, description="Outstanding token was consumed")


class AccountRead(SQLModel):
    """Schema for reading an account."""

    id: str
    email: str
    name: str | None
    verified: bool
    created_at: datetime
