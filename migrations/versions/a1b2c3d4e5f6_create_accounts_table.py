"""create_accounts_table

Create the accounts table holding each email's outstanding magic link.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("magic_link_token", sa.String(255), nullable=True),
        sa.Column("magic_link_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("magic_link_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)
    op.create_index("ix_accounts_magic_link_token", "accounts", ["magic_link_token"], unique=True)
    # Supports the hourly sweep of expired links
    op.create_index("ix_accounts_magic_link_expires", "accounts", ["magic_link_expires"])


def downgrade() -> None:
    op.drop_index("ix_accounts_magic_link_expires", table_name="accounts")
    op.drop_index("ix_accounts_magic_link_token", table_name="accounts")
    op.drop_index("ix_accounts_email", table_name="accounts")
    op.drop_table("accounts")
