"""create credentials and batches

Revision ID: 3b1e9c4d7a20
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c4d7a20"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "batches",
        sa.Column("batch_id", sa.String(length=64), primary_key=True),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("member_count", sa.Integer(), nullable=False),
    )
    op.create_table(
        "credentials",
        sa.Column("credential_id", sa.String(length=128), primary_key=True),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("group_name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("batch_id", sa.String(length=64), nullable=True),
        sa.Column(
            "is_redeemed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("redeemed_at", sa.BigInteger(), nullable=True),
        sa.UniqueConstraint("external_id", name="uq_credentials_external_id"),
        sa.CheckConstraint(
            "(is_redeemed AND redeemed_at IS NOT NULL)"
            " OR (NOT is_redeemed AND redeemed_at IS NULL)",
            name="ck_credentials_redeemed_at",
        ),
    )
    op.create_index("ix_credentials_batch_id", "credentials", ["batch_id"])


def downgrade() -> None:
    op.drop_index("ix_credentials_batch_id", table_name="credentials")
    op.drop_table("credentials")
    op.drop_table("batches")
