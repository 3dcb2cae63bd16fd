"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in checkin/models/.
The PostgreSQL record store converts between rows and dataclasses.

The UNIQUE constraint on credentials.external_id is the uniqueness
enforcement point for registration; the registrar's prior lookup only
produces the friendly answer in the common case.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from checkin.db.engine import Base
from checkin.models.guest import MAX_FIELD_LENGTH


class BatchRow(Base):
    __tablename__ = "batches"

    batch_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    label: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    member_count: Mapped[int] = mapped_column(Integer, nullable=False)


class CredentialRow(Base):
    __tablename__ = "credentials"
    __table_args__ = (
        CheckConstraint(
            "(is_redeemed AND redeemed_at IS NOT NULL)"
            " OR (NOT is_redeemed AND redeemed_at IS NULL)",
            name="ck_credentials_redeemed_at",
        ),
        Index("ix_credentials_batch_id", "batch_id"),
        UniqueConstraint("external_id", name="uq_credentials_external_id"),
    )

    credential_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    external_id: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), nullable=False)
    full_name: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), nullable=False)
    group_name: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # No FK to batches: member rows commit in earlier groups than their
    # ledger entry when an import spans several groups.
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_redeemed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    redeemed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
