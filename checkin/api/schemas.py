"""Response shapes shared by several routers."""

from __future__ import annotations

from pydantic import BaseModel

from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord


class CredentialOut(BaseModel):
    credential_id: str
    full_name: str
    external_id: str
    group: str
    created_at: int
    batch_id: str | None
    is_redeemed: bool
    redeemed_at: int | None

    @classmethod
    def from_record(cls, record: CredentialRecord) -> CredentialOut:
        return cls(
            credential_id=record.credential_id,
            full_name=record.full_name,
            external_id=record.external_id,
            group=record.group,
            created_at=record.created_at,
            batch_id=record.batch_id,
            is_redeemed=record.is_redeemed,
            redeemed_at=record.redeemed_at,
        )


class BatchOut(BaseModel):
    batch_id: str
    label: str
    created_at: int
    member_count: int

    @classmethod
    def from_entry(cls, entry: BatchLedgerEntry) -> BatchOut:
        return cls(
            batch_id=entry.batch_id,
            label=entry.label,
            created_at=entry.created_at,
            member_count=entry.member_count,
        )
