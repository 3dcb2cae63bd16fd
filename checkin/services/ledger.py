"""Batch ledger and record listing: pure reads for reporting and export."""

from __future__ import annotations

from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord
from checkin.repos.record_store import RecordStore, call_store


class BatchLedger:
    def __init__(self, store: RecordStore, *, timeout: float) -> None:
        self._store = store
        self._timeout = timeout

    async def list_batches(self) -> list[BatchLedgerEntry]:
        """All ledger entries, newest import first."""
        batches = await call_store(
            "list_batches", self._store.list_batches(), self._timeout
        )
        return sorted(batches, key=lambda b: (b.created_at, b.batch_id), reverse=True)

    async def get_batch(self, batch_id: str) -> BatchLedgerEntry | None:
        return await call_store(
            "get_batch", self._store.get_batch(batch_id), self._timeout
        )

    async def get_record(self, credential_id: str) -> CredentialRecord | None:
        return await call_store("get", self._store.get(credential_id), self._timeout)

    async def get_batch_members(self, batch_id: str) -> list[CredentialRecord]:
        members = await call_store(
            "list_by_batch", self._store.list_by_batch(batch_id), self._timeout
        )
        return _oldest_first(members)

    async def list_all_records(self) -> list[CredentialRecord]:
        records = await call_store("list_all", self._store.list_all(), self._timeout)
        return _oldest_first(records)


def _oldest_first(records: list[CredentialRecord]) -> list[CredentialRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.credential_id))
