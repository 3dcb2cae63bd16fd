from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Protocol, TypeVar, runtime_checkable

from checkin.core.errors import (
    DuplicateCredentialIdError,
    DuplicateExternalIdError,
    StoreUnavailableError,
)
from checkin.core.metrics import STORE_ERRORS
from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class RecordStore(Protocol):
    """Shared, durable collection of credential records and batch ledger entries.

    Atomic primitives the core relies on:
      create              conditional insert; rejects a taken external_id
                          or credential_id
      redeem_if_active    compare-and-set on is_redeemed == False
      write_group         all-or-nothing multi-insert (records + optional ledger)

    A taken credential_id raises DuplicateCredentialIdError and is checked
    before external ids; a taken external_id raises DuplicateExternalIdError.
    Either way nothing was written.
    """

    async def get(self, credential_id: str) -> CredentialRecord | None: ...
    async def find_by_external_id(self, external_id: str) -> CredentialRecord | None: ...
    async def list_external_ids(self) -> set[str]: ...
    async def create(self, record: CredentialRecord) -> None: ...
    async def redeem_if_active(
        self, credential_id: str, redeemed_at: int
    ) -> CredentialRecord | None: ...
    async def write_group(
        self,
        records: Sequence[CredentialRecord],
        ledger_entry: BatchLedgerEntry | None = None,
    ) -> None: ...
    async def list_all(self) -> list[CredentialRecord]: ...
    async def list_by_batch(self, batch_id: str) -> list[CredentialRecord]: ...
    async def list_batches(self) -> list[BatchLedgerEntry]: ...
    async def get_batch(self, batch_id: str) -> BatchLedgerEntry | None: ...
    async def delete(self, credential_id: str) -> bool: ...
    async def ping(self) -> bool: ...


async def call_store(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Await a store call, bounded by ``timeout`` seconds.

    A timeout becomes StoreUnavailableError. Store implementations raise
    StoreUnavailableError for their own transport failures; both are
    counted and logged here. Nothing is retried.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TimeoutError:
        STORE_ERRORS.labels(operation=operation).inc()
        logger.warning(
            "Store call timed out  operation=%s timeout=%.1fs",
            operation,
            timeout,
            extra={"operation": operation},
        )
        raise StoreUnavailableError(operation, f"no answer within {timeout}s") from None
    except StoreUnavailableError as e:
        STORE_ERRORS.labels(operation=operation).inc()
        logger.warning(
            "Store call failed  operation=%s detail=%s",
            operation,
            e.detail,
            extra={"operation": operation},
        )
        raise


class InMemoryRecordStore:
    """Dict-backed store for tests and local dev.

    Every method yields to the event loop once before touching state, so
    concurrent callers interleave at the same points they would against a
    networked store. The body after the yield has no await, which makes
    each primitive atomic within the process.
    """

    def __init__(self) -> None:
        self._records: dict[str, CredentialRecord] = {}
        self._by_external_id: dict[str, str] = {}
        self._batches: dict[str, BatchLedgerEntry] = {}

    async def get(self, credential_id: str) -> CredentialRecord | None:
        await asyncio.sleep(0)
        return self._records.get(credential_id)

    async def find_by_external_id(self, external_id: str) -> CredentialRecord | None:
        await asyncio.sleep(0)
        credential_id = self._by_external_id.get(external_id)
        if credential_id is None:
            return None
        return self._records.get(credential_id)

    async def list_external_ids(self) -> set[str]:
        await asyncio.sleep(0)
        return set(self._by_external_id)

    async def create(self, record: CredentialRecord) -> None:
        await asyncio.sleep(0)
        self._check_free([record])
        self._insert(record)

    async def redeem_if_active(
        self, credential_id: str, redeemed_at: int
    ) -> CredentialRecord | None:
        await asyncio.sleep(0)
        record = self._records.get(credential_id)
        if record is None or record.is_redeemed:
            return None
        updated = record.redeemed(redeemed_at)
        self._records[credential_id] = updated
        return updated

    async def write_group(
        self,
        records: Sequence[CredentialRecord],
        ledger_entry: BatchLedgerEntry | None = None,
    ) -> None:
        await asyncio.sleep(0)
        self._check_free(records)
        for record in records:
            self._insert(record)
        if ledger_entry is not None:
            self._batches[ledger_entry.batch_id] = ledger_entry

    async def list_all(self) -> list[CredentialRecord]:
        await asyncio.sleep(0)
        return list(self._records.values())

    async def list_by_batch(self, batch_id: str) -> list[CredentialRecord]:
        await asyncio.sleep(0)
        return [r for r in self._records.values() if r.batch_id == batch_id]

    async def list_batches(self) -> list[BatchLedgerEntry]:
        await asyncio.sleep(0)
        return list(self._batches.values())

    async def get_batch(self, batch_id: str) -> BatchLedgerEntry | None:
        await asyncio.sleep(0)
        return self._batches.get(batch_id)

    async def delete(self, credential_id: str) -> bool:
        await asyncio.sleep(0)
        record = self._records.pop(credential_id, None)
        if record is None:
            return False
        self._by_external_id.pop(record.external_id, None)
        return True

    async def ping(self) -> bool:
        return True

    def clear(self) -> None:
        self._records.clear()
        self._by_external_id.clear()
        self._batches.clear()

    def _check_free(self, records: Sequence[CredentialRecord]) -> None:
        taken_ids = [r.credential_id for r in records if r.credential_id in self._records]
        if taken_ids:
            raise DuplicateCredentialIdError(taken_ids)
        conflicts = [
            r.external_id for r in records if r.external_id in self._by_external_id
        ]
        if conflicts:
            raise DuplicateExternalIdError(conflicts)

    def _insert(self, record: CredentialRecord) -> None:
        self._records[record.credential_id] = record
        self._by_external_id[record.external_id] = record.credential_id
