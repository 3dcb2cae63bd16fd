"""InMemoryRecordStore: the atomic primitives every backend must provide."""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from checkin.core.errors import DuplicateCredentialIdError, DuplicateExternalIdError
from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord
from checkin.models.guest import GuestIdentity
from checkin.repos.record_store import InMemoryRecordStore, RecordStore


def _record(external_id: str, batch_id: str | None = None) -> CredentialRecord:
    identity = GuestIdentity.new(full_name="Guest", external_id=external_id, group="G")
    return CredentialRecord.new(identity, batch_id=batch_id)


def test_satisfies_record_store_protocol(store: InMemoryRecordStore) -> None:
    assert isinstance(store, RecordStore)


def test_create_then_lookup(store: InMemoryRecordStore) -> None:
    record = _record("A-1")
    asyncio.run(store.create(record))

    assert asyncio.run(store.get(record.credential_id)) == record
    assert asyncio.run(store.find_by_external_id("A-1")) == record
    assert asyncio.run(store.list_external_ids()) == {"A-1"}


def test_create_rejects_taken_external_id(store: InMemoryRecordStore) -> None:
    asyncio.run(store.create(_record("A-1")))
    with pytest.raises(DuplicateExternalIdError) as exc_info:
        asyncio.run(store.create(_record("A-1")))
    assert exc_info.value.external_ids == ("A-1",)
    assert len(asyncio.run(store.list_all())) == 1


def test_redeem_if_active_is_compare_and_set(store: InMemoryRecordStore) -> None:
    record = _record("A-1")
    asyncio.run(store.create(record))

    first = asyncio.run(store.redeem_if_active(record.credential_id, 100))
    second = asyncio.run(store.redeem_if_active(record.credential_id, 200))

    assert first is not None and first.redeemed_at == 100
    assert second is None
    assert asyncio.run(store.get(record.credential_id)).redeemed_at == 100


def test_redeem_if_active_unknown_id(store: InMemoryRecordStore) -> None:
    assert asyncio.run(store.redeem_if_active("missing", 1)) is None


def test_write_group_is_all_or_nothing(store: InMemoryRecordStore) -> None:
    asyncio.run(store.create(_record("A-2")))
    group = [_record("A-1", "b1"), _record("A-2", "b1"), _record("A-3", "b1")]
    ledger = BatchLedgerEntry("b1", "import", 0, 3)

    with pytest.raises(DuplicateExternalIdError) as exc_info:
        asyncio.run(store.write_group(group, ledger))

    assert exc_info.value.external_ids == ("A-2",)
    assert asyncio.run(store.list_external_ids()) == {"A-2"}
    assert asyncio.run(store.list_batches()) == []


def test_write_group_with_ledger(store: InMemoryRecordStore) -> None:
    group = [_record("A-1", "b1"), _record("A-2", "b1")]
    ledger = BatchLedgerEntry("b1", "import", 0, 2)
    asyncio.run(store.write_group(group, ledger))

    assert asyncio.run(store.get_batch("b1")) == ledger
    assert len(asyncio.run(store.list_by_batch("b1"))) == 2


def test_delete_frees_external_id(store: InMemoryRecordStore) -> None:
    record = _record("A-1")
    asyncio.run(store.create(record))

    assert asyncio.run(store.delete(record.credential_id)) is True
    assert asyncio.run(store.delete(record.credential_id)) is False
    assert asyncio.run(store.find_by_external_id("A-1")) is None
    asyncio.run(store.create(_record("A-1")))


def test_concurrent_creates_admit_one(store: InMemoryRecordStore) -> None:
    async def race() -> list[object]:
        return await asyncio.gather(
            *(store.create(_record("A-1")) for _ in range(20)),
            return_exceptions=True,
        )

    results = asyncio.run(race())
    assert results.count(None) == 1
    assert all(isinstance(r, DuplicateExternalIdError) for r in results if r is not None)


def test_create_rejects_taken_credential_id(store: InMemoryRecordStore) -> None:
    record = _record("A-1")
    asyncio.run(store.create(record))
    asyncio.run(store.redeem_if_active(record.credential_id, 100))

    impostor = replace(_record("E-9"), credential_id=record.credential_id)
    with pytest.raises(DuplicateCredentialIdError) as exc_info:
        asyncio.run(store.create(impostor))
    assert exc_info.value.credential_ids == (record.credential_id,)

    stored = asyncio.run(store.get(record.credential_id))
    assert stored.external_id == "A-1"
    assert stored.is_redeemed is True and stored.redeemed_at == 100
    assert asyncio.run(store.find_by_external_id("E-9")) is None


def test_write_group_rejects_taken_credential_id(store: InMemoryRecordStore) -> None:
    record = _record("A-1")
    asyncio.run(store.create(record))
    clash = replace(_record("A-3", "b1"), credential_id=record.credential_id)
    group = [_record("A-2", "b1"), clash]

    with pytest.raises(DuplicateCredentialIdError):
        asyncio.run(store.write_group(group, BatchLedgerEntry("b1", "x", 0, 2)))
    assert asyncio.run(store.list_external_ids()) == {"A-1"}
    assert asyncio.run(store.list_batches()) == []
