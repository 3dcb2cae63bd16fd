"""RedisRecordStore against a live server.

Skipped unless TEST_REDIS_URL points at a Redis you don't mind writing to.
Each test uses its own key prefix and deletes it afterwards.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace

import pytest
import redis.asyncio as aioredis

from checkin.core.errors import DuplicateCredentialIdError, DuplicateExternalIdError
from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord
from checkin.models.guest import GuestIdentity
from checkin.repos.redis_record_store import RedisRecordStore
from checkin.services.redemption import RedemptionAuthority

REDIS_URL = os.environ.get("TEST_REDIS_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not REDIS_URL, reason="TEST_REDIS_URL not set"),
]


def _record(external_id: str, batch_id: str | None = None) -> CredentialRecord:
    identity = GuestIdentity.new(full_name="Guest", external_id=external_id, group="G")
    return CredentialRecord.new(identity, batch_id=batch_id)


def _run(body: Callable[[RedisRecordStore], Awaitable[None]]) -> None:
    async def main() -> None:
        client = aioredis.from_url(REDIS_URL, decode_responses=True)
        prefix = f"checkin-test-{uuid.uuid4().hex[:8]}:"
        try:
            await body(RedisRecordStore(client, prefix=prefix))
        finally:
            keys = [k async for k in client.scan_iter(match=f"{prefix}*")]
            if keys:
                await client.delete(*keys)
            await client.aclose()

    asyncio.run(main())


def test_create_get_and_duplicate() -> None:
    async def body(store: RedisRecordStore) -> None:
        record = _record("A-1")
        await store.create(record)
        assert await store.get(record.credential_id) == record
        assert await store.find_by_external_id("A-1") == record
        with pytest.raises(DuplicateExternalIdError):
            await store.create(_record("A-1"))
        assert await store.list_external_ids() == {"A-1"}

    _run(body)


def test_write_group_conflict_writes_nothing() -> None:
    async def body(store: RedisRecordStore) -> None:
        await store.create(_record("A-2"))
        group = [_record("A-1", "b1"), _record("A-2", "b1")]
        with pytest.raises(DuplicateExternalIdError) as exc_info:
            await store.write_group(group, BatchLedgerEntry("b1", "x", 0, 2))
        assert exc_info.value.external_ids == ("A-2",)
        assert await store.list_external_ids() == {"A-2"}
        assert await store.list_batches() == []

    _run(body)


def test_write_group_with_ledger_and_members() -> None:
    async def body(store: RedisRecordStore) -> None:
        group = [_record("A-1", "b1"), _record("A-2", "b1")]
        ledger = BatchLedgerEntry("b1", "class.xlsx", 123, 2)
        await store.write_group(group, ledger)
        assert await store.get_batch("b1") == ledger
        assert await store.list_batches() == [ledger]
        members = await store.list_by_batch("b1")
        assert sorted(m.external_id for m in members) == ["A-1", "A-2"]

    _run(body)


def test_concurrent_redeems_accept_exactly_one() -> None:
    async def body(store: RedisRecordStore) -> None:
        record = _record("A-1")
        await store.create(record)
        authority = RedemptionAuthority(store, timeout=5.0)
        outcomes = await asyncio.gather(
            *(authority.redeem(record.credential_id) for _ in range(200))
        )
        assert sum(o.outcome == "accepted" for o in outcomes) == 1
        stored = await store.get(record.credential_id)
        assert stored.is_redeemed is True

    _run(body)


def test_delete_removes_indexes() -> None:
    async def body(store: RedisRecordStore) -> None:
        record = _record("A-1", "b1")
        await store.write_group([record], None)
        assert await store.delete(record.credential_id) is True
        assert await store.delete(record.credential_id) is False
        assert await store.find_by_external_id("A-1") is None
        assert await store.list_by_batch("b1") == []
        assert await store.ping() is True

    _run(body)


def test_taken_credential_id_leaves_redeemed_record_intact() -> None:
    async def body(store: RedisRecordStore) -> None:
        record = _record("A-1")
        await store.create(record)
        assert await store.redeem_if_active(record.credential_id, 100) is not None

        impostor = replace(_record("E-9"), credential_id=record.credential_id)
        with pytest.raises(DuplicateCredentialIdError):
            await store.create(impostor)
        with pytest.raises(DuplicateCredentialIdError):
            await store.write_group([impostor], BatchLedgerEntry("b1", "x", 0, 1))

        stored = await store.get(record.credential_id)
        assert stored.external_id == "A-1"
        assert stored.is_redeemed is True and stored.redeemed_at == 100
        assert await store.find_by_external_id("E-9") is None
        assert await store.list_batches() == []

    _run(body)
