"""PgRecordStore against a live PostgreSQL.

Skipped unless TEST_DATABASE_URL (postgresql+asyncpg://...) is set. The
tables are created from the ORM metadata and dropped after each test.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from dataclasses import replace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from checkin.core.errors import DuplicateCredentialIdError, DuplicateExternalIdError
from checkin.db.engine import Base
from checkin.db.tables import BatchRow, CredentialRow  # noqa: F401
from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord
from checkin.models.guest import GuestIdentity
from checkin.repos.pg_record_store import PgRecordStore
from checkin.services.redemption import RedemptionAuthority

DATABASE_URL = os.environ.get("TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not DATABASE_URL, reason="TEST_DATABASE_URL not set"),
]


def _record(external_id: str, batch_id: str | None = None) -> CredentialRecord:
    identity = GuestIdentity.new(full_name="Guest", external_id=external_id, group="G")
    return CredentialRecord.new(identity, batch_id=batch_id)


def _run(body: Callable[[PgRecordStore], Awaitable[None]]) -> None:
    async def main() -> None:
        engine = create_async_engine(DATABASE_URL, pool_size=20)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        try:
            factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            await body(PgRecordStore(factory))
        finally:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
            await engine.dispose()

    asyncio.run(main())


def test_create_get_and_duplicate() -> None:
    async def body(store: PgRecordStore) -> None:
        record = _record("A-1")
        await store.create(record)
        assert await store.get(record.credential_id) == record
        assert await store.find_by_external_id("A-1") == record
        with pytest.raises(DuplicateExternalIdError):
            await store.create(_record("A-1"))

    _run(body)


def test_write_group_conflict_rolls_back() -> None:
    async def body(store: PgRecordStore) -> None:
        await store.create(_record("A-2"))
        group = [_record("A-1", "b1"), _record("A-2", "b1")]
        with pytest.raises(DuplicateExternalIdError) as exc_info:
            await store.write_group(group, BatchLedgerEntry("b1", "x", 0, 2))
        assert exc_info.value.external_ids == ("A-2",)
        assert await store.list_external_ids() == {"A-2"}
        assert await store.list_batches() == []

    _run(body)


def test_write_group_with_ledger() -> None:
    async def body(store: PgRecordStore) -> None:
        ledger = BatchLedgerEntry("b1", "class.xlsx", 123, 2)
        await store.write_group([_record("A-1", "b1"), _record("A-2", "b1")], ledger)
        assert await store.get_batch("b1") == ledger
        assert len(await store.list_by_batch("b1")) == 2

    _run(body)


def test_concurrent_redeems_accept_exactly_one() -> None:
    async def body(store: PgRecordStore) -> None:
        record = _record("A-1")
        await store.create(record)
        authority = RedemptionAuthority(store, timeout=10.0)
        outcomes = await asyncio.gather(
            *(authority.redeem(record.credential_id) for _ in range(50))
        )
        assert sum(o.outcome == "accepted" for o in outcomes) == 1
        assert await store.ping() is True

    _run(body)


def test_taken_credential_id_leaves_redeemed_record_intact() -> None:
    async def body(store: PgRecordStore) -> None:
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
