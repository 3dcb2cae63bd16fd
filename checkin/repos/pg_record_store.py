"""PostgreSQL implementation of RecordStore."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import delete, select, text, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkin.core.errors import (
    DuplicateCredentialIdError,
    DuplicateExternalIdError,
    StoreUnavailableError,
)
from checkin.db.tables import BatchRow, CredentialRow
from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord


class _Conflict(Exception):
    """Internal: abort the open transaction so nothing commits."""

    def __init__(
        self, error: DuplicateCredentialIdError | DuplicateExternalIdError
    ) -> None:
        super().__init__()
        self.error = error


class PgRecordStore:
    """Satisfies the RecordStore Protocol using PostgreSQL.

    Each method runs in its own transaction. Precondition: READ COMMITTED
    or stronger isolation, which makes the guarded UPDATE in
    redeem_if_active a row-level compare-and-set.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except (OperationalError, InterfaceError, OSError) as e:
            raise StoreUnavailableError(operation, str(e)) from e

    async def get(self, credential_id: str) -> CredentialRecord | None:
        async with self._transaction("get") as session:
            row = await session.get(CredentialRow, credential_id)
            return _row_to_record(row) if row is not None else None

    async def find_by_external_id(self, external_id: str) -> CredentialRecord | None:
        stmt = select(CredentialRow).where(CredentialRow.external_id == external_id)
        async with self._transaction("find_by_external_id") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_record(row) if row is not None else None

    async def list_external_ids(self) -> set[str]:
        async with self._transaction("list_external_ids") as session:
            result = await session.execute(select(CredentialRow.external_id))
            return set(result.scalars().all())

    async def create(self, record: CredentialRecord) -> None:
        try:
            async with self._transaction("create") as session:
                await _insert_all(session, [record])
        except _Conflict as conflict:
            raise conflict.error from None

    async def redeem_if_active(
        self, credential_id: str, redeemed_at: int
    ) -> CredentialRecord | None:
        stmt = (
            update(CredentialRow)
            .where(CredentialRow.credential_id == credential_id)
            .where(CredentialRow.is_redeemed.is_(False))
            .values(is_redeemed=True, redeemed_at=redeemed_at)
            .returning(CredentialRow)
        )
        async with self._transaction("redeem_if_active") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_record(row) if row is not None else None

    async def write_group(
        self,
        records: Sequence[CredentialRecord],
        ledger_entry: BatchLedgerEntry | None = None,
    ) -> None:
        try:
            async with self._transaction("write_group") as session:
                if records:
                    await _insert_all(session, records)
                if ledger_entry is not None:
                    session.add(
                        BatchRow(
                            batch_id=ledger_entry.batch_id,
                            label=ledger_entry.label,
                            created_at=ledger_entry.created_at,
                            member_count=ledger_entry.member_count,
                        )
                    )
        except _Conflict as conflict:
            raise conflict.error from None

    async def list_all(self) -> list[CredentialRecord]:
        async with self._transaction("list_all") as session:
            rows = (await session.execute(select(CredentialRow))).scalars().all()
            return [_row_to_record(r) for r in rows]

    async def list_by_batch(self, batch_id: str) -> list[CredentialRecord]:
        stmt = select(CredentialRow).where(CredentialRow.batch_id == batch_id)
        async with self._transaction("list_by_batch") as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_record(r) for r in rows]

    async def list_batches(self) -> list[BatchLedgerEntry]:
        async with self._transaction("list_batches") as session:
            rows = (await session.execute(select(BatchRow))).scalars().all()
            return [_row_to_batch(r) for r in rows]

    async def get_batch(self, batch_id: str) -> BatchLedgerEntry | None:
        async with self._transaction("get_batch") as session:
            row = await session.get(BatchRow, batch_id)
            return _row_to_batch(row) if row is not None else None

    async def delete(self, credential_id: str) -> bool:
        stmt = delete(CredentialRow).where(CredentialRow.credential_id == credential_id)
        async with self._transaction("delete") as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def ping(self) -> bool:
        try:
            async with self._transaction("ping") as session:
                await session.execute(text("SELECT 1"))
        except StoreUnavailableError:
            return False
        return True


async def _insert_all(
    session: AsyncSession, records: Sequence[CredentialRecord]
) -> None:
    """Insert every record or raise _Conflict naming what was taken.

    ON CONFLICT has no target, so a clash on the primary key or on
    external_id skips the row instead of raising IntegrityError.
    """
    stmt = (
        insert(CredentialRow)
        .values([_record_to_values(r) for r in records])
        .on_conflict_do_nothing()
        .returning(CredentialRow.credential_id)
    )
    inserted = set((await session.execute(stmt)).scalars().all())
    missing = [r for r in records if r.credential_id not in inserted]
    if not missing:
        return

    taken_stmt = select(CredentialRow.credential_id).where(
        CredentialRow.credential_id.in_([r.credential_id for r in missing])
    )
    taken = set((await session.execute(taken_stmt)).scalars().all())
    if taken:
        raise _Conflict(
            DuplicateCredentialIdError(
                [r.credential_id for r in missing if r.credential_id in taken]
            )
        )
    raise _Conflict(DuplicateExternalIdError([r.external_id for r in missing]))


def _record_to_values(record: CredentialRecord) -> dict:
    return {
        "credential_id": record.credential_id,
        "external_id": record.external_id,
        "full_name": record.full_name,
        "group_name": record.group,
        "created_at": record.created_at,
        "batch_id": record.batch_id,
        "is_redeemed": record.is_redeemed,
        "redeemed_at": record.redeemed_at,
    }


def _row_to_record(row: CredentialRow) -> CredentialRecord:
    return CredentialRecord(
        credential_id=row.credential_id,
        full_name=row.full_name,
        external_id=row.external_id,
        group=row.group_name,
        created_at=row.created_at,
        batch_id=row.batch_id,
        is_redeemed=row.is_redeemed,
        redeemed_at=row.redeemed_at,
    )


def _row_to_batch(row: BatchRow) -> BatchLedgerEntry:
    return BatchLedgerEntry(
        batch_id=row.batch_id,
        label=row.label,
        created_at=row.created_at,
        member_count=row.member_count,
    )
