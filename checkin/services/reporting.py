"""Attendance reporting over a full scan of the record store.

Every figure here is computed from one ``list_all`` read, so a summary is
internally consistent even while doors keep scanning.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import UTC, datetime

from checkin.models.credential import CredentialRecord
from checkin.services.ledger import BatchLedger

RECENT_ENTRIES = 5

ENTRY_LOG_COLUMNS = (
    "Entry Order",
    "Name",
    "External ID",
    "Group",
    "Entry Time",
    "Credential ID",
)


@dataclass(frozen=True, slots=True)
class AttendanceSummary:
    total: int
    entered: int
    pending: int
    recent: tuple[CredentialRecord, ...]


@dataclass(frozen=True, slots=True)
class EntryLogLine:
    order: int
    record: CredentialRecord


def format_timestamp(epoch_ms: int) -> str:
    return (
        datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class AttendanceReports:
    def __init__(self, ledger: BatchLedger) -> None:
        self._ledger = ledger

    async def attendance_summary(self) -> AttendanceSummary:
        records = await self._ledger.list_all_records()
        entered = _by_entry_time([r for r in records if r.is_redeemed])
        return AttendanceSummary(
            total=len(records),
            entered=len(entered),
            pending=len(records) - len(entered),
            recent=tuple(reversed(entered[-RECENT_ENTRIES:])),
        )

    async def entry_log(self) -> list[EntryLogLine]:
        """Redeemed records in the order guests came through the door."""
        records = await self._ledger.list_all_records()
        entered = _by_entry_time([r for r in records if r.is_redeemed])
        return [EntryLogLine(order=i, record=r) for i, r in enumerate(entered, start=1)]

    async def entry_log_csv(self) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(ENTRY_LOG_COLUMNS)
        for line in await self.entry_log():
            r = line.record
            writer.writerow(
                (
                    line.order,
                    r.full_name,
                    r.external_id,
                    r.group,
                    format_timestamp(r.redeemed_at),  # type: ignore[arg-type]
                    r.credential_id,
                )
            )
        return buf.getvalue()

    async def search_records(
        self, query: str | None = None, batch_id: str | None = None
    ) -> list[CredentialRecord]:
        """Case-insensitive substring match on name, external id or group.

        A blank query matches everything; ``batch_id`` narrows to one import.
        """
        if batch_id:
            records = await self._ledger.get_batch_members(batch_id)
        else:
            records = await self._ledger.list_all_records()

        needle = (query or "").strip().casefold()
        if not needle:
            return records
        return [
            r
            for r in records
            if needle in r.full_name.casefold()
            or needle in r.external_id.casefold()
            or needle in r.group.casefold()
        ]


def _by_entry_time(records: list[CredentialRecord]) -> list[CredentialRecord]:
    return sorted(records, key=lambda r: (r.redeemed_at or 0, r.credential_id))
