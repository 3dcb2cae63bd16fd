"""Identity registrar: creates credential records, singly or in bulk.

UNIQUENESS OF external_id
---------------------------
Both paths look the external id up first so the common conflict gets a
friendly answer without a failed write.  The lookup is not what
guarantees uniqueness: two registration desks can both see "free" and
both try to write.  The store's conditional create / write_group is the
enforcement point, and a DuplicateExternalIdError from it is turned into
the same business answer as the lookup would have given.

BULK WRITES
-------------
Accepted rows are written in groups of at most ``bulk_write_limit - 1``
records so the last group always has room for the batch ledger entry.
The ledger entry goes in the last group: a reader never sees a batch
whose members are not all committed.  A group that reports a conflict
committed nothing, so it is safe to drop the conflicting rows and write
the same group again.  A transport failure is never retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from checkin.core.errors import (
    DuplicateExternalIdError,
    PartialBatchFailureError,
    StoreUnavailableError,
)
from checkin.core.metrics import BULK_IMPORT_ROWS, REGISTRATION_OUTCOMES
from checkin.models.batch import BatchLedgerEntry, new_batch_id
from checkin.models.credential import CredentialRecord, now_ms
from checkin.models.guest import GuestIdentity
from checkin.models.registration import (
    BulkRegistrationResult,
    BulkRejectReason,
    DuplicateIdentity,
    RejectedRow,
)
from checkin.repos.record_store import RecordStore, call_store

logger = logging.getLogger(__name__)

_Indexed = tuple[int, CredentialRecord]


class IdentityRegistrar:
    def __init__(
        self,
        store: RecordStore,
        *,
        timeout: float,
        bulk_write_limit: int,
    ) -> None:
        if bulk_write_limit < 2:
            raise ValueError("bulk_write_limit must leave room for the ledger entry")
        self._store = store
        self._timeout = timeout
        self._group_size = bulk_write_limit - 1

    async def register_single(
        self, identity: GuestIdentity
    ) -> CredentialRecord | DuplicateIdentity:
        """Create one record, or report that its external id is taken.

        Exactly one store write on success, none on a duplicate.
        Raises StoreUnavailableError; the write may or may not have landed.
        """
        existing = await call_store(
            "find_by_external_id",
            self._store.find_by_external_id(identity.external_id),
            self._timeout,
        )
        if existing is not None:
            return self._duplicate(identity.external_id)

        record = CredentialRecord.new(identity)
        try:
            await call_store("create", self._store.create(record), self._timeout)
        except DuplicateExternalIdError:
            # Another desk registered the same external id after our lookup
            return self._duplicate(identity.external_id)

        REGISTRATION_OUTCOMES.labels(outcome="created").inc()
        logger.info(
            "Guest registered  credential_id=%s external_id=%s",
            record.credential_id,
            record.external_id,
            extra={
                "credential_id": record.credential_id,
                "external_id": record.external_id,
                "outcome": "created",
            },
        )
        return record

    def _duplicate(self, external_id: str) -> DuplicateIdentity:
        REGISTRATION_OUTCOMES.labels(outcome="duplicate").inc()
        logger.info(
            "Registration rejected, external id taken  external_id=%s",
            external_id,
            extra={"external_id": external_id, "outcome": "duplicate"},
        )
        return DuplicateIdentity(external_id=external_id)

    async def register_bulk(
        self, identities: Sequence[GuestIdentity], label: str
    ) -> BulkRegistrationResult:
        """Accept or reject every row independently; never fails per row.

        Row rules, applied in input order:
          - external id already in the store      → "already registered"
          - external id seen earlier in this input → "duplicate within import"
          - otherwise accepted
        ``added`` and ``rejected`` both preserve input order.
        """
        existing = await call_store(
            "list_external_ids", self._store.list_external_ids(), self._timeout
        )
        batch_id = new_batch_id()
        created_at = now_ms()

        seen: set[str] = set()
        accepted: list[_Indexed] = []
        rejected: list[tuple[int, RejectedRow]] = []
        for index, identity in enumerate(identities):
            if identity.external_id in existing:
                rejected.append(
                    (index, RejectedRow(identity, BulkRejectReason.ALREADY_REGISTERED))
                )
            elif identity.external_id in seen:
                rejected.append(
                    (
                        index,
                        RejectedRow(identity, BulkRejectReason.DUPLICATE_WITHIN_IMPORT),
                    )
                )
            else:
                seen.add(identity.external_id)
                accepted.append(
                    (
                        index,
                        CredentialRecord.new(
                            identity, batch_id=batch_id, created_at=created_at
                        ),
                    )
                )

        committed: list[_Indexed] = []
        if accepted:
            committed = await self._write_groups(
                batch_id, label, created_at, accepted, rejected
            )

        rejected.sort(key=lambda pair: pair[0])
        committed.sort(key=lambda pair: pair[0])
        result = BulkRegistrationResult(
            added=tuple(record for _, record in committed),
            rejected=tuple(row for _, row in rejected),
            batch_id=batch_id if committed else None,
        )

        BULK_IMPORT_ROWS.labels(result="added").inc(len(result.added))
        for row in result.rejected:
            BULK_IMPORT_ROWS.labels(result=row.reason.name.lower()).inc()
        logger.info(
            "Bulk import finished  label=%r rows=%d added=%d rejected=%d",
            label,
            len(identities),
            len(result.added),
            len(result.rejected),
            extra={"batch_id": result.batch_id},
        )
        return result

    async def _write_groups(
        self,
        batch_id: str,
        label: str,
        created_at: int,
        accepted: list[_Indexed],
        rejected: list[tuple[int, RejectedRow]],
    ) -> list[_Indexed]:
        """Write accepted records group by group; the ledger rides in the last one.

        Conflicting rows are appended to ``rejected``. Returns the committed
        records with their input positions.
        """
        groups = [
            accepted[i : i + self._group_size]
            for i in range(0, len(accepted), self._group_size)
        ]
        committed: list[_Indexed] = []
        committed_groups = 0

        for position, group in enumerate(groups):
            is_last = position == len(groups) - 1
            pending = list(group)
            while True:
                ledger_entry = None
                if is_last:
                    member_count = len(committed) + len(pending)
                    if member_count == 0:
                        break
                    ledger_entry = BatchLedgerEntry(
                        batch_id=batch_id,
                        label=label,
                        created_at=created_at,
                        member_count=member_count,
                    )
                elif not pending:
                    break

                try:
                    await call_store(
                        "write_group",
                        self._store.write_group(
                            [record for _, record in pending], ledger_entry
                        ),
                        self._timeout,
                    )
                except DuplicateExternalIdError as e:
                    remaining = self._drop_conflicts(pending, e.external_ids, rejected)
                    if len(remaining) == len(pending):
                        raise
                    pending = remaining
                    continue
                except StoreUnavailableError as e:
                    if not committed:
                        raise
                    logger.error(
                        "Bulk import interrupted  batch_id=%s committed_groups=%d/%d",
                        batch_id,
                        committed_groups,
                        len(groups),
                        extra={"batch_id": batch_id},
                    )
                    raise PartialBatchFailureError(
                        batch_id,
                        committed_groups=committed_groups,
                        total_groups=len(groups),
                        committed_records=len(committed),
                    ) from e

                committed.extend(pending)
                committed_groups += 1
                break

        return committed

    @staticmethod
    def _drop_conflicts(
        pending: list[_Indexed],
        conflicting_ids: Sequence[str],
        rejected: list[tuple[int, RejectedRow]],
    ) -> list[_Indexed]:
        conflicts = set(conflicting_ids)
        remaining: list[_Indexed] = []
        for index, record in pending:
            if record.external_id in conflicts:
                logger.info(
                    "Bulk row lost a race to a concurrent registration  external_id=%s",
                    record.external_id,
                    extra={"external_id": record.external_id},
                )
                rejected.append(
                    (
                        index,
                        RejectedRow(record.identity, BulkRejectReason.ALREADY_REGISTERED),
                    )
                )
            else:
                remaining.append((index, record))
        return remaining

    async def delete_record(self, credential_id: str) -> bool:
        """Administrative removal. Not covered by the redemption guarantees:
        a scan racing a delete may still be accepted."""
        removed = await call_store(
            "delete", self._store.delete(credential_id), self._timeout
        )
        if removed:
            logger.warning(
                "Credential deleted by administrator  credential_id=%s",
                credential_id,
                extra={"credential_id": credential_id, "outcome": "deleted"},
            )
        return removed
