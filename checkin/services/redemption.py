"""Redemption authority: decides whether a scanned credential may enter.

STATES
-------
  Unknown     no record with this id (not stored; it is the answer to a miss)
  Active      stored, is_redeemed = False
  Redeemed    stored, is_redeemed = True   (terminal)

Active → Redeemed is the only transition.

EXACTLY-ONCE ENTRY
--------------------
Two doors can scan the same QR code within milliseconds.  Both read the
record and see Active.  If both then wrote is_redeemed=True
unconditionally, both would be told "welcome".  So the write is the
store's compare-and-set (redeem_if_active): it only succeeds while
is_redeemed is still False.  The caller that loses the compare-and-set
re-reads the record and reports AlreadyRedeemed with the winner's
timestamp.  For any credential, at most one redeem() ever returns
Accepted.

Retrying redeem() after StoreUnavailable is safe: a retry of a scan that
actually landed reports AlreadyRedeemed.
"""

from __future__ import annotations

import logging

from checkin.core.metrics import REDEMPTION_OUTCOMES
from checkin.models.credential import is_well_formed_credential_id, now_ms
from checkin.models.redemption import (
    Accepted,
    Rejected,
    RedemptionOutcome,
    RejectionReason,
)
from checkin.repos.record_store import RecordStore, call_store

logger = logging.getLogger(__name__)


class RedemptionAuthority:
    def __init__(self, store: RecordStore, *, timeout: float) -> None:
        self._store = store
        self._timeout = timeout

    async def redeem(self, credential_id: str | None) -> RedemptionOutcome:
        if not is_well_formed_credential_id(credential_id):
            return self._report(Rejected(RejectionReason.MALFORMED_CREDENTIAL), None)

        credential_id = str(credential_id).strip()

        record = await call_store("get", self._store.get(credential_id), self._timeout)
        if record is None:
            return self._report(
                Rejected(RejectionReason.UNKNOWN_CREDENTIAL), credential_id
            )
        if record.is_redeemed:
            return self._report(
                Rejected(
                    RejectionReason.ALREADY_REDEEMED,
                    record=record,
                    redeemed_at=record.redeemed_at,
                ),
                credential_id,
            )

        updated = await call_store(
            "redeem_if_active",
            self._store.redeem_if_active(credential_id, now_ms()),
            self._timeout,
        )
        if updated is not None:
            return self._report(Accepted(updated), credential_id)

        # Lost the compare-and-set to a concurrent scan
        current = await call_store("get", self._store.get(credential_id), self._timeout)
        if current is None:
            # Deleted by an administrator between our read and write
            return self._report(
                Rejected(RejectionReason.UNKNOWN_CREDENTIAL), credential_id
            )
        return self._report(
            Rejected(
                RejectionReason.ALREADY_REDEEMED,
                record=current,
                redeemed_at=current.redeemed_at,
            ),
            credential_id,
        )

    @staticmethod
    def _report(outcome: RedemptionOutcome, credential_id: str | None) -> RedemptionOutcome:
        REDEMPTION_OUTCOMES.labels(outcome=outcome.outcome).inc()
        level = logging.INFO if isinstance(outcome, Accepted) else logging.WARNING
        logger.log(
            level,
            "Scan %s  credential_id=%s",
            outcome.outcome,
            credential_id or "-",
            extra={"credential_id": credential_id, "outcome": outcome.outcome},
        )
        return outcome
