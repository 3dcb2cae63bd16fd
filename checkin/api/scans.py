"""Door scanning endpoints.

- POST /v1/scans                                 raw QR text from a scanner
- POST /v1/credentials/{credential_id}/redeem    manual entry by credential id

Both always answer 200 with the decision; a refused entry is a normal
outcome, not an HTTP error. Only an unreachable store produces a 503,
which the door operator may retry: a retried scan that already landed
reports already_redeemed.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from checkin.api.dependencies import authority
from checkin.api.schemas import CredentialOut
from checkin.core.config import SETTINGS
from checkin.core.errors import MalformedPayloadError
from checkin.models.redemption import Accepted, RedemptionOutcome, RejectionReason
from checkin.services.payload_codec import decode_payload
from checkin.services.reporting import format_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scans"])


class ScanIn(BaseModel):
    payload: str


class RedemptionOut(BaseModel):
    accepted: bool
    reason: str | None
    message: str
    record: CredentialOut | None
    redeemed_at: int | None


def _to_response(outcome: RedemptionOutcome) -> RedemptionOut:
    if isinstance(outcome, Accepted):
        return RedemptionOut(
            accepted=True,
            reason=None,
            message=f"Welcome, {outcome.record.full_name}",
            record=CredentialOut.from_record(outcome.record),
            redeemed_at=outcome.record.redeemed_at,
        )

    if outcome.reason is RejectionReason.ALREADY_REDEEMED:
        message = "Ticket already used"
        if outcome.redeemed_at is not None:
            message = f"Ticket already used at {format_timestamp(outcome.redeemed_at)}"
    elif outcome.reason is RejectionReason.UNKNOWN_CREDENTIAL:
        message = "Ticket not recognized"
    else:
        message = "Not a valid ticket"

    return RedemptionOut(
        accepted=False,
        reason=outcome.reason.value,
        message=message,
        record=CredentialOut.from_record(outcome.record) if outcome.record else None,
        redeemed_at=outcome.redeemed_at,
    )


@router.post("/v1/scans", response_model=RedemptionOut)
async def scan(body: ScanIn) -> RedemptionOut:
    try:
        credential_id: str | None = decode_payload(
            body.payload, max_version=SETTINGS.qr_schema_version
        )
    except MalformedPayloadError as e:
        logger.info("Unreadable QR payload: %s", e.message)
        credential_id = None
    return _to_response(await authority.redeem(credential_id))


@router.post("/v1/credentials/{credential_id}/redeem", response_model=RedemptionOut)
async def redeem_credential(credential_id: str) -> RedemptionOut:
    return _to_response(await authority.redeem(credential_id))
