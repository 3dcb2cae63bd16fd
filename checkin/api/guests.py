"""Guest registration, lookup and administrative removal.

- POST   /v1/guests                           register one guest
- POST   /v1/guests/bulk                      import many guests as one batch
- GET    /v1/guests?q=&batch_id=              search
- GET    /v1/guests/{credential_id}           one record
- GET    /v1/guests/{credential_id}/payload   the string the guest's QR code encodes
- DELETE /v1/guests/{credential_id}           administrative removal

The bulk endpoint expects rows that an import tool has already mapped
from spreadsheet columns onto full_name / external_id / group.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import BaseModel, Field

from checkin.api.dependencies import ledger, registrar, reports
from checkin.api.schemas import CredentialOut
from checkin.core.config import SETTINGS
from checkin.models.guest import GuestIdentity, GuestValidationError, check_text_field
from checkin.models.registration import DuplicateIdentity
from checkin.services.payload_codec import encode_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/guests", tags=["guests"])


class GuestIn(BaseModel):
    full_name: str
    external_id: str
    group: str


class BulkImportIn(BaseModel):
    label: str
    guests: list[GuestIn] = Field(default_factory=list)


class RejectedRowOut(BaseModel):
    full_name: str
    external_id: str
    group: str
    reason: str


class BulkImportOut(BaseModel):
    batch_id: str | None
    added: list[CredentialOut]
    rejected: list[RejectedRowOut]


class PayloadOut(BaseModel):
    credential_id: str
    payload: str


def _to_identity(guest: GuestIn) -> GuestIdentity:
    return GuestIdentity.new(
        full_name=guest.full_name,
        external_id=guest.external_id,
        group=guest.group,
    )


@router.post("", response_model=CredentialOut, status_code=status.HTTP_201_CREATED)
async def register_guest(payload: GuestIn) -> CredentialOut:
    try:
        identity = _to_identity(payload)
    except GuestValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail={"field": e.field, "message": str(e)},
        ) from None

    result = await registrar.register_single(identity)
    if isinstance(result, DuplicateIdentity):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "field": result.field,
                "external_id": result.external_id,
                "message": f"{result.field} {result.external_id!r} is already registered",
            },
        )
    return CredentialOut.from_record(result)


@router.post("/bulk", response_model=BulkImportOut)
async def import_guests(payload: BulkImportIn) -> BulkImportOut:
    try:
        label = check_text_field("label", payload.label)
    except GuestValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail={"field": e.field, "message": str(e)},
        ) from None

    identities: list[GuestIdentity] = []
    for row, guest in enumerate(payload.guests):
        try:
            identities.append(_to_identity(guest))
        except GuestValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail={"row": row, "field": e.field, "message": str(e)},
            ) from None

    result = await registrar.register_bulk(identities, label)
    return BulkImportOut(
        batch_id=result.batch_id,
        added=[CredentialOut.from_record(r) for r in result.added],
        rejected=[
            RejectedRowOut(
                full_name=row.identity.full_name,
                external_id=row.identity.external_id,
                group=row.identity.group,
                reason=row.reason.value,
            )
            for row in result.rejected
        ],
    )


@router.get("", response_model=list[CredentialOut])
async def search_guests(
    q: str | None = None, batch_id: str | None = None
) -> list[CredentialOut]:
    records = await reports.search_records(q, batch_id)
    return [CredentialOut.from_record(r) for r in records]


async def _get_or_404(credential_id: str):
    record = await ledger.get_record(credential_id)
    if record is None:
        raise HTTPException(status_code=404, detail="guest not found")
    return record


@router.get("/{credential_id}", response_model=CredentialOut)
async def get_guest(credential_id: str) -> CredentialOut:
    return CredentialOut.from_record(await _get_or_404(credential_id))


@router.get("/{credential_id}/payload", response_model=PayloadOut)
async def get_guest_payload(credential_id: str) -> PayloadOut:
    record = await _get_or_404(credential_id)
    return PayloadOut(
        credential_id=record.credential_id,
        payload=encode_payload(record.credential_id, SETTINGS.qr_schema_version),
    )


@router.delete("/{credential_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_guest(credential_id: str) -> Response:
    if not await registrar.delete_record(credential_id):
        raise HTTPException(status_code=404, detail="guest not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
