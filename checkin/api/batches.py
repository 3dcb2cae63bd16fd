from __future__ import annotations

from fastapi import APIRouter, HTTPException

from checkin.api.dependencies import ledger
from checkin.api.schemas import BatchOut, CredentialOut

router = APIRouter(prefix="/v1/batches", tags=["batches"])


@router.get("", response_model=list[BatchOut])
async def list_batches() -> list[BatchOut]:
    return [BatchOut.from_entry(b) for b in await ledger.list_batches()]


@router.get("/{batch_id}", response_model=BatchOut)
async def get_batch(batch_id: str) -> BatchOut:
    entry = await ledger.get_batch(batch_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="batch not found")
    return BatchOut.from_entry(entry)


@router.get("/{batch_id}/members", response_model=list[CredentialOut])
async def list_batch_members(batch_id: str) -> list[CredentialOut]:
    if await ledger.get_batch(batch_id) is None:
        raise HTTPException(status_code=404, detail="batch not found")
    return [CredentialOut.from_record(r) for r in await ledger.get_batch_members(batch_id)]
