"""Dashboard figures and the exportable entry log."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from pydantic import BaseModel

from checkin.api.dependencies import reports
from checkin.api.schemas import CredentialOut

router = APIRouter(prefix="/v1/reports", tags=["reports"])


class AttendanceOut(BaseModel):
    total: int
    entered: int
    pending: int
    recent: list[CredentialOut]


@router.get("/attendance", response_model=AttendanceOut)
async def attendance() -> AttendanceOut:
    summary = await reports.attendance_summary()
    return AttendanceOut(
        total=summary.total,
        entered=summary.entered,
        pending=summary.pending,
        recent=[CredentialOut.from_record(r) for r in summary.recent],
    )


@router.get("/entry-log.csv")
async def entry_log_csv() -> Response:
    return Response(
        content=await reports.entry_log_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="entry-log.csv"'},
    )
