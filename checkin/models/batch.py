from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


def new_batch_id() -> str:
    return str(uuid4())


@dataclass(frozen=True, slots=True)
class BatchLedgerEntry:
    """Summary of one bulk import. Written once, in the import's last write group."""

    batch_id: str
    label: str
    created_at: int  # epoch ms
    member_count: int
