from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from checkin.models.credential import CredentialRecord
from checkin.models.guest import GuestIdentity


@dataclass(frozen=True, slots=True)
class DuplicateIdentity:
    """Single registration refused: ``external_id`` is already registered."""

    external_id: str
    field: str = "external_id"


class BulkRejectReason(str, Enum):
    ALREADY_REGISTERED = "already registered"
    DUPLICATE_WITHIN_IMPORT = "duplicate within import"


@dataclass(frozen=True, slots=True)
class RejectedRow:
    identity: GuestIdentity
    reason: BulkRejectReason


@dataclass(frozen=True, slots=True)
class BulkRegistrationResult:
    added: tuple[CredentialRecord, ...] = ()
    rejected: tuple[RejectedRow, ...] = ()
    batch_id: str | None = field(default=None)  # None when nothing was added
