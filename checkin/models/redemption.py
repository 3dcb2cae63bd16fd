from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from checkin.models.credential import CredentialRecord


class RejectionReason(str, Enum):
    UNKNOWN_CREDENTIAL = "unknown_credential"
    ALREADY_REDEEMED = "already_redeemed"
    MALFORMED_CREDENTIAL = "malformed_credential"


@dataclass(frozen=True, slots=True)
class Accepted:
    """First valid scan: the record now reflects ``is_redeemed=True``."""

    record: CredentialRecord

    @property
    def outcome(self) -> str:
        return "accepted"


@dataclass(frozen=True, slots=True)
class Rejected:
    """Entry refused. For ALREADY_REDEEMED, ``record`` and the prior
    ``redeemed_at`` are populated so the operator can see when it was used."""

    reason: RejectionReason
    record: CredentialRecord | None = None
    redeemed_at: int | None = None

    @property
    def outcome(self) -> str:
        return self.reason.value


RedemptionOutcome = Accepted | Rejected
