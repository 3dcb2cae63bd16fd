from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, replace
from uuid import uuid4

from checkin.models.guest import GuestIdentity

_CREDENTIAL_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def now_ms() -> int:
    """Current UTC time as integer epoch milliseconds."""
    return int(datetime.datetime.now(datetime.UTC).timestamp() * 1000)


def new_credential_id() -> str:
    return str(uuid4())


def is_well_formed_credential_id(value: object) -> bool:
    """True for a 1..128 char string of letters, digits, '-' or '_'.

    The store treats credential ids as opaque keys; this only screens out
    input that cannot possibly be one before a store round-trip.
    """
    if not isinstance(value, str):
        return False
    return _CREDENTIAL_ID_RE.match(value.strip()) is not None


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    credential_id: str
    full_name: str
    external_id: str
    group: str
    created_at: int  # epoch ms
    batch_id: str | None = None
    is_redeemed: bool = False
    redeemed_at: int | None = None  # epoch ms, set exactly when is_redeemed

    def __post_init__(self) -> None:
        if self.is_redeemed != (self.redeemed_at is not None):
            raise ValueError("redeemed_at must be set if and only if is_redeemed")

    @staticmethod
    def new(
        identity: GuestIdentity,
        *,
        batch_id: str | None = None,
        created_at: int | None = None,
    ) -> CredentialRecord:
        return CredentialRecord(
            credential_id=new_credential_id(),
            full_name=identity.full_name,
            external_id=identity.external_id,
            group=identity.group,
            created_at=created_at if created_at is not None else now_ms(),
            batch_id=batch_id,
        )

    @property
    def identity(self) -> GuestIdentity:
        return GuestIdentity(
            full_name=self.full_name, external_id=self.external_id, group=self.group
        )

    def redeemed(self, at: int) -> CredentialRecord:
        if self.is_redeemed:
            raise ValueError("credential already redeemed")
        return replace(self, is_redeemed=True, redeemed_at=at)
