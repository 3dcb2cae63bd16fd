"""Exception types for infrastructure failures.

Business outcomes (duplicate registration, rejected scans, rejected
import rows) are returned as values from the services and never appear
here. These exceptions cover what the caller cannot render as a normal
result: the store is unreachable, a multi-group import stopped halfway,
or a scanned payload could not be decoded at all.
"""

from __future__ import annotations


class CheckinError(Exception):
    """Base class; ``code`` is stable for API clients."""

    code = "CHECKIN_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StoreUnavailableError(CheckinError):
    """The record store did not answer, or answered with a transport error.

    Nothing is implied about whether a write that hit this error committed.
    """

    code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str = "") -> None:
        message = f"Record store unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.operation = operation
        self.detail = detail


class PartialBatchFailureError(CheckinError):
    """A bulk import committed some write groups and then lost the store."""

    code = "PARTIAL_BATCH_FAILURE"

    def __init__(
        self,
        batch_id: str,
        *,
        committed_groups: int,
        total_groups: int,
        committed_records: int,
    ) -> None:
        super().__init__(
            f"Bulk import {batch_id} stopped after {committed_groups} of "
            f"{total_groups} write groups; {committed_records} records are "
            "persisted without a batch ledger entry"
        )
        self.batch_id = batch_id
        self.committed_groups = committed_groups
        self.total_groups = total_groups
        self.committed_records = committed_records


class DuplicateExternalIdError(CheckinError):
    """Raised by a store when a conditional create finds a taken external id.

    The write that raised it committed nothing.
    """

    code = "DUPLICATE_EXTERNAL_ID"

    def __init__(self, external_ids: list[str] | tuple[str, ...]) -> None:
        ids = tuple(external_ids)
        super().__init__(f"External id already registered: {', '.join(ids)}")
        self.external_ids = ids


class MalformedPayloadError(CheckinError):
    code = "MALFORMED_PAYLOAD"


class DuplicateCredentialIdError(CheckinError):
    """Raised by a store when a record's credential id is already stored.

    Generated ids are UUID4, so this means a collision or a caller that
    built a record by hand. Like DuplicateExternalIdError, the write that
    raised it committed nothing.
    """

    code = "DUPLICATE_CREDENTIAL_ID"

    def __init__(self, credential_ids: list[str] | tuple[str, ...]) -> None:
        ids = tuple(credential_ids)
        super().__init__(f"Credential id already stored: {', '.join(ids)}")
        self.credential_ids = ids
