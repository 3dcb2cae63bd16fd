from __future__ import annotations

from checkin.core.errors import (
    CheckinError,
    DuplicateExternalIdError,
    MalformedPayloadError,
    PartialBatchFailureError,
    StoreUnavailableError,
)


def test_store_unavailable_names_operation() -> None:
    err = StoreUnavailableError("redeem_if_active", "timed out")
    assert isinstance(err, CheckinError)
    assert err.code == "STORE_UNAVAILABLE"
    assert err.operation == "redeem_if_active"
    assert "redeem_if_active" in str(err)
    assert "timed out" in str(err)


def test_partial_batch_failure_carries_counts() -> None:
    err = PartialBatchFailureError(
        "b1", committed_groups=1, total_groups=4, committed_records=399
    )
    assert (err.committed_groups, err.total_groups, err.committed_records) == (1, 4, 399)
    assert "1 of 4" in err.message


def test_duplicate_external_id_lists_ids() -> None:
    err = DuplicateExternalIdError(["A-1", "A-2"])
    assert err.external_ids == ("A-1", "A-2")
    assert "A-1, A-2" in err.message


def test_malformed_payload_code() -> None:
    assert MalformedPayloadError("bad").code == "MALFORMED_PAYLOAD"
