from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from checkin.api.dependencies import record_store, registrar
from checkin.core.errors import (
    DuplicateCredentialIdError,
    PartialBatchFailureError,
    StoreUnavailableError,
)


async def _unreachable_ping() -> bool:
    return False


async def _unreachable_get(credential_id: str):
    raise StoreUnavailableError("get", "connection refused")


def test_health_reports_backend(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "backend": "memory",
        "checks": {"store": "ok"},
    }


def test_ready_returns_200(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200


def test_health_degraded_when_store_unreachable(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(record_store, "ping", _unreachable_ping)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"]["store"] == "degraded"


def test_ready_503_when_store_unreachable(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(record_store, "ping", _unreachable_ping)
    assert client.get("/ready").status_code == 503


def test_store_unavailable_maps_to_503(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(record_store, "get", _unreachable_get)
    resp = client.post("/v1/credentials/some-credential/redeem")
    assert resp.status_code == 503
    body = resp.json()
    assert body["code"] == "STORE_UNAVAILABLE"
    assert "get" in body["message"]


def test_partial_batch_failure_maps_to_500(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _interrupted(identities, label):
        raise PartialBatchFailureError(
            "batch-1", committed_groups=2, total_groups=3, committed_records=798
        )

    monkeypatch.setattr(registrar, "register_bulk", _interrupted)
    resp = client.post(
        "/v1/guests/bulk",
        json={"label": "big", "guests": [{"full_name": "A", "external_id": "A", "group": "G"}]},
    )
    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "PARTIAL_BATCH_FAILURE"
    assert body["batch_id"] == "batch-1"
    assert body["committed_groups"] == 2
    assert body["total_groups"] == 3
    assert body["committed_records"] == 798


def test_taken_credential_id_maps_to_409(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _taken(record):
        raise DuplicateCredentialIdError([record.credential_id])

    monkeypatch.setattr(record_store, "create", _taken)
    resp = client.post(
        "/v1/guests", json={"full_name": "Ada", "external_id": "A-1", "group": "10A"}
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "DUPLICATE_CREDENTIAL_ID"
