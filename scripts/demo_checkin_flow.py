"""Demo: register → scan → scan again → bulk import, using FastAPI TestClient.

Run with:
    python scripts/demo_checkin_flow.py

Uses whatever store the environment selects; with no DATABASE_URL or
REDIS_URL that is the in-memory store, so nothing persists.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from checkin.main import app

DOOR = {"X-Station-ID": "demo-door-1"}


def main() -> None:
    client = TestClient(app)

    # ── Step 1: register one guest ──────────────────────────────────
    r = client.post(
        "/v1/guests",
        json={"full_name": "Ada", "external_id": "A-1", "group": "10A"},
    )
    if r.status_code == 409:
        print("1. POST /v1/guests          → 409  (A-1 already registered; rerun on a clean store)")
        return
    guest = r.json()
    credential_id = guest["credential_id"]
    print(f"1. POST /v1/guests          → {r.status_code}  credential_id={credential_id}")

    # ── Step 2: fetch the QR payload ────────────────────────────────
    r = client.get(f"/v1/guests/{credential_id}/payload")
    payload = r.json()["payload"]
    print(f"2. GET  .../payload         → {r.status_code}  {payload}")

    # ── Step 3: first scan ──────────────────────────────────────────
    r = client.post("/v1/scans", json={"payload": payload}, headers=DOOR)
    print(f"3. POST /v1/scans           → {r.status_code}  {r.json()['message']}")

    # ── Step 4: second scan of the same code ────────────────────────
    r = client.post("/v1/scans", json={"payload": payload}, headers=DOOR)
    print(f"4. POST /v1/scans (again)   → {r.status_code}  {r.json()['message']}")

    # ── Step 5: unknown and unreadable codes ────────────────────────
    r = client.post("/v1/credentials/nonexistent-id/redeem", headers=DOOR)
    print(f"5. POST .../redeem unknown  → {r.status_code}  {r.json()['reason']}")
    r = client.post("/v1/scans", json={"payload": "not a ticket"}, headers=DOOR)
    print(f"   POST /v1/scans garbage   → {r.status_code}  {r.json()['reason']}")

    # ── Step 6: bulk import with collisions ─────────────────────────
    r = client.post(
        "/v1/guests/bulk",
        json={
            "label": "class-10.xlsx",
            "guests": [
                {"full_name": "Ada", "external_id": "A-1", "group": "10A"},
                {"full_name": "Bob", "external_id": "A-2", "group": "10B"},
                {"full_name": "Carl", "external_id": "A-1", "group": "10C"},
            ],
        },
    )
    body = r.json()
    print(
        f"6. POST /v1/guests/bulk     → {r.status_code}  "
        f"added={[g['full_name'] for g in body['added']]}  "
        f"rejected={[(g['full_name'], g['reason']) for g in body['rejected']]}"
    )

    # ── Step 7: dashboard ───────────────────────────────────────────
    r = client.get("/v1/reports/attendance")
    summary = r.json()
    print(
        f"7. GET  /v1/reports/attendance → {r.status_code}  "
        f"total={summary['total']} entered={summary['entered']} pending={summary['pending']}"
    )

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
