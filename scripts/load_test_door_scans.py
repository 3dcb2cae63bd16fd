#!/usr/bin/env python3
"""Load test: many doors scan the same ticket at the same moment.

RUN:  python scripts/load_test_door_scans.py

Registers one guest, then fires CONCURRENT_SCANS redeem requests for
that credential at once and prints how many were accepted.  Exactly one
should be.

Prerequisites:
  - The API must be running: uvicorn checkin.main:app --port 8000
  - Point it at Redis or PostgreSQL to exercise the real store primitives

For real load testing, use tools like locust, k6, or wrk.
"""

from __future__ import annotations

import asyncio
import sys
import time
import uuid

import httpx

BASE_URL = "http://localhost:8000"
CONCURRENT_SCANS = 200


async def main() -> None:
    print("Concurrent Door Scan Test")
    print("=" * 50)

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=30) as client:
        external_id = f"LOAD-{uuid.uuid4().hex[:8]}"
        resp = await client.post(
            "/v1/guests",
            json={"full_name": "Load Test", "external_id": external_id, "group": "QA"},
        )
        if resp.status_code != 201:
            print(f"Registration failed: {resp.status_code} {resp.text}")
            sys.exit(1)
        credential_id = resp.json()["credential_id"]
        print(f"Registered {external_id} → {credential_id}")
        print(f"Sending {CONCURRENT_SCANS} concurrent scans...")

        start = time.monotonic()
        responses = await asyncio.gather(
            *(
                client.post(
                    f"/v1/credentials/{credential_id}/redeem",
                    headers={"X-Station-ID": f"door-{i % 8}"},
                )
                for i in range(CONCURRENT_SCANS)
            )
        )
        elapsed = time.monotonic() - start

    outcomes: dict[str, int] = {}
    for r in responses:
        if r.status_code != 200:
            key = f"http_{r.status_code}"
        else:
            body = r.json()
            key = "accepted" if body["accepted"] else body["reason"]
        outcomes[key] = outcomes.get(key, 0) + 1

    print()
    print(f"Results after {CONCURRENT_SCANS} scans ({elapsed:.2f}s):")
    print("─" * 40)
    for key, count in sorted(outcomes.items()):
        print(f"  {key:<20} {count:>5}")
    print()

    if outcomes.get("accepted", 0) == 1:
        print("Exactly one scan was accepted.")
    else:
        print(f"WARNING: {outcomes.get('accepted', 0)} scans were accepted.")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
