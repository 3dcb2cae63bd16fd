from __future__ import annotations

import os
import sys
from pathlib import Path

# Tests run against the in-memory store; live backends have their own
# integration tests driven by TEST_DATABASE_URL / TEST_REDIS_URL.
os.environ.pop("DATABASE_URL", None)
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

# Ensure repo root is on sys.path so `import checkin` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from checkin.api.dependencies import record_store  # noqa: E402
from checkin.main import app  # noqa: E402
from checkin.repos.record_store import InMemoryRecordStore  # noqa: E402


@pytest.fixture(autouse=True)
def reset_record_store() -> None:
    """Clear the app's shared store between tests."""
    if isinstance(record_store, InMemoryRecordStore):
        record_store.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def store() -> InMemoryRecordStore:
    """A private store for service-level tests."""
    return InMemoryRecordStore()
