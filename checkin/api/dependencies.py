"""Service wiring: one record store per process, chosen by configuration.

  DATABASE_URL set  → PgRecordStore
  REDIS_URL set     → RedisRecordStore
  neither           → InMemoryRecordStore (dev and tests)

The services hold no state of their own, so module-level singletons are
shared by every router.
"""

from __future__ import annotations

import logging

from checkin.core.config import SETTINGS
from checkin.db.engine import async_session_factory
from checkin.db.redis import redis_pool
from checkin.repos.record_store import InMemoryRecordStore, RecordStore
from checkin.services.ledger import BatchLedger
from checkin.services.redemption import RedemptionAuthority
from checkin.services.registrar import IdentityRegistrar
from checkin.services.reporting import AttendanceReports

logger = logging.getLogger(__name__)

if async_session_factory is not None:
    from checkin.repos.pg_record_store import PgRecordStore

    record_store: RecordStore = PgRecordStore(async_session_factory)
elif redis_pool is not None:
    from checkin.repos.redis_record_store import RedisRecordStore

    record_store = RedisRecordStore(redis_pool)
else:
    record_store = InMemoryRecordStore()

logger.info("Record store backend: %s", SETTINGS.store_backend)

registrar = IdentityRegistrar(
    record_store,
    timeout=SETTINGS.store_timeout_seconds,
    bulk_write_limit=SETTINGS.bulk_write_limit,
)
authority = RedemptionAuthority(record_store, timeout=SETTINGS.store_timeout_seconds)
ledger = BatchLedger(record_store, timeout=SETTINGS.store_timeout_seconds)
reports = AttendanceReports(ledger)
