"""Redis implementation of RecordStore.

KEY LAYOUT (all under one prefix, default "checkin:")
------------------------------------------------------
  cred:{credential_id}          hash     one credential record
  ext:{external_id}             string   external id → credential id
  creds                         set      every credential id
  batch:{batch_id}              hash     ledger entry
  batch:{batch_id}:members      set      credential ids imported in that batch
  batches                       set      every batch id

WHY LUA SCRIPTS
----------------
Registration and redemption are read-check-write sequences.  Issued as
separate commands from Python, two scanners could both read
is_redeemed=0 and both write 1.  Redis runs a Lua script to completion
before serving any other command, so the check and the write happen as
one step on the server.

The write script derives keys from ARGV instead of declaring them all
in KEYS (a group can hold hundreds of records).  That is fine on a
single Redis node; Redis Cluster would need hash-tagged keys.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from checkin.core.errors import (
    DuplicateCredentialIdError,
    DuplicateExternalIdError,
    StoreUnavailableError,
)
from checkin.models.batch import BatchLedgerEntry
from checkin.models.credential import CredentialRecord

# ARGV[1] = key prefix, ARGV[2] = JSON list of records, ARGV[3] = JSON ledger or ""
# Returns {1, {}, {}} on success, or {0, {taken credential ids...},
# {conflicting external ids...}} with nothing written.
_WRITE_GROUP_LUA = """
local prefix = ARGV[1]
local records = cjson.decode(ARGV[2])
local taken = {}
local conflicts = {}
for _, r in ipairs(records) do
    if redis.call('EXISTS', prefix .. 'cred:' .. r.credential_id) == 1 then
        table.insert(taken, r.credential_id)
    end
    if redis.call('EXISTS', prefix .. 'ext:' .. r.external_id) == 1 then
        table.insert(conflicts, r.external_id)
    end
end
if #taken > 0 or #conflicts > 0 then
    return {0, taken, conflicts}
end
for _, r in ipairs(records) do
    redis.call('HSET', prefix .. 'cred:' .. r.credential_id,
        'credential_id', r.credential_id,
        'full_name', r.full_name,
        'external_id', r.external_id,
        'group', r.group,
        'created_at', r.created_at,
        'batch_id', r.batch_id,
        'is_redeemed', r.is_redeemed,
        'redeemed_at', r.redeemed_at)
    redis.call('SET', prefix .. 'ext:' .. r.external_id, r.credential_id)
    redis.call('SADD', prefix .. 'creds', r.credential_id)
    if r.batch_id ~= '' then
        redis.call('SADD', prefix .. 'batch:' .. r.batch_id .. ':members', r.credential_id)
    end
end
if ARGV[3] ~= '' then
    local b = cjson.decode(ARGV[3])
    redis.call('HSET', prefix .. 'batch:' .. b.batch_id,
        'batch_id', b.batch_id,
        'label', b.label,
        'created_at', b.created_at,
        'member_count', b.member_count)
    redis.call('SADD', prefix .. 'batches', b.batch_id)
end
return {1, {}, {}}
"""

# KEYS[1] = credential hash, ARGV[1] = redeemed_at
# Returns the updated hash as a flat list, or nil when absent/already redeemed.
_REDEEM_LUA = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return nil
end
if redis.call('HGET', KEYS[1], 'is_redeemed') == '1' then
    return nil
end
redis.call('HSET', KEYS[1], 'is_redeemed', '1', 'redeemed_at', ARGV[1])
return redis.call('HGETALL', KEYS[1])
"""

# KEYS[1] = credential hash, ARGV[1] = key prefix
_DELETE_LUA = """
local fields = redis.call('HMGET', KEYS[1], 'credential_id', 'external_id', 'batch_id')
if not fields[1] then
    return 0
end
local prefix = ARGV[1]
redis.call('DEL', KEYS[1])
redis.call('DEL', prefix .. 'ext:' .. fields[2])
redis.call('SREM', prefix .. 'creds', fields[1])
if fields[3] and fields[3] ~= '' then
    redis.call('SREM', prefix .. 'batch:' .. fields[3] .. ':members', fields[1])
end
return 1
"""

_SCAN_COUNT = 500


class RedisRecordStore:
    """Redis-backed store, shared by every API instance and door."""

    def __init__(self, redis_client, prefix: str = "checkin:") -> None:
        self._redis = redis_client
        self._prefix = prefix
        self._write_group_script = redis_client.register_script(_WRITE_GROUP_LUA)
        self._redeem_script = redis_client.register_script(_REDEEM_LUA)
        self._delete_script = redis_client.register_script(_DELETE_LUA)

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            raise StoreUnavailableError(operation, str(e)) from e

    def _cred_key(self, credential_id: str) -> str:
        return f"{self._prefix}cred:{credential_id}"

    async def get(self, credential_id: str) -> CredentialRecord | None:
        async with self._guard("get"):
            data = await self._redis.hgetall(self._cred_key(credential_id))
        return _hash_to_record(data) if data else None

    async def find_by_external_id(self, external_id: str) -> CredentialRecord | None:
        async with self._guard("find_by_external_id"):
            credential_id = await self._redis.get(f"{self._prefix}ext:{external_id}")
            if credential_id is None:
                return None
            data = await self._redis.hgetall(self._cred_key(credential_id))
        return _hash_to_record(data) if data else None

    async def list_external_ids(self) -> set[str]:
        return {r.external_id for r in await self._scan_records("list_external_ids")}

    async def create(self, record: CredentialRecord) -> None:
        await self._write("create", [record], None)

    async def redeem_if_active(
        self, credential_id: str, redeemed_at: int
    ) -> CredentialRecord | None:
        async with self._guard("redeem_if_active"):
            flat = await self._redeem_script(
                keys=[self._cred_key(credential_id)], args=[str(redeemed_at)]
            )
        if not flat:
            return None
        return _hash_to_record(dict(zip(flat[::2], flat[1::2], strict=True)))

    async def write_group(
        self,
        records: Sequence[CredentialRecord],
        ledger_entry: BatchLedgerEntry | None = None,
    ) -> None:
        await self._write("write_group", records, ledger_entry)

    async def _write(
        self,
        operation: str,
        records: Sequence[CredentialRecord],
        ledger_entry: BatchLedgerEntry | None,
    ) -> None:
        ledger_json = ""
        if ledger_entry is not None:
            ledger_json = json.dumps(
                {
                    "batch_id": ledger_entry.batch_id,
                    "label": ledger_entry.label,
                    "created_at": str(ledger_entry.created_at),
                    "member_count": str(ledger_entry.member_count),
                }
            )
        async with self._guard(operation):
            ok, taken, conflicts = await self._write_group_script(
                keys=[],
                args=[
                    self._prefix,
                    json.dumps([_record_to_hash(r) for r in records]),
                    ledger_json,
                ],
            )
        if taken:
            raise DuplicateCredentialIdError(list(taken))
        if not ok:
            raise DuplicateExternalIdError(list(conflicts))

    async def list_all(self) -> list[CredentialRecord]:
        return await self._scan_records("list_all")

    async def list_by_batch(self, batch_id: str) -> list[CredentialRecord]:
        return await self._scan_records(
            "list_by_batch", f"{self._prefix}batch:{batch_id}:members"
        )

    async def list_batches(self) -> list[BatchLedgerEntry]:
        async with self._guard("list_batches"):
            batch_ids = await self._redis.smembers(f"{self._prefix}batches")
            async with self._redis.pipeline(transaction=False) as pipe:
                for batch_id in batch_ids:
                    pipe.hgetall(f"{self._prefix}batch:{batch_id}")
                rows = await pipe.execute()
        return [_hash_to_batch(row) for row in rows if row]

    async def get_batch(self, batch_id: str) -> BatchLedgerEntry | None:
        async with self._guard("get_batch"):
            data = await self._redis.hgetall(f"{self._prefix}batch:{batch_id}")
        return _hash_to_batch(data) if data else None

    async def delete(self, credential_id: str) -> bool:
        async with self._guard("delete"):
            removed = await self._delete_script(
                keys=[self._cred_key(credential_id)], args=[self._prefix]
            )
        return bool(removed)

    async def ping(self) -> bool:
        try:
            async with self._guard("ping"):
                await self._redis.ping()
        except StoreUnavailableError:
            return False
        return True

    async def _scan_records(
        self, operation: str, set_key: str | None = None
    ) -> list[CredentialRecord]:
        """Read every record whose id is in ``set_key``, in pipelined chunks."""
        set_key = set_key or f"{self._prefix}creds"
        records: list[CredentialRecord] = []
        async with self._guard(operation):
            chunk: list[str] = []
            async for credential_id in self._redis.sscan_iter(set_key, count=_SCAN_COUNT):
                chunk.append(credential_id)
                if len(chunk) >= _SCAN_COUNT:
                    records.extend(await self._fetch(chunk))
                    chunk = []
            if chunk:
                records.extend(await self._fetch(chunk))
        return records

    async def _fetch(self, credential_ids: list[str]) -> list[CredentialRecord]:
        async with self._redis.pipeline(transaction=False) as pipe:
            for credential_id in credential_ids:
                pipe.hgetall(self._cred_key(credential_id))
            rows = await pipe.execute()
        # A record deleted between SSCAN and HGETALL comes back empty
        return [_hash_to_record(row) for row in rows if row]


def _record_to_hash(record: CredentialRecord) -> dict[str, str]:
    return {
        "credential_id": record.credential_id,
        "full_name": record.full_name,
        "external_id": record.external_id,
        "group": record.group,
        "created_at": str(record.created_at),
        "batch_id": record.batch_id or "",
        "is_redeemed": "1" if record.is_redeemed else "0",
        "redeemed_at": "" if record.redeemed_at is None else str(record.redeemed_at),
    }


def _hash_to_record(data: dict[str, str]) -> CredentialRecord:
    redeemed_at = data.get("redeemed_at") or None
    return CredentialRecord(
        credential_id=data["credential_id"],
        full_name=data["full_name"],
        external_id=data["external_id"],
        group=data["group"],
        created_at=int(data["created_at"]),
        batch_id=data.get("batch_id") or None,
        is_redeemed=data.get("is_redeemed") == "1",
        redeemed_at=int(redeemed_at) if redeemed_at is not None else None,
    )


def _hash_to_batch(data: dict[str, str]) -> BatchLedgerEntry:
    return BatchLedgerEntry(
        batch_id=data["batch_id"],
        label=data["label"],
        created_at=int(data["created_at"]),
        member_count=int(data["member_count"]),
    )
