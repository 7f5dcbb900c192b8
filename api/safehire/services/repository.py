from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any
from uuid import uuid4

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from safehire.core.config import get_settings
from safehire.services.errors import (
    StoreConflictError,
    StoreNotFoundError,
    StorePermissionDeniedError,
    StoreUnavailableError,
)
from safehire.services.store import InMemoryRecordStore, OrderBy, RecordStore, Snapshot, Subscription

logger = logging.getLogger(__name__)

NOTIFY_CHANNEL = "records_changed"
_FIELD_RE = re.compile(r"^[a-z_][a-z0-9_]*$")

SCHEMA_SQL = """
create table if not exists records (
  collection text not null,
  id text not null,
  data jsonb not null,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now(),
  primary key (collection, id)
)
"""


class PostgresRecordStore:
    """Record store over a single jsonb ``records`` table.

    Writes emit ``pg_notify`` on commit; subscribers hold a dedicated
    connection that LISTENs and re-reads the full snapshot per notification.
    """

    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None
        self._listeners: dict[Subscription, tuple[asyncio.Task[None], asyncpg.Connection, Any]] = {}
        self._cleanup_tasks: set[asyncio.Task[None]] = set()

    async def close(self) -> None:
        for subscription in list(self._listeners):
            subscription.cancel()
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def create(self, collection: str, record: dict[str, Any], *, record_id: str | None = None) -> str:
        new_id = record_id or str(uuid4())
        data = {key: value for key, value in record.items() if key != "id"}
        async with self._transaction() as conn:
            try:
                await conn.execute(
                    """
                    insert into records (collection, id, data)
                    values ($1, $2, $3::jsonb)
                    """,
                    collection,
                    new_id,
                    json.dumps(data, default=str),
                )
            except pg_exc.UniqueViolationError as exc:
                raise StoreConflictError(f"{collection} record already exists: {new_id}") from exc
            await conn.execute("select pg_notify($1, $2)", NOTIFY_CHANNEL, collection)
        return new_id

    async def get(self, collection: str, record_id: str) -> dict[str, Any]:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                select id, data
                from records
                where collection = $1 and id = $2
                """,
                collection,
                record_id,
            )
        if not row:
            raise StoreNotFoundError(f"{collection} record not found: {record_id}")
        return self._row_to_dict(row)

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        patch = {key: value for key, value in fields.items() if key != "id"}
        async with self._transaction() as conn:
            row = await conn.fetchrow(
                """
                update records
                set
                  data = data || $3::jsonb,
                  updated_at = now()
                where collection = $1 and id = $2
                returning id, data
                """,
                collection,
                record_id,
                json.dumps(patch, default=str),
            )
            if not row:
                raise StoreNotFoundError(f"{collection} record not found: {record_id}")
            await conn.execute("select pg_notify($1, $2)", NOTIFY_CHANNEL, collection)
        return self._row_to_dict(row)

    async def delete(self, collection: str, record_id: str) -> None:
        async with self._transaction() as conn:
            deleted = await conn.fetchval(
                """
                delete from records
                where collection = $1 and id = $2
                returning id
                """,
                collection,
                record_id,
            )
            if deleted is None:
                raise StoreNotFoundError(f"{collection} record not found: {record_id}")
            await conn.execute("select pg_notify($1, $2)", NOTIFY_CHANNEL, collection)

    async def list(
        self,
        collection: str,
        *,
        filters: dict[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> Snapshot:
        order_sql = self._resolve_order_sql(order_by)
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                select id, data
                from records
                where collection = $1
                  and data @> $2::jsonb
                order by {order_sql}
                """,
                collection,
                json.dumps(filters or {}, default=str),
            )
        return [self._row_to_dict(row) for row in rows]

    async def subscribe(
        self,
        collection: str,
        *,
        filters: dict[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> Subscription:
        pool = await self._get_pool()
        try:
            conn = await pool.acquire()
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise StoreUnavailableError("database unavailable") from exc

        notifications: asyncio.Queue[None] = asyncio.Queue()

        def on_notify(_conn: Any, _pid: int, _channel: str, payload: str) -> None:
            if payload == collection:
                notifications.put_nowait(None)

        try:
            await conn.add_listener(NOTIFY_CHANNEL, on_notify)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            await pool.release(conn)
            raise StoreUnavailableError("database unavailable") from exc
        subscription = Subscription(on_cancel=self._release_listener)
        query_filters = dict(filters or {})

        async def pump() -> None:
            try:
                subscription.push(await self.list(collection, filters=query_filters, order_by=order_by))
                while True:
                    await notifications.get()
                    # Collapse bursts: one re-read covers every commit seen so far.
                    while not notifications.empty():
                        notifications.get_nowait()
                    subscription.push(await self.list(collection, filters=query_filters, order_by=order_by))
            except Exception as exc:
                logger.warning("subscription ended collection=%s error=%s", collection, exc)
                subscription.cancel()

        task = asyncio.get_running_loop().create_task(pump())
        self._listeners[subscription] = (task, conn, on_notify)
        return subscription

    def _release_listener(self, subscription: Subscription) -> None:
        entry = self._listeners.pop(subscription, None)
        if entry is None:
            return
        task, conn, callback = entry
        if task is not asyncio.current_task():
            task.cancel()

        async def release() -> None:
            try:
                await conn.remove_listener(NOTIFY_CHANNEL, callback)
            finally:
                if self._pool is not None:
                    await self._pool.release(conn)

        cleanup = asyncio.get_running_loop().create_task(release())
        self._cleanup_tasks.add(cleanup)
        cleanup.add_done_callback(self._cleanup_tasks.discard)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                yield conn
        except pg_exc.InsufficientPrivilegeError as exc:
            raise StorePermissionDeniedError("missing permissions: check the record store access rules") from exc
        except (OSError, asyncio.TimeoutError, asyncpg.InterfaceError, asyncpg.PostgresError) as exc:
            raise StoreUnavailableError("database unavailable") from exc

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[asyncpg.Connection]:
        async with self._connection() as conn:
            async with conn.transaction():
                yield conn

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise StoreUnavailableError("SH_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            await self._pool.execute(SCHEMA_SQL)
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise StoreUnavailableError("database unavailable") from exc

    @staticmethod
    def _resolve_order_sql(order_by: OrderBy | None) -> str:
        if order_by is None:
            return "created_at asc"
        field, direction = order_by
        if not _FIELD_RE.match(field):
            raise ValueError(f"invalid order_by field: {field}")
        sql_direction = "desc" if direction == "desc" else "asc"
        return f"data->'{field}' {sql_direction} nulls last"

    @staticmethod
    def _row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        data = row["data"]
        if isinstance(data, str):
            data = json.loads(data)
        return {"id": row["id"], **(data or {})}


@lru_cache
def get_store() -> RecordStore:
    settings = get_settings()
    if settings.store_backend == "postgres":
        return PostgresRecordStore(
            database_url=settings.database_url,
            min_pool_size=settings.database_pool_min_size,
            max_pool_size=settings.database_pool_max_size,
        )
    return InMemoryRecordStore()
