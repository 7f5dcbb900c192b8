from __future__ import annotations

import asyncio
import os
from collections.abc import Coroutine
from typing import Any, TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest
from asyncpg import exceptions as pg_exc  # type: ignore[import-untyped]

from safehire.core.config import get_settings
from safehire.services.errors import (
    StoreConflictError,
    StoreNotFoundError,
    StorePermissionDeniedError,
    StoreUnavailableError,
)
from safehire.services.repository import SCHEMA_SQL, PostgresRecordStore, get_store
from safehire.services.store import JOBS, InMemoryRecordStore

T = TypeVar("T")


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def test_order_sql_rejects_unsafe_fields() -> None:
    assert PostgresRecordStore._resolve_order_sql(("created_at", "desc")) == "data->'created_at' desc nulls last"
    assert PostgresRecordStore._resolve_order_sql(None) == "created_at asc"
    with pytest.raises(ValueError):
        PostgresRecordStore._resolve_order_sql(("created_at'; drop table records; --", "asc"))


def test_missing_database_url_is_unavailable() -> None:
    store = PostgresRecordStore(database_url=None, min_pool_size=1, max_pool_size=1)

    with pytest.raises(StoreUnavailableError):
        _run(store.get(JOBS, "job-1"))


def test_store_backend_selection(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SH_STORE_BACKEND", raising=False)
    get_settings.cache_clear()
    get_store.cache_clear()
    assert isinstance(get_store(), InMemoryRecordStore)

    monkeypatch.setenv("SH_STORE_BACKEND", "postgres")
    monkeypatch.setenv("SH_DATABASE_URL", "postgresql://localhost/safehire")
    get_settings.cache_clear()
    get_store.cache_clear()
    store = get_store()
    assert isinstance(store, PostgresRecordStore)
    assert store.database_url == "postgresql://localhost/safehire"

    get_store.cache_clear()
    get_settings.cache_clear()



class FakeConnection:
    def __init__(self, *, fetch_error: BaseException | None = None, listen_error: BaseException | None = None) -> None:
        self.fetch_error = fetch_error
        self.listen_error = listen_error
        self.listeners: list[Any] = []

    async def fetch(self, *_: Any) -> list[Any]:
        if self.fetch_error is not None:
            raise self.fetch_error
        return []

    async def add_listener(self, _channel: str, callback: Any) -> None:
        if self.listen_error is not None:
            raise self.listen_error
        self.listeners.append(callback)

    async def remove_listener(self, _channel: str, callback: Any) -> None:
        self.listeners.remove(callback)


class FakeAcquire:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn

    def __await__(self):
        async def _conn() -> FakeConnection:
            return self.conn

        return _conn().__await__()

    async def __aenter__(self) -> FakeConnection:
        return self.conn

    async def __aexit__(self, *_: object) -> None:
        return None


class FakePool:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.released: list[FakeConnection] = []

    def acquire(self) -> FakeAcquire:
        return FakeAcquire(self.conn)

    async def release(self, conn: FakeConnection) -> None:
        self.released.append(conn)

    async def close(self) -> None:
        return None


def _store_with(conn: FakeConnection) -> tuple[PostgresRecordStore, FakePool]:
    store = PostgresRecordStore(database_url="postgresql://fake/safehire", min_pool_size=1, max_pool_size=1)
    pool = FakePool(conn)
    store._pool = pool  # type: ignore[assignment]
    return store, pool


@pytest.mark.parametrize(
    "error",
    [
        asyncio.TimeoutError(),
        pg_exc.QueryCanceledError("canceling statement due to statement timeout"),
        asyncpg.InterfaceError("connection is closed"),
    ],
)
def test_query_failures_map_to_unavailable(error: BaseException) -> None:
    store, _ = _store_with(FakeConnection(fetch_error=error))

    with pytest.raises(StoreUnavailableError):
        _run(store.list(JOBS))


def test_insufficient_privilege_maps_to_permission_denied() -> None:
    store, _ = _store_with(FakeConnection(fetch_error=pg_exc.InsufficientPrivilegeError("permission denied")))

    with pytest.raises(StorePermissionDeniedError):
        _run(store.list(JOBS))


def test_subscription_ends_when_reread_fails() -> None:
    async def scenario() -> tuple[Any, FakePool, FakeConnection]:
        conn = FakeConnection(fetch_error=RuntimeError("unexpected row shape"))
        store, pool = _store_with(conn)
        subscription = await store.subscribe(JOBS)
        snapshot = await subscription.next_snapshot(timeout=1)
        await store.close()
        return snapshot, pool, conn

    snapshot, pool, conn = _run(scenario())

    assert snapshot is None
    assert pool.released == [conn]
    assert conn.listeners == []


def test_failed_listen_releases_connection() -> None:
    conn = FakeConnection(listen_error=OSError("connection reset"))
    store, pool = _store_with(conn)

    with pytest.raises(StoreUnavailableError):
        _run(store.subscribe(JOBS))
    assert pool.released == [conn]

@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.getenv("SH_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("integration tests require SH_DATABASE_URL or DATABASE_URL")
    return url


async def _truncate_records(database_url: str) -> None:
    conn = await asyncpg.connect(database_url)
    try:
        await conn.execute(SCHEMA_SQL)
        await conn.execute("delete from records where collection in ('jobs', 'applications', 'users', 'superusers')")
    finally:
        await conn.close()


def test_postgres_crud_and_subscription(database_url: str) -> None:
    async def scenario() -> None:
        await _truncate_records(database_url)
        store = PostgresRecordStore(database_url=database_url, min_pool_size=1, max_pool_size=4)
        try:
            await store.create(JOBS, {"status": "approved", "created_at": "2024-01-01"}, record_id="a")
            with pytest.raises(StoreConflictError):
                await store.create(JOBS, {"status": "approved"}, record_id="a")

            subscription = await store.subscribe(JOBS, filters={"status": "approved"}, order_by=("created_at", "desc"))
            initial = await subscription.next_snapshot(timeout=5)
            assert [row["id"] for row in initial or []] == ["a"]

            await store.create(JOBS, {"status": "approved", "created_at": "2024-02-01"}, record_id="b")
            after_create = await subscription.next_snapshot(timeout=5)
            assert [row["id"] for row in after_create or []] == ["b", "a"]

            updated = await store.update(JOBS, "a", {"status": "rejected"})
            assert updated["status"] == "rejected"
            after_update = await subscription.next_snapshot(timeout=5)
            assert [row["id"] for row in after_update or []] == ["b"]

            subscription.cancel()
            await store.delete(JOBS, "b")
            with pytest.raises(StoreNotFoundError):
                await store.get(JOBS, "b")
        finally:
            await store.close()

    _run(scenario())
