from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol
from uuid import uuid4

from safehire.services.errors import StoreConflictError, StoreNotFoundError

JOBS = "jobs"
APPLICATIONS = "applications"
USERS = "users"
SUPERUSERS = "superusers"

SortDir = Literal["asc", "desc"]
OrderBy = tuple[str, SortDir]
Snapshot = list[dict[str, Any]]


class Subscription:
    """Push stream of full snapshots for one query.

    Snapshots arrive in the store's write-commit order. ``cancel()`` ends the
    iteration; anything already queued is still delivered.
    """

    def __init__(self, on_cancel: Callable[[Subscription], None] | None = None) -> None:
        self._queue: asyncio.Queue[Snapshot | None] = asyncio.Queue()
        self._on_cancel = on_cancel
        self.cancelled = False

    def push(self, snapshot: Snapshot) -> None:
        if self.cancelled:
            return
        self._queue.put_nowait(snapshot)

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._queue.put_nowait(None)
        if self._on_cancel is not None:
            self._on_cancel(self)

    async def next_snapshot(self, timeout: float | None = None) -> Snapshot | None:
        """Return the next snapshot, or None once the stream has ended."""
        if self.cancelled and self._queue.empty():
            return None
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Snapshot:
        snapshot = await self.next_snapshot()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *_: object) -> None:
        self.cancel()


class RecordStore(Protocol):
    async def create(self, collection: str, record: dict[str, Any], *, record_id: str | None = None) -> str: ...

    async def get(self, collection: str, record_id: str) -> dict[str, Any]: ...

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def delete(self, collection: str, record_id: str) -> None: ...

    async def list(
        self,
        collection: str,
        *,
        filters: dict[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> Snapshot: ...

    async def subscribe(
        self,
        collection: str,
        *,
        filters: dict[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> Subscription: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class _Watch:
    collection: str
    filters: dict[str, Any]
    order_by: OrderBy | None
    subscription: Subscription


class InMemoryRecordStore:
    """Process-local record store with push subscriptions."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._watches: list[_Watch] = []

    async def close(self) -> None:
        for watch in list(self._watches):
            watch.subscription.cancel()

    async def create(self, collection: str, record: dict[str, Any], *, record_id: str | None = None) -> str:
        new_id = record_id or str(uuid4())
        records = self._collections[collection]
        if new_id in records:
            raise StoreConflictError(f"{collection} record already exists: {new_id}")
        data = copy.deepcopy(record)
        data.pop("id", None)
        records[new_id] = data
        self._publish(collection)
        return new_id

    async def get(self, collection: str, record_id: str) -> dict[str, Any]:
        data = self._collections[collection].get(record_id)
        if data is None:
            raise StoreNotFoundError(f"{collection} record not found: {record_id}")
        return _with_id(record_id, data)

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        data = self._collections[collection].get(record_id)
        if data is None:
            raise StoreNotFoundError(f"{collection} record not found: {record_id}")
        patch = copy.deepcopy(fields)
        patch.pop("id", None)
        data.update(patch)
        self._publish(collection)
        return _with_id(record_id, data)

    async def delete(self, collection: str, record_id: str) -> None:
        if self._collections[collection].pop(record_id, None) is None:
            raise StoreNotFoundError(f"{collection} record not found: {record_id}")
        self._publish(collection)

    async def list(
        self,
        collection: str,
        *,
        filters: dict[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> Snapshot:
        return self._snapshot(collection, filters or {}, order_by)

    async def subscribe(
        self,
        collection: str,
        *,
        filters: dict[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> Subscription:
        subscription = Subscription(on_cancel=self._unwatch)
        watch = _Watch(collection=collection, filters=dict(filters or {}), order_by=order_by, subscription=subscription)
        self._watches.append(watch)
        subscription.push(self._snapshot(collection, watch.filters, order_by))
        return subscription

    def _unwatch(self, subscription: Subscription) -> None:
        self._watches = [watch for watch in self._watches if watch.subscription is not subscription]

    def _publish(self, collection: str) -> None:
        for watch in self._watches:
            if watch.collection == collection:
                watch.subscription.push(self._snapshot(collection, watch.filters, watch.order_by))

    def _snapshot(self, collection: str, filters: dict[str, Any], order_by: OrderBy | None) -> Snapshot:
        rows = [
            _with_id(record_id, data)
            for record_id, data in self._collections[collection].items()
            if matches_filters(data, filters)
        ]
        return sort_records(rows, order_by)


def matches_filters(record: dict[str, Any], filters: dict[str, Any]) -> bool:
    return all(record.get(field) == value for field, value in filters.items())


def sort_records(rows: Snapshot, order_by: OrderBy | None) -> Snapshot:
    if order_by is None:
        return rows
    field, direction = order_by
    present = [row for row in rows if row.get(field) is not None]
    missing = [row for row in rows if row.get(field) is None]
    present.sort(key=lambda row: row[field], reverse=direction == "desc")
    return present + missing


def _with_id(record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"id": record_id, **copy.deepcopy(data)}
