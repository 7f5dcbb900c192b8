import asyncio
from typing import Any

from safehire.core.auth import Principal, Role, Session
from safehire.core.roles import resolve_role, seed_superusers
from safehire.services.errors import StoreUnavailableError
from safehire.services.store import SUPERUSERS, USERS, InMemoryRecordStore


class UnavailableStore(InMemoryRecordStore):
    async def get(self, collection: str, record_id: str) -> dict[str, Any]:
        raise StoreUnavailableError("role store offline")


def test_missing_principal_is_guest() -> None:
    session = asyncio.run(resolve_role(None, InMemoryRecordStore()))

    assert session.signed_in is False
    assert session.effective_role is Role.GUEST


def test_stored_role_is_resolved() -> None:
    async def scenario() -> Session:
        store = InMemoryRecordStore()
        await store.create(USERS, {"role": "employer"}, record_id="user-1")
        return await resolve_role(Principal(subject="user-1"), store)

    session = asyncio.run(scenario())

    assert session.signed_in is True
    assert session.effective_role is Role.EMPLOYER


def test_missing_role_record_defaults_to_job_seeker() -> None:
    session = asyncio.run(resolve_role(Principal(subject="new-user"), InMemoryRecordStore()))

    assert session.signed_in is True
    assert session.effective_role is Role.JOB_SEEKER


def test_unreadable_role_store_defaults_to_job_seeker() -> None:
    session = asyncio.run(resolve_role(Principal(subject="user-1", email="a@example.com"), UnavailableStore()))

    assert session.signed_in is True
    assert session.effective_role is Role.JOB_SEEKER


def test_unknown_or_guest_role_value_defaults_to_job_seeker() -> None:
    async def scenario() -> list[Role]:
        store = InMemoryRecordStore()
        await store.create(USERS, {"role": "wizard"}, record_id="user-1")
        await store.create(USERS, {"role": "guest"}, record_id="user-2")
        first = await resolve_role(Principal(subject="user-1"), store)
        second = await resolve_role(Principal(subject="user-2"), store)
        return [first.effective_role, second.effective_role]

    assert asyncio.run(scenario()) == [Role.JOB_SEEKER, Role.JOB_SEEKER]


def test_superuser_email_resolves_to_admin_regardless_of_stored_role() -> None:
    async def scenario() -> Session:
        store = InMemoryRecordStore()
        await seed_superusers(store, ["Admin@SafeHire.Example"])
        await store.create(USERS, {"role": "job-seeker"}, record_id="user-1")
        return await resolve_role(Principal(subject="user-1", email="admin@safehire.example"), store)

    assert asyncio.run(scenario()).effective_role is Role.ADMIN


def test_seed_superusers_is_idempotent() -> None:
    async def scenario() -> tuple[int, int, list[dict[str, Any]]]:
        store = InMemoryRecordStore()
        first = await seed_superusers(store, ["a@example.com", " ", "A@example.com"])
        second = await seed_superusers(store, ["a@example.com"])
        return first, second, await store.list(SUPERUSERS)

    first, second, rows = asyncio.run(scenario())

    assert first == 1
    assert second == 0
    assert [row["id"] for row in rows] == ["a@example.com"]


def test_invalidated_session_degrades_to_guest() -> None:
    session = Session(principal=Principal(subject="user-1"), role=Role.EMPLOYER, signed_in=True)
    session.invalidate()

    assert session.effective_role is Role.GUEST
    assert session.subject is None
