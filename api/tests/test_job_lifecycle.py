from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any

import pytest

from safehire.core.auth import Principal, Role, Session
from safehire.schemas.jobs import JobCreateRequest, JobRecord
from safehire.services.errors import (
    AuthorizationDeniedError,
    StoreNotFoundError,
    StoreUnavailableError,
    WorkflowValidationError,
)
from safehire.services.jobs import JobLifecycleManager, format_salary_amount, format_salary_range, visible_jobs
from safehire.services.store import JOBS, InMemoryRecordStore

VALID_CIN = "U12345MH2020PTC123456"


def _session(role: Role, subject: str | None = None) -> Session:
    if role is Role.GUEST:
        return Session.guest()
    return Session(principal=Principal(subject=subject or f"{role.value}-1"), role=role, signed_in=True)


def _payload(**overrides: Any) -> JobCreateRequest:
    data: dict[str, Any] = {
        "title": "Warehouse Associate",
        "description": "Inventory and dispatch",
        "location": "Pune",
        "min_salary": 12000,
        "max_salary": 18500,
        "experience_level": "1-2 Years",
        "job_type": "Full Time",
        "vacancies": 3,
        "company_name": "Acme Logistics",
        "company_cin": VALID_CIN.lower(),
        "company_website": "https://acme.example",
        "company_address": "MIDC, Pune",
        "disclaimer_checked": True,
    }
    data.update(overrides)
    return JobCreateRequest(**data)


def _job_row(status: str | None, is_hidden: bool) -> dict[str, Any]:
    return {
        "id": "job-1",
        "employer_id": "employer-1",
        "title": "Clerk",
        "status": status,
        "is_hidden": is_hidden,
    }


def test_create_job_stores_pending_defaults() -> None:
    store = InMemoryRecordStore()
    manager = JobLifecycleManager(store)
    now = datetime(2024, 5, 17, 10, 30, tzinfo=timezone.utc)

    job = asyncio.run(manager.create_job(_session(Role.EMPLOYER, "employer-1"), _payload(), now=now))

    assert job.status == "pending"
    assert job.is_verified is True
    assert job.is_free is True
    assert job.has_warning is False
    assert job.is_hidden is False
    assert job.employer_id == "employer-1"
    assert job.company_cin == VALID_CIN
    assert job.type == "1-2 Years • Full Time"
    assert job.salary == "₹12k - ₹18.5k/month"
    assert job.vacancies == "3"
    assert job.posted_date == "2024-05-17"
    assert job.company_description == "MIDC, Pune"
    assert job.is_visible_to_job_seekers is False

    stored = asyncio.run(store.get(JOBS, job.id))
    assert stored["status"] == "pending"


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"disclaimer_checked": False}, "You must confirm the safety disclaimer."),
        ({"company_cin": "U12345MH2020PTC12345"}, "CIN Number must be exactly 21 characters long."),
        ({"company_cin": "X12345MH2020PTC123456"}, "Invalid CIN format"),
        ({"title": "   "}, "title is required"),
        ({"min_salary": 30000, "max_salary": 20000}, "min_salary must not exceed max_salary"),
    ],
)
def test_create_job_rejects_invalid_input_before_store(overrides: dict[str, Any], message: str) -> None:
    store = InMemoryRecordStore()
    manager = JobLifecycleManager(store)

    with pytest.raises(WorkflowValidationError, match=message):
        asyncio.run(manager.create_job(_session(Role.EMPLOYER), _payload(**overrides)))

    assert asyncio.run(store.list(JOBS)) == []


@pytest.mark.parametrize("role", [Role.GUEST, Role.JOB_SEEKER])
def test_create_job_requires_employer(role: Role) -> None:
    manager = JobLifecycleManager(InMemoryRecordStore())

    with pytest.raises(AuthorizationDeniedError):
        asyncio.run(manager.create_job(_session(role), _payload()))


def test_guest_denial_redirects_to_login() -> None:
    manager = JobLifecycleManager(InMemoryRecordStore())

    with pytest.raises(AuthorizationDeniedError) as excinfo:
        asyncio.run(manager.create_job(_session(Role.GUEST), _payload()))

    assert excinfo.value.redirect_to == "login"


def test_approve_then_reject_then_approve_restores_visibility() -> None:
    async def scenario() -> list[JobRecord]:
        store = InMemoryRecordStore()
        manager = JobLifecycleManager(store)
        admin = _session(Role.ADMIN)
        job = await manager.create_job(_session(Role.EMPLOYER), _payload())
        await store.update(JOBS, job.id, {"has_warning": True})
        return [
            await manager.approve_job(admin, job.id),
            await manager.reject_job(admin, job.id),
            await manager.approve_job(admin, job.id),
        ]

    approved, rejected, reapproved = asyncio.run(scenario())

    assert (approved.status, approved.is_hidden, approved.is_verified, approved.has_warning) == (
        "approved",
        False,
        True,
        False,
    )
    assert (rejected.status, rejected.is_hidden, rejected.is_verified) == ("rejected", True, False)
    assert reapproved.model_dump() == approved.model_dump()
    assert reapproved.is_visible_to_job_seekers is True


def test_moderation_requires_admin() -> None:
    async def scenario() -> None:
        store = InMemoryRecordStore()
        manager = JobLifecycleManager(store)
        job = await manager.create_job(_session(Role.EMPLOYER), _payload())
        with pytest.raises(AuthorizationDeniedError) as excinfo:
            await manager.approve_job(_session(Role.EMPLOYER), job.id)
        assert excinfo.value.required_role == "admin"
        assert (await store.get(JOBS, job.id))["status"] == "pending"

    asyncio.run(scenario())


@pytest.mark.parametrize(
    ("status", "is_hidden"),
    list(itertools.product(["pending", "approved", "rejected", None], [True, False])),
)
def test_visibility_requires_approved_and_not_hidden(status: str | None, is_hidden: bool) -> None:
    job = JobRecord(**_job_row(status, is_hidden))

    assert job.is_visible_to_job_seekers is (status == "approved" and not is_hidden)
    assert len(visible_jobs([_job_row(status, is_hidden)])) == int(job.is_visible_to_job_seekers)


def test_missing_status_is_pending() -> None:
    assert JobRecord(**_job_row(None, False)).status == "pending"


def test_toggle_visibility_is_owner_only() -> None:
    async def scenario() -> None:
        store = InMemoryRecordStore()
        manager = JobLifecycleManager(store)
        owner = _session(Role.EMPLOYER, "employer-1")
        job = await manager.create_job(owner, _payload())

        with pytest.raises(AuthorizationDeniedError):
            await manager.toggle_job_visibility(_session(Role.EMPLOYER, "employer-2"), job.id)

        hidden = await manager.toggle_job_visibility(owner, job.id)
        shown = await manager.toggle_job_visibility(owner, job.id)
        assert hidden.is_hidden is True
        assert shown.is_hidden is False
        assert shown.status == "pending"

    asyncio.run(scenario())


def test_toggling_approved_job_keeps_moderation_state() -> None:
    async def scenario() -> list[JobRecord]:
        store = InMemoryRecordStore()
        manager = JobLifecycleManager(store)
        owner = _session(Role.EMPLOYER, "employer-1")
        job = await manager.create_job(owner, _payload())
        await manager.approve_job(_session(Role.ADMIN), job.id)
        return [
            await manager.toggle_job_visibility(owner, job.id),
            await manager.toggle_job_visibility(owner, job.id),
        ]

    hidden, shown = asyncio.run(scenario())

    for job in (hidden, shown):
        assert job.status == "approved"
        assert job.is_verified is True
    assert (hidden.is_hidden, hidden.is_visible_to_job_seekers) == (True, False)
    assert (shown.is_hidden, shown.is_visible_to_job_seekers) == (False, True)


def test_delete_job_is_owner_only_and_block_is_admin_only() -> None:
    async def scenario() -> None:
        store = InMemoryRecordStore()
        manager = JobLifecycleManager(store)
        owner = _session(Role.EMPLOYER, "employer-1")
        first = await manager.create_job(owner, _payload())
        second = await manager.create_job(owner, _payload())

        with pytest.raises(AuthorizationDeniedError):
            await manager.delete_job(_session(Role.EMPLOYER, "employer-2"), first.id)
        with pytest.raises(AuthorizationDeniedError):
            await manager.block_job(owner, second.id)

        await manager.delete_job(owner, first.id)
        await manager.block_job(_session(Role.ADMIN), second.id)
        assert await store.list(JOBS) == []

    asyncio.run(scenario())


def test_public_listing_and_detail_hide_unpublished_jobs() -> None:
    async def scenario() -> None:
        store = InMemoryRecordStore()
        manager = JobLifecycleManager(store)
        owner = _session(Role.EMPLOYER, "employer-1")
        admin = _session(Role.ADMIN)
        published = await manager.create_job(owner, _payload(title="Forklift Operator"))
        draft = await manager.create_job(owner, _payload(title="Night Guard", location="Mumbai"))
        await manager.approve_job(admin, published.id)

        listed = await manager.list_visible_jobs()
        assert [job.id for job in listed] == [published.id]
        assert await manager.list_visible_jobs(keyword="forklift", location="pune") == listed
        assert await manager.list_visible_jobs(location="mumbai") == []

        with pytest.raises(StoreNotFoundError):
            await manager.get_job(_session(Role.JOB_SEEKER), draft.id)
        assert (await manager.get_job(owner, draft.id)).id == draft.id
        assert (await manager.get_job(admin, draft.id)).id == draft.id

    asyncio.run(scenario())


def test_employer_listing_only_returns_own_jobs() -> None:
    async def scenario() -> None:
        manager = JobLifecycleManager(InMemoryRecordStore())
        mine = await manager.create_job(_session(Role.EMPLOYER, "employer-1"), _payload())
        await manager.create_job(_session(Role.EMPLOYER, "employer-2"), _payload())

        jobs = await manager.list_employer_jobs(_session(Role.EMPLOYER, "employer-1"))
        assert [job.id for job in jobs] == [mine.id]

    asyncio.run(scenario())


def test_store_failures_propagate() -> None:
    class FailingStore(InMemoryRecordStore):
        async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
            raise StoreUnavailableError("store offline")

    async def scenario() -> None:
        store = FailingStore()
        manager = JobLifecycleManager(store)
        job = await manager.create_job(_session(Role.EMPLOYER), _payload())
        with pytest.raises(StoreUnavailableError):
            await manager.approve_job(_session(Role.ADMIN), job.id)

    asyncio.run(scenario())


@pytest.mark.parametrize(
    ("amount", "expected"),
    [(500, "500"), (1000, "1k"), (12000, "12k"), (12500, "12.5k"), (50000, "50k")],
)
def test_format_salary_amount(amount: int, expected: str) -> None:
    assert format_salary_amount(amount) == expected


def test_format_salary_range() -> None:
    assert format_salary_range(8000, 15000) == "₹8k - ₹15k/month"
