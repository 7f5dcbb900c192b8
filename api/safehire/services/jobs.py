from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

from safehire.core.auth import Role, Session
from safehire.schemas.jobs import JobCreateRequest, JobRecord
from safehire.services.access import require_owner, require_role
from safehire.services.errors import StoreNotFoundError, WorkflowValidationError
from safehire.services.store import JOBS, RecordStore, Snapshot, Subscription

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CIN_LENGTH = 21
CIN_RE = re.compile(r"^[LU][0-9]{5}[A-Z]{2}[0-9]{4}[A-Z]{3}[0-9]{6}$")

APPROVE_FIELDS: dict[str, Any] = {"status": "approved", "has_warning": False, "is_hidden": False, "is_verified": True}
REJECT_FIELDS: dict[str, Any] = {"status": "rejected", "is_hidden": True, "is_verified": False}
NEWEST_FIRST = ("created_at", "desc")


class JobLifecycleManager:
    """Owns job moderation status, visibility and verification transitions."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def create_job(self, session: Session, payload: JobCreateRequest, *, now: datetime | None = None) -> JobRecord:
        employer_id = require_role(
            session,
            Role.EMPLOYER,
            Role.ADMIN,
            message="Access Denied: Please login as an Employer to post jobs.",
        )
        fields = self._validate_create(payload)
        created_at = now or datetime.now(timezone.utc)
        record: dict[str, Any] = {
            "employer_id": employer_id,
            "title": fields["title"],
            "company_name": fields["company_name"],
            "location": fields["location"],
            "type": f"{payload.experience_level} • {payload.job_type}",
            "salary": format_salary_range(payload.min_salary, payload.max_salary),
            "description": fields["description"],
            "posted_date": created_at.date().isoformat(),
            "experience": payload.experience_level,
            "vacancies": str(payload.vacancies or 1),
            "company_website": _clean(payload.company_website),
            "company_cin": fields["company_cin"],
            "company_description": _clean(payload.company_description)
            or _clean(payload.company_address)
            or "Verified Company",
            "created_at": created_at.isoformat(),
            "status": "pending",
            "is_verified": True,
            "is_free": True,
            "has_warning": False,
            "is_hidden": False,
        }
        with tracer.start_as_current_span("jobs.create"):
            job_id = await self.store.create(JOBS, record)
        logger.info("job created id=%s employer_id=%s", job_id, employer_id)
        return JobRecord(id=job_id, **record)

    async def approve_job(self, session: Session, job_id: str) -> JobRecord:
        require_role(session, Role.ADMIN, message="Access Denied: Admin privileges required.")
        return await self.apply_moderation(job_id, approve=True)

    async def reject_job(self, session: Session, job_id: str) -> JobRecord:
        require_role(session, Role.ADMIN, message="Access Denied: Admin privileges required.")
        return await self.apply_moderation(job_id, approve=False)

    async def apply_moderation(self, job_id: str, *, approve: bool) -> JobRecord:
        """Apply the approve or reject field set; callers authorize first."""
        fields = APPROVE_FIELDS if approve else REJECT_FIELDS
        with tracer.start_as_current_span("jobs.approve" if approve else "jobs.reject") as span:
            span.set_attribute("job.id", job_id)
            row = await self.store.update(JOBS, job_id, dict(fields))
        logger.info("job moderated id=%s status=%s", job_id, fields["status"])
        return JobRecord(**row)

    async def block_job(self, session: Session, job_id: str) -> None:
        require_role(session, Role.ADMIN, message="Access Denied: Admin privileges required.")
        with tracer.start_as_current_span("jobs.block"):
            await self.store.delete(JOBS, job_id)
        logger.info("job blocked permanently id=%s", job_id)

    async def toggle_job_visibility(self, session: Session, job_id: str) -> JobRecord:
        job = JobRecord(**await self.store.get(JOBS, job_id))
        require_owner(session, job.employer_id, entity="job")
        with tracer.start_as_current_span("jobs.toggle_visibility"):
            row = await self.store.update(JOBS, job_id, {"is_hidden": not job.is_hidden})
        logger.info("job visibility toggled id=%s is_hidden=%s", job_id, row.get("is_hidden"))
        return JobRecord(**row)

    async def delete_job(self, session: Session, job_id: str) -> None:
        job = JobRecord(**await self.store.get(JOBS, job_id))
        require_owner(session, job.employer_id, entity="job")
        with tracer.start_as_current_span("jobs.delete"):
            await self.store.delete(JOBS, job_id)
        logger.info("job deleted id=%s employer_id=%s", job_id, job.employer_id)

    async def get_job(self, session: Session, job_id: str) -> JobRecord:
        job = JobRecord(**await self.store.get(JOBS, job_id))
        if job.is_visible_to_job_seekers:
            return job
        if session.effective_role is Role.ADMIN or (session.subject and session.subject == job.employer_id):
            return job
        # Unpublished jobs are indistinguishable from missing ones.
        raise StoreNotFoundError(f"jobs record not found: {job_id}")

    async def list_visible_jobs(self, *, keyword: str | None = None, location: str | None = None) -> list[JobRecord]:
        rows = await self.store.list(JOBS, filters={"status": "approved"}, order_by=NEWEST_FIRST)
        return search_jobs(visible_jobs(rows), keyword=keyword, location=location)

    async def list_employer_jobs(self, session: Session) -> list[JobRecord]:
        employer_id = require_role(
            session,
            Role.EMPLOYER,
            Role.ADMIN,
            message="Access Denied: Please login as an Employer to access the dashboard.",
        )
        rows = await self.store.list(JOBS, filters={"employer_id": employer_id}, order_by=NEWEST_FIRST)
        return [JobRecord(**row) for row in rows]

    async def list_all_jobs(self, session: Session) -> list[JobRecord]:
        require_role(session, Role.ADMIN, message="Access Denied: Admin privileges required.")
        return [JobRecord(**row) for row in await self.store.list(JOBS, order_by=NEWEST_FIRST)]

    async def subscribe_jobs(self) -> Subscription:
        return await self.store.subscribe(JOBS, order_by=NEWEST_FIRST)

    @staticmethod
    def _validate_create(payload: JobCreateRequest) -> dict[str, str]:
        if not payload.disclaimer_checked:
            raise WorkflowValidationError("You must confirm the safety disclaimer.")

        fields: dict[str, str] = {}
        for name in ("title", "description", "location", "company_name"):
            value = _clean(getattr(payload, name))
            if not value:
                raise WorkflowValidationError(f"{name} is required")
            fields[name] = value

        if payload.min_salary > payload.max_salary:
            raise WorkflowValidationError("min_salary must not exceed max_salary")

        cin = (payload.company_cin or "").strip().upper()
        if len(cin) != CIN_LENGTH:
            raise WorkflowValidationError(f"CIN Number must be exactly {CIN_LENGTH} characters long.")
        if not CIN_RE.match(cin):
            raise WorkflowValidationError("Invalid CIN format")
        fields["company_cin"] = cin
        return fields


def visible_jobs(rows: Snapshot | Iterable[JobRecord]) -> list[JobRecord]:
    jobs = [row if isinstance(row, JobRecord) else JobRecord(**row) for row in rows]
    return [job for job in jobs if job.is_visible_to_job_seekers]


def search_jobs(jobs: list[JobRecord], *, keyword: str | None = None, location: str | None = None) -> list[JobRecord]:
    needle = (keyword or "").strip().lower()
    place = (location or "").strip().lower()
    return [
        job
        for job in jobs
        if (not needle or needle in job.title.lower() or needle in job.description.lower())
        and (not place or place in job.location.lower())
    ]


def format_salary_range(min_salary: int, max_salary: int) -> str:
    return f"₹{format_salary_amount(min_salary)} - ₹{format_salary_amount(max_salary)}/month"


def format_salary_amount(amount: int) -> str:
    if amount < 1000:
        return str(amount)
    thousands = ("%f" % (amount / 1000)).rstrip("0").rstrip(".")
    return f"{thousands}k"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
