from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from opentelemetry import trace

from safehire.core.auth import Role, Session
from safehire.services.access import require_role
from safehire.services.errors import StoreNotFoundError
from safehire.services.jobs import JobLifecycleManager
from safehire.services.store import JOBS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CompanyStatus = Literal["Pending", "Approved", "Rejected"]


@dataclass(frozen=True, slots=True)
class CompanyAggregate:
    name: str
    cin: str
    status: CompanyStatus
    is_verified: bool
    job_count: int


@dataclass(slots=True)
class BulkVerificationResult:
    company: CompanyAggregate
    approve: bool
    updated: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.updated) and bool(self.failed)


def aggregate_company_status(jobs: Iterable[Any], company_name: str) -> CompanyAggregate:
    """Derive a company's display status from its jobs; recomputed on every read."""
    company_jobs = [job for job in jobs if _field(job, "company_name") == company_name]
    statuses = [_field(job, "status") or "pending" for job in company_jobs]

    is_approved = any(status == "approved" for status in statuses)
    is_rejected = bool(statuses) and all(status == "rejected" for status in statuses)

    status: CompanyStatus = "Pending"
    if is_approved:
        status = "Approved"
    elif is_rejected:
        status = "Rejected"

    cin = (_field(company_jobs[0], "company_cin") if company_jobs else None) or "N/A"
    return CompanyAggregate(
        name=company_name,
        cin=cin,
        status=status,
        is_verified=status == "Approved",
        job_count=len(company_jobs),
    )


def list_companies(jobs: Iterable[Any]) -> list[CompanyAggregate]:
    all_jobs = list(jobs)
    names = list(dict.fromkeys(_field(job, "company_name") for job in all_jobs))
    return [aggregate_company_status(all_jobs, name) for name in names if name]


class CompanyVerifier:
    def __init__(self, jobs: JobLifecycleManager) -> None:
        self.jobs = jobs

    async def list_companies(self, session: Session) -> list[CompanyAggregate]:
        return list_companies(await self.jobs.list_all_jobs(session))

    async def verify_company(self, session: Session, company_name: str, approve: bool) -> BulkVerificationResult:
        """Approve or reject every job of a company concurrently.

        The batch is awaited as a whole; successes are never rolled back when
        other jobs fail, and failures are reported rather than retried.
        """
        require_role(session, Role.ADMIN, message="Access Denied: Admin privileges required.")
        rows = await self.jobs.store.list(JOBS, filters={"company_name": company_name})
        if not rows:
            raise StoreNotFoundError(f"company not found: {company_name}")

        job_ids = [str(row["id"]) for row in rows]
        with tracer.start_as_current_span("companies.verify") as span:
            span.set_attribute("company.name", company_name)
            span.set_attribute("company.job_count", len(job_ids))
            outcomes = await asyncio.gather(
                *(self.jobs.apply_moderation(job_id, approve=approve) for job_id in job_ids),
                return_exceptions=True,
            )

        updated: list[str] = []
        failed: list[tuple[str, str]] = []
        for job_id, outcome in zip(job_ids, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("company verification failed company=%s job_id=%s error=%s", company_name, job_id, outcome)
                failed.append((job_id, str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                updated.append(job_id)

        refreshed = await self.jobs.store.list(JOBS, filters={"company_name": company_name})
        aggregate = aggregate_company_status(refreshed, company_name)
        logger.info(
            "company verification company=%s approve=%s updated=%s failed=%s status=%s",
            company_name,
            approve,
            len(updated),
            len(failed),
            aggregate.status,
        )
        return BulkVerificationResult(company=aggregate, approve=approve, updated=updated, failed=failed)


def _field(job: Any, name: str) -> Any:
    if isinstance(job, dict):
        return job.get(name)
    return getattr(job, name, None)
