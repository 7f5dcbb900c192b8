from fastapi import APIRouter, Depends, HTTPException, Query, status

from safehire.api.deps import get_company_verifier, get_job_manager
from safehire.api.errors import denied, store_forbidden
from safehire.core.auth import Session
from safehire.core.security import get_session
from safehire.schemas.admin import (
    AdminOverviewOut,
    CompanyOut,
    CompanyVerifyOut,
    CompanyVerifyRequest,
    FailedJobUpdateOut,
    ReviewQueue,
)
from safehire.schemas.jobs import AdminJobOut, JobOut, JobRecord, RiskAssessmentOut
from safehire.services.companies import CompanyAggregate, CompanyVerifier, list_companies
from safehire.services.errors import (
    AuthorizationDeniedError,
    StoreNotFoundError,
    StorePermissionDeniedError,
    StoreUnavailableError,
)
from safehire.services.jobs import JobLifecycleManager
from safehire.services.risk import classify_risk
from safehire.services.store import USERS

router = APIRouter()


def _admin_job_out(job: JobRecord) -> AdminJobOut:
    assessment = classify_risk(job)
    return AdminJobOut(
        **JobOut.from_record(job, reveal_cin=True).model_dump(),
        risk=RiskAssessmentOut(tier=assessment.tier, tags=list(assessment.tags)),
    )


def _company_out(company: CompanyAggregate) -> CompanyOut:
    return CompanyOut(
        name=company.name,
        cin=company.cin,
        status=company.status,
        is_verified=company.is_verified,
        job_count=company.job_count,
    )


def _in_queue(job: JobRecord, queue: ReviewQueue) -> bool:
    if queue == "pending":
        return job.status == "pending"
    if queue == "flagged":
        return job.has_warning
    if queue == "review":
        return job.status == "pending" or job.has_warning
    return True


@router.get("/overview", response_model=AdminOverviewOut)
async def get_overview(
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> AdminOverviewOut:
    try:
        jobs = await manager.list_all_jobs(session)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    # The user count is informational; an unreadable users collection leaves it unset.
    total_users: int | None
    try:
        total_users = len(await manager.store.list(USERS))
    except (StorePermissionDeniedError, StoreUnavailableError):
        total_users = None

    return AdminOverviewOut(
        jobs_posted=len(jobs),
        flagged_jobs=sum(1 for job in jobs if job.has_warning or job.status == "pending"),
        employers_verified=sum(1 for company in list_companies(jobs) if company.is_verified),
        total_users=total_users,
    )


@router.get("/jobs", response_model=list[AdminJobOut])
async def list_review_jobs(
    queue: ReviewQueue = Query(default="all"),
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> list[AdminJobOut]:
    try:
        jobs = await manager.list_all_jobs(session)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [_admin_job_out(job) for job in jobs if _in_queue(job, queue)]


@router.post("/jobs/{job_id}/approve", response_model=AdminJobOut)
async def approve_job(
    job_id: str,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> AdminJobOut:
    try:
        job = await manager.approve_job(session, job_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return _admin_job_out(job)


@router.post("/jobs/{job_id}/reject", response_model=AdminJobOut)
async def reject_job(
    job_id: str,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> AdminJobOut:
    try:
        job = await manager.reject_job(session, job_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return _admin_job_out(job)


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def block_job(
    job_id: str,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> None:
    try:
        await manager.block_job(session, job_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/companies", response_model=list[CompanyOut])
async def list_company_aggregates(
    session: Session = Depends(get_session),
    verifier: CompanyVerifier = Depends(get_company_verifier),
) -> list[CompanyOut]:
    try:
        companies = await verifier.list_companies(session)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [_company_out(company) for company in companies]


@router.post("/companies/verify", response_model=CompanyVerifyOut)
async def verify_company(
    payload: CompanyVerifyRequest,
    session: Session = Depends(get_session),
    verifier: CompanyVerifier = Depends(get_company_verifier),
) -> CompanyVerifyOut:
    try:
        result = await verifier.verify_company(session, payload.company_name, payload.approve)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return CompanyVerifyOut(
        company=_company_out(result.company),
        approve=result.approve,
        partial=result.partial,
        updated=result.updated,
        failed=[FailedJobUpdateOut(job_id=job_id, error=error) for job_id, error in result.failed],
    )
