import asyncio
import json
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from safehire.api.deps import get_job_manager
from safehire.api.errors import denied, store_forbidden
from safehire.core.auth import Role, Session
from safehire.core.navigation import View, authorize
from safehire.core.security import get_session
from safehire.schemas.jobs import JobCreateRequest, JobOut
from safehire.services.errors import (
    AuthorizationDeniedError,
    StoreNotFoundError,
    StorePermissionDeniedError,
    StoreUnavailableError,
    WorkflowValidationError,
)
from safehire.services.jobs import JobLifecycleManager, visible_jobs
from safehire.services.store import Subscription

router = APIRouter()


def _require_jobs_view(session: Session) -> None:
    decision = authorize(session.effective_role, View.JOBS)
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": decision.reason,
                "redirect_to": decision.redirect_to.value if decision.redirect_to else None,
                "required_role": decision.required_role.value if decision.required_role else None,
            },
        )


@router.get("", response_model=list[JobOut])
async def list_jobs(
    q: str | None = Query(default=None, min_length=1),
    location: str | None = Query(default=None, min_length=1),
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> list[JobOut]:
    _require_jobs_view(session)
    try:
        jobs = await manager.list_visible_jobs(keyword=q, location=location)
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobOut.from_record(job) for job in jobs]


@router.get("/stream")
async def stream_jobs(
    request: Request,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> StreamingResponse:
    _require_jobs_view(session)
    try:
        subscription = await manager.subscribe_jobs()
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return StreamingResponse(job_snapshot_events(subscription, request), media_type="text/event-stream")


async def job_snapshot_events(
    subscription: Subscription,
    request: Request | None = None,
    *,
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """Server-sent events carrying the visible-jobs snapshot after every commit."""
    try:
        while True:
            if request is not None and await request.is_disconnected():
                break
            try:
                snapshot = await subscription.next_snapshot(timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            if snapshot is None:
                break
            payload = [JobOut.from_record(job).model_dump(mode="json") for job in visible_jobs(snapshot)]
            yield f"event: jobs\ndata: {json.dumps(payload)}\n\n"
    finally:
        subscription.cancel()


@router.get("/mine", response_model=list[JobOut])
async def list_my_jobs(
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> list[JobOut]:
    try:
        jobs = await manager.list_employer_jobs(session)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobOut.from_record(job, reveal_cin=True) for job in jobs]


@router.get("/{job_id}", response_model=JobOut)
async def get_job(
    job_id: str,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> JobOut:
    try:
        job = await manager.get_job(session, job_id)
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    owns = session.subject is not None and session.subject == job.employer_id
    return JobOut.from_record(job, reveal_cin=owns or session.effective_role is Role.ADMIN)


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> JobOut:
    try:
        job = await manager.create_job(session, payload)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except WorkflowValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobOut.from_record(job, reveal_cin=True)


@router.patch("/{job_id}/visibility", response_model=JobOut)
async def toggle_job_visibility(
    job_id: str,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> JobOut:
    try:
        job = await manager.toggle_job_visibility(session, job_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobOut.from_record(job, reveal_cin=True)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(
    job_id: str,
    session: Session = Depends(get_session),
    manager: JobLifecycleManager = Depends(get_job_manager),
) -> None:
    try:
        await manager.delete_job(session, job_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
