from fastapi import APIRouter, Depends, HTTPException, status

from safehire.api.deps import get_application_manager
from safehire.api.errors import denied, store_forbidden
from safehire.core.auth import Session
from safehire.core.security import get_session
from safehire.schemas.applications import ApplicationOut, ApplicationSubmitRequest
from safehire.services.applications import ApplicationLifecycleManager
from safehire.services.errors import (
    AuthorizationDeniedError,
    StoreNotFoundError,
    StorePermissionDeniedError,
    StoreUnavailableError,
    TransitionConflictError,
    WorkflowValidationError,
)

router = APIRouter()


@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def submit_application(
    payload: ApplicationSubmitRequest,
    session: Session = Depends(get_session),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
) -> ApplicationOut:
    try:
        application = await manager.submit_application(session, payload)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except WorkflowValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationOut(**application.model_dump())


@router.get("/mine", response_model=list[ApplicationOut])
async def list_my_applications(
    session: Session = Depends(get_session),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
) -> list[ApplicationOut]:
    try:
        applications = await manager.list_my_applications(session)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ApplicationOut(**application.model_dump()) for application in applications]


@router.get("/received", response_model=list[ApplicationOut])
async def list_received_applications(
    session: Session = Depends(get_session),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
) -> list[ApplicationOut]:
    try:
        applications = await manager.list_received_applications(session)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ApplicationOut(**application.model_dump()) for application in applications]


@router.get("/{application_id}", response_model=ApplicationOut)
async def open_application(
    application_id: str,
    session: Session = Depends(get_session),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
) -> ApplicationOut:
    try:
        application = await manager.open_application(session, application_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationOut(**application.model_dump())


@router.post("/{application_id}/shortlist", response_model=ApplicationOut)
async def shortlist_application(
    application_id: str,
    session: Session = Depends(get_session),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
) -> ApplicationOut:
    try:
        application = await manager.shortlist_application(session, application_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except TransitionConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationOut(**application.model_dump())


@router.post("/{application_id}/reject", response_model=ApplicationOut)
async def reject_application(
    application_id: str,
    session: Session = Depends(get_session),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
) -> ApplicationOut:
    try:
        application = await manager.reject_application(session, application_id)
    except AuthorizationDeniedError as exc:
        raise denied(exc) from exc
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except TransitionConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationOut(**application.model_dump())
