from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from safehire.api.errors import store_forbidden
from safehire.core.auth import Role, Session
from safehire.core.config import Settings, get_settings
from safehire.core.navigation import authorize, login_destination
from safehire.core.security import get_session, sign_out
from safehire.schemas.session import NavigationDecisionOut, RoleRegistrationRequest, SessionOut
from safehire.services.errors import StoreConflictError, StorePermissionDeniedError, StoreUnavailableError
from safehire.services.repository import get_store
from safehire.services.store import USERS

router = APIRouter()


def _session_out(session: Session) -> SessionOut:
    principal = session.principal if session.active else None
    return SessionOut(
        signed_in=session.signed_in and session.active,
        role=session.effective_role.value,
        subject=principal.subject if principal else None,
        email=principal.email if principal else None,
        landing_view=login_destination(session.effective_role).value,
    )


@router.get("", response_model=SessionOut)
async def get_current_session(session: Session = Depends(get_session)) -> SessionOut:
    return _session_out(session)


@router.get("/authorize", response_model=NavigationDecisionOut)
async def authorize_view(
    view: str = Query(min_length=1),
    session: Session = Depends(get_session),
) -> NavigationDecisionOut:
    decision = authorize(session.effective_role, view)
    return NavigationDecisionOut(
        allowed=decision.allowed,
        view=decision.view,
        reason=decision.reason,
        redirect_to=decision.redirect_to.value if decision.redirect_to else None,
        required_role=decision.required_role.value if decision.required_role else None,
    )


@router.post("/role", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
async def register_role(
    payload: RoleRegistrationRequest,
    session: Session = Depends(get_session),
    store=Depends(get_store),
) -> SessionOut:
    if not session.signed_in or session.principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="role registration requires sign-in")

    principal = session.principal
    try:
        await store.create(
            USERS,
            {
                "email": principal.email,
                "role": payload.role,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            record_id=principal.subject,
        )
    except StoreConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="role already assigned") from exc
    except StorePermissionDeniedError as exc:
        raise store_forbidden(exc) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    if session.role is not Role.ADMIN:
        session.role = Role(payload.role)
    return _session_out(session)


@router.post("/sign-out", response_model=SessionOut)
async def sign_out_session(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> SessionOut:
    await sign_out(settings, authorization)
    session.invalidate()
    return _session_out(session)
