from __future__ import annotations

from safehire.core.auth import Role, Session
from safehire.core.navigation import View
from safehire.services.errors import AuthorizationDeniedError


def require_signed_in(session: Session, message: str = "Please login to continue.") -> str:
    subject = session.subject
    if session.effective_role is Role.GUEST or subject is None:
        raise AuthorizationDeniedError(message, redirect_to=View.LOGIN.value)
    return subject


def require_role(session: Session, *roles: Role, message: str | None = None) -> str:
    subject = require_signed_in(session)
    role = session.effective_role
    if role not in roles:
        required = roles[0].value if len(roles) == 1 else None
        raise AuthorizationDeniedError(
            message or f"Access Denied: requires role {' or '.join(r.value for r in roles)}",
            required_role=required,
        )
    return subject


def require_owner(session: Session, owner_id: str | None, *, entity: str) -> str:
    subject = require_signed_in(session)
    if not owner_id or owner_id != subject:
        raise AuthorizationDeniedError(f"Access Denied: only the owning employer may modify this {entity}")
    return subject
