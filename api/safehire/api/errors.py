from fastapi import HTTPException, status

from safehire.services.errors import AuthorizationDeniedError, StorePermissionDeniedError

STORE_PERMISSION_DETAIL = "Missing permissions: check the record store access rules."


def denied(exc: AuthorizationDeniedError) -> HTTPException:
    # Guests are sent to the login view instead of seeing an error.
    status_code = status.HTTP_401_UNAUTHORIZED if exc.redirect_to else status.HTTP_403_FORBIDDEN
    return HTTPException(
        status_code=status_code,
        detail={
            "message": str(exc),
            "redirect_to": exc.redirect_to,
            "required_role": exc.required_role,
        },
    )


def store_forbidden(exc: StorePermissionDeniedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"{STORE_PERMISSION_DETAIL} ({exc})")
