from __future__ import annotations


class WorkflowError(Exception):
    """Base error for job-board workflow operations."""


class AuthorizationDeniedError(WorkflowError, PermissionError):
    """Raised when the current role may not reach a view or perform an action."""

    def __init__(
        self,
        message: str,
        *,
        required_role: str | None = None,
        redirect_to: str | None = None,
    ) -> None:
        super().__init__(message)
        self.required_role = required_role
        self.redirect_to = redirect_to


class WorkflowValidationError(WorkflowError):
    """Raised when input is rejected before any store call is made."""


class TransitionConflictError(WorkflowError):
    """Raised when a requested status transition is not allowed."""


class StoreError(WorkflowError):
    """Base record store error."""


class StoreUnavailableError(StoreError):
    """Raised when the store is unreachable or a read fails transiently."""


class StoreNotFoundError(StoreError):
    """Raised when the requested record does not exist."""


class StorePermissionDeniedError(StoreError):
    """Raised when the store's access rules reject an operation."""


class StoreConflictError(StoreError):
    """Raised when a record with the same id already exists."""
