from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

from safehire.core.auth import Role, Session
from safehire.core.navigation import View
from safehire.schemas.applications import ApplicationRecord, ApplicationStatus, ApplicationSubmitRequest
from safehire.schemas.jobs import JobRecord
from safehire.services.access import require_owner, require_role
from safehire.services.errors import (
    AuthorizationDeniedError,
    StoreError,
    StoreNotFoundError,
    TransitionConflictError,
    WorkflowValidationError,
)
from safehire.services.store import APPLICATIONS, JOBS, RecordStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "Pending": {"Reviewed", "Shortlisted", "Rejected"},
    "Reviewed": {"Shortlisted", "Rejected"},
    "Shortlisted": {"Rejected"},
    "Rejected": set(),
}


def validate_application_transition(*, from_status: str, to_status: str) -> bool:
    """Return False for a same-state no-op, True for a move; raise if disallowed."""
    if to_status == from_status:
        return False
    allowed = ALLOWED_TRANSITIONS.get(from_status)
    if not allowed or to_status not in allowed:
        raise TransitionConflictError(f"invalid application status transition: {from_status} -> {to_status}")
    return True


class ApplicationLifecycleManager:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def submit_application(
        self,
        session: Session,
        payload: ApplicationSubmitRequest,
        *,
        now: datetime | None = None,
    ) -> ApplicationRecord:
        role = session.effective_role
        if role is Role.GUEST or session.subject is None:
            raise AuthorizationDeniedError("Please login to apply for jobs.", redirect_to=View.LOGIN.value)
        if role is Role.EMPLOYER:
            raise AuthorizationDeniedError(
                "Employers cannot apply for jobs. Please register as a Job Seeker.",
                required_role=Role.JOB_SEEKER.value,
            )
        contact = self._validate_form(payload)

        job = JobRecord(**await self.store.get(JOBS, payload.job_id))
        if not job.is_visible_to_job_seekers:
            raise StoreNotFoundError(f"jobs record not found: {payload.job_id}")

        submitted_at = now or datetime.now(timezone.utc)
        record: dict[str, Any] = {
            "job_id": job.id,
            "employer_id": job.employer_id,
            "applicant_id": session.subject,
            "job_title": job.title,
            "company_name": job.company_name,
            "location": job.location,
            "salary": job.salary,
            **contact,
            "experience": "Fresher",
            "applied_date": submitted_at.date().isoformat(),
            "created_at": submitted_at.isoformat(),
            "status": "Pending",
        }
        with tracer.start_as_current_span("applications.submit"):
            application_id = await self.store.create(APPLICATIONS, record)
        logger.info("application submitted id=%s job_id=%s", application_id, job.id)
        return ApplicationRecord(id=application_id, **record)

    async def open_application(self, session: Session, application_id: str) -> ApplicationRecord:
        """Employer detail view; marks a Pending application Reviewed on first open."""
        application = await self._get_owned(session, application_id)
        if application.status != "Pending":
            return application
        try:
            return await self._transition(application, "Reviewed")
        except StoreError as exc:
            logger.warning("implicit review failed id=%s error=%s", application_id, exc)
            return application

    async def mark_application_reviewed(self, session: Session, application_id: str) -> ApplicationRecord:
        application = await self._get_owned(session, application_id)
        if application.status != "Pending":
            return application
        return await self._transition(application, "Reviewed")

    async def shortlist_application(self, session: Session, application_id: str) -> ApplicationRecord:
        application = await self._get_owned(session, application_id)
        return await self._transition(application, "Shortlisted")

    async def reject_application(self, session: Session, application_id: str) -> ApplicationRecord:
        application = await self._get_owned(session, application_id)
        return await self._transition(application, "Rejected")

    async def list_my_applications(self, session: Session) -> list[ApplicationRecord]:
        applicant_id = require_role(
            session,
            Role.JOB_SEEKER,
            Role.ADMIN,
            message="Access Denied: Please login as a Job Seeker to view applications.",
        )
        rows = await self.store.list(
            APPLICATIONS,
            filters={"applicant_id": applicant_id},
            order_by=("created_at", "desc"),
        )
        return [ApplicationRecord(**row) for row in rows]

    async def list_received_applications(self, session: Session) -> list[ApplicationRecord]:
        employer_id = require_role(
            session,
            Role.EMPLOYER,
            Role.ADMIN,
            message="Access Denied: Please login as an Employer to access the dashboard.",
        )
        rows = await self.store.list(
            APPLICATIONS,
            filters={"employer_id": employer_id},
            order_by=("created_at", "desc"),
        )
        return [ApplicationRecord(**row) for row in rows]

    async def _get_owned(self, session: Session, application_id: str) -> ApplicationRecord:
        application = ApplicationRecord(**await self.store.get(APPLICATIONS, application_id))
        require_owner(session, application.employer_id, entity="application")
        return application

    async def _transition(self, application: ApplicationRecord, to_status: ApplicationStatus) -> ApplicationRecord:
        if not validate_application_transition(from_status=application.status, to_status=to_status):
            return application
        with tracer.start_as_current_span("applications.transition") as span:
            span.set_attribute("application.id", application.id)
            span.set_attribute("application.to_status", to_status)
            row = await self.store.update(APPLICATIONS, application.id, {"status": to_status})
        logger.info(
            "application status changed id=%s from=%s to=%s",
            application.id,
            application.status,
            to_status,
        )
        return ApplicationRecord(**row)

    @staticmethod
    def _validate_form(payload: ApplicationSubmitRequest) -> dict[str, str]:
        name = payload.full_name.strip()
        email = payload.email.strip()
        phone = payload.phone.strip()
        if not name:
            raise WorkflowValidationError("full_name is required")
        if not _EMAIL_RE.match(email):
            raise WorkflowValidationError("a valid email is required")
        if not phone:
            raise WorkflowValidationError("phone is required")

        resume_name = (payload.resume_name or "").strip()
        if not resume_name:
            raise WorkflowValidationError("Please upload your resume (PDF).")
        if not resume_name.lower().endswith(".pdf"):
            raise WorkflowValidationError("Please upload a PDF file only.")
        return {
            "applicant_name": name,
            "applicant_email": email,
            "applicant_phone": phone,
            "resume_name": resume_name,
        }
