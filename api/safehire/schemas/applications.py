from typing import Any, Literal

from pydantic import BaseModel, field_validator

ApplicationStatus = Literal["Pending", "Reviewed", "Shortlisted", "Rejected"]


class ApplicationRecord(BaseModel):
    id: str
    job_id: str
    employer_id: str
    applicant_id: str
    job_title: str = ""
    company_name: str = ""
    location: str = ""
    salary: str = ""
    applicant_name: str = ""
    applicant_email: str = ""
    applicant_phone: str = ""
    resume_name: str = "resume.pdf"
    experience: str = "Fresher"
    applied_date: str = ""
    created_at: str | None = None
    status: ApplicationStatus = "Pending"

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return "Pending" if value is None or value == "" else value


class ApplicationSubmitRequest(BaseModel):
    job_id: str
    full_name: str
    email: str
    phone: str
    resume_name: str | None = None


class ApplicationOut(ApplicationRecord):
    pass
