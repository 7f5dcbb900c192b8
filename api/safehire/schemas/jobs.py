from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

JobStatus = Literal["pending", "approved", "rejected"]
ExperienceLevel = Literal["Fresher", "1-2 Years", "3-5 Years", "5+ Years"]
JobType = Literal["Full Time", "Part Time", "Internship", "Contract", "Remote"]
RiskTier = Literal["Low", "Medium", "High"]


class JobRecord(BaseModel):
    id: str
    title: str
    description: str = ""
    location: str = ""
    type: str = ""
    salary: str = ""
    experience: str = "Fresher"
    posted_date: str = ""
    vacancies: str = "1"
    employer_id: str
    company_name: str = ""
    company_website: str | None = None
    company_cin: str | None = None
    company_description: str | None = None
    created_at: str | None = None
    is_free: bool = True
    status: JobStatus = "pending"
    is_verified: bool = False
    is_hidden: bool = False
    has_warning: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return "pending" if value is None or value == "" else value

    @field_validator("vacancies", mode="before")
    @classmethod
    def _vacancies_text(cls, value: Any) -> Any:
        return "1" if value is None else str(value)

    @property
    def is_visible_to_job_seekers(self) -> bool:
        return self.status == "approved" and not self.is_hidden


class JobCreateRequest(BaseModel):
    title: str
    description: str
    location: str
    min_salary: int = Field(ge=0)
    max_salary: int = Field(ge=0)
    experience_level: ExperienceLevel = "Fresher"
    job_type: JobType = "Full Time"
    vacancies: int | None = Field(default=None, ge=1)
    company_name: str
    company_cin: str
    company_website: str | None = None
    company_description: str | None = None
    company_address: str | None = None
    disclaimer_checked: bool = False


MASKED_CIN_FALLBACK = "U74999******"


def mask_cin(cin: str | None) -> str:
    if not cin or len(cin) < 10:
        return MASKED_CIN_FALLBACK
    return f"{cin[:6]}***********{cin[-4:]}"


class JobOut(JobRecord):
    is_visible: bool = False

    @classmethod
    def from_record(cls, record: JobRecord, *, reveal_cin: bool = False) -> "JobOut":
        """Public view of a job; the CIN is masked unless the caller owns or moderates it."""
        data = record.model_dump()
        if not reveal_cin:
            data["company_cin"] = mask_cin(record.company_cin)
        return cls(**data, is_visible=record.is_visible_to_job_seekers)


class RiskAssessmentOut(BaseModel):
    tier: RiskTier
    tags: list[str] = Field(default_factory=list)


class AdminJobOut(JobOut):
    risk: RiskAssessmentOut
