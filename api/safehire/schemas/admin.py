from typing import Literal

from pydantic import BaseModel, Field

CompanyStatus = Literal["Pending", "Approved", "Rejected"]
ReviewQueue = Literal["all", "pending", "flagged", "review"]


class CompanyOut(BaseModel):
    name: str
    cin: str
    status: CompanyStatus
    is_verified: bool
    job_count: int


class CompanyVerifyRequest(BaseModel):
    company_name: str = Field(min_length=1)
    approve: bool


class FailedJobUpdateOut(BaseModel):
    job_id: str
    error: str


class CompanyVerifyOut(BaseModel):
    company: CompanyOut
    approve: bool
    partial: bool = False
    updated: list[str] = Field(default_factory=list)
    failed: list[FailedJobUpdateOut] = Field(default_factory=list)


class AdminOverviewOut(BaseModel):
    jobs_posted: int
    flagged_jobs: int
    employers_verified: int
    total_users: int | None = None
