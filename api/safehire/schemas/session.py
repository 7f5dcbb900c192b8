from typing import Literal

from pydantic import BaseModel

RoleName = Literal["guest", "job-seeker", "employer", "admin"]
RegistrableRole = Literal["job-seeker", "employer"]


class SessionOut(BaseModel):
    signed_in: bool
    role: RoleName
    subject: str | None = None
    email: str | None = None
    landing_view: str


class RoleRegistrationRequest(BaseModel):
    role: RegistrableRole


class NavigationDecisionOut(BaseModel):
    allowed: bool
    view: str
    reason: str | None = None
    redirect_to: str | None = None
    required_role: RoleName | None = None
