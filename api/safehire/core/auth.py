from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    GUEST = "guest"
    JOB_SEEKER = "job-seeker"
    EMPLOYER = "employer"
    ADMIN = "admin"

    @classmethod
    def coerce(cls, value: object, *, default: "Role") -> "Role":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                return default
        return default


@dataclass(slots=True)
class Principal:
    subject: str
    email: str | None = None


@dataclass(slots=True)
class Session:
    """Resolved identity and role for one caller, passed explicitly to services."""

    principal: Principal | None
    role: Role
    signed_in: bool
    active: bool = True

    @classmethod
    def guest(cls) -> "Session":
        return cls(principal=None, role=Role.GUEST, signed_in=False)

    @property
    def effective_role(self) -> Role:
        if not self.active or not self.signed_in:
            return Role.GUEST
        return self.role

    @property
    def subject(self) -> str | None:
        if not self.active or self.principal is None:
            return None
        return self.principal.subject

    def invalidate(self) -> None:
        self.active = False
