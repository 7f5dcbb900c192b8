from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from safehire.core.auth import Role


class View(str, Enum):
    HOME = "home"
    JOBS = "jobs"
    HOW_IT_WORKS = "how-it-works"
    LOGIN = "login"
    EMPLOYER_DASHBOARD = "employer-dashboard"
    MY_APPLICATIONS = "my-applications"
    APPLY_JOB = "apply-job"
    ADMIN_DASHBOARD = "admin-dashboard"
    COMPANY_PROFILE = "company-profile"


GUEST_PROTECTED_VIEWS = frozenset({View.EMPLOYER_DASHBOARD, View.MY_APPLICATIONS, View.ADMIN_DASHBOARD})

ADMIN_REQUIRED = "Access Denied: Admin privileges required."

# (view, reason, required role) per signed-in role.
_DENIED_VIEWS: dict[Role, dict[View, tuple[str, Role]]] = {
    Role.EMPLOYER: {
        View.JOBS: ("Access Denied: Please login as a Job Seeker to view jobs.", Role.JOB_SEEKER),
        View.MY_APPLICATIONS: ("Access Denied: Please login as a Job Seeker to view jobs.", Role.JOB_SEEKER),
        View.ADMIN_DASHBOARD: (ADMIN_REQUIRED, Role.ADMIN),
    },
    Role.JOB_SEEKER: {
        View.EMPLOYER_DASHBOARD: (
            "Access Denied: Please login as an Employer to access the dashboard.",
            Role.EMPLOYER,
        ),
        View.ADMIN_DASHBOARD: (ADMIN_REQUIRED, Role.ADMIN),
    },
}


@dataclass(frozen=True, slots=True)
class NavigationDecision:
    allowed: bool
    view: str
    reason: str | None = None
    redirect_to: View | None = None
    required_role: Role | None = None


def authorize(role: Role | str, view: View | str) -> NavigationDecision:
    """Decide whether ``role`` may open ``view``. Never raises."""
    resolved_role = Role.coerce(role, default=Role.GUEST)
    view_name = view.value if isinstance(view, View) else str(view)

    if resolved_role is Role.ADMIN:
        return NavigationDecision(allowed=True, view=view_name)

    try:
        resolved_view = View(view_name)
    except ValueError:
        return NavigationDecision(allowed=False, view=view_name, reason="Unknown view")

    if resolved_role is Role.GUEST:
        if resolved_view in GUEST_PROTECTED_VIEWS:
            return NavigationDecision(
                allowed=False,
                view=view_name,
                reason="Please login to continue.",
                redirect_to=View.LOGIN,
            )
        return NavigationDecision(allowed=True, view=view_name)

    denied = _DENIED_VIEWS.get(resolved_role, {}).get(resolved_view)
    if denied is not None:
        reason, required_role = denied
        return NavigationDecision(allowed=False, view=view_name, reason=reason, required_role=required_role)
    return NavigationDecision(allowed=True, view=view_name)


def login_destination(role: Role | str) -> View:
    resolved_role = Role.coerce(role, default=Role.GUEST)
    if resolved_role is Role.ADMIN:
        return View.ADMIN_DASHBOARD
    if resolved_role is Role.EMPLOYER:
        return View.EMPLOYER_DASHBOARD
    if resolved_role is Role.JOB_SEEKER:
        return View.JOBS
    return View.HOME
