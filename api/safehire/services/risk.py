from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

RiskTier = Literal["Low", "Medium", "High"]

HIGH_RISK_KEYWORD = "payment"
MEDIUM_RISK_SALARY_MARKER = "50000"


@dataclass(frozen=True, slots=True)
class RiskAssessment:
    tier: RiskTier
    tags: list[str] = field(default_factory=list)


def classify_risk(job: Any) -> RiskAssessment:
    """Advisory fraud-risk tier for a job; display only, never persisted."""
    description = _field(job, "description")
    salary = _field(job, "salary")
    has_warning = bool(_field(job, "has_warning", default=False))
    return classify_risk_fields(description=description, salary=salary, has_warning=has_warning)


def classify_risk_fields(*, description: str | None, salary: str | None, has_warning: bool) -> RiskAssessment:
    lowered = (description or "").lower()
    mentions_payment = HIGH_RISK_KEYWORD in lowered

    if has_warning or mentions_payment:
        tier: RiskTier = "High"
    elif MEDIUM_RISK_SALARY_MARKER in (salary or ""):
        tier = "Medium"
    else:
        tier = "Low"

    tags: list[str] = []
    if mentions_payment:
        tags.append("Payment mentioned")
    if "whatsapp" in lowered:
        tags.append("WhatsApp contact")
    if has_warning:
        tags.append("Flagged for review")
    if tier == "High":
        tags.append("Suspicious keywords")
    if not tags:
        tags.append("Clean scan")
    return RiskAssessment(tier=tier, tags=tags)


def _field(job: Any, name: str, *, default: Any = "") -> Any:
    if isinstance(job, dict):
        value = job.get(name, default)
    else:
        value = getattr(job, name, default)
    return default if value is None else value
