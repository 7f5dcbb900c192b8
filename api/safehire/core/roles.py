from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from safehire.core.auth import Principal, Role, Session
from safehire.services.errors import StoreConflictError, StoreNotFoundError, StoreUnavailableError
from safehire.services.store import SUPERUSERS, USERS, RecordStore

logger = logging.getLogger(__name__)


async def resolve_role(principal: Principal | None, store: RecordStore) -> Session:
    """Map an authenticated principal to exactly one role.

    Missing or unreadable role data degrades to job-seeker while keeping the
    principal signed in; only a missing principal yields a guest.
    """
    if principal is None:
        return Session.guest()

    if principal.email and await _is_superuser(principal.email, store):
        return Session(principal=principal, role=Role.ADMIN, signed_in=True)

    try:
        record = await store.get(USERS, principal.subject)
    except StoreNotFoundError:
        logger.info("no role record for subject=%s; defaulting to job-seeker", principal.subject)
        return Session(principal=principal, role=Role.JOB_SEEKER, signed_in=True)
    except StoreUnavailableError:
        logger.warning("role lookup failed for subject=%s; defaulting to job-seeker", principal.subject)
        return Session(principal=principal, role=Role.JOB_SEEKER, signed_in=True)

    role = Role.coerce(record.get("role"), default=Role.JOB_SEEKER)
    if role is Role.GUEST:
        role = Role.JOB_SEEKER
    return Session(principal=principal, role=role, signed_in=True)


async def _is_superuser(email: str, store: RecordStore) -> bool:
    try:
        await store.get(SUPERUSERS, normalize_email(email))
    except StoreNotFoundError:
        return False
    except StoreUnavailableError:
        logger.warning("superuser lookup failed for email=%s", email)
        return False
    return True


async def seed_superusers(store: RecordStore, emails: Iterable[str]) -> int:
    seeded = 0
    for email in emails:
        normalized = normalize_email(email)
        if not normalized:
            continue
        try:
            await store.create(
                SUPERUSERS,
                {"email": normalized, "created_at": datetime.now(timezone.utc).isoformat()},
                record_id=normalized,
            )
        except StoreConflictError:
            continue
        seeded += 1
    if seeded:
        logger.info("seeded superuser records: %s", seeded)
    return seeded


def normalize_email(email: str) -> str:
    return email.strip().lower()
