#!/usr/bin/env python3
"""Emit deterministic SQL that grants the admin role through a superuser record."""

from __future__ import annotations

import argparse


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, email: str, revoke: bool = False) -> str:
    normalized = email.strip().lower()
    if not normalized:
        raise ValueError("email must not be empty")
    email_value = _quote_sql(normalized)

    if revoke:
        return f"""-- SafeHire superuser revoke SQL
-- Run this against the record store database (SH_DATABASE_URL).

delete from records
where collection = 'superusers' and id = {email_value};

select pg_notify('records_changed', 'superusers');
"""

    return f"""-- SafeHire superuser bootstrap SQL
-- Run this against the record store database (SH_DATABASE_URL).

insert into records (collection, id, data)
values ('superusers', {email_value}, jsonb_build_object('email', {email_value}, 'created_at', now()))
on conflict (collection, id) do nothing;

select pg_notify('records_changed', 'superusers');
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to bootstrap a SafeHire superuser.")
    parser.add_argument("--email", required=True, help="Identity-provider email that should resolve to admin")
    parser.add_argument(
        "--revoke",
        action="store_true",
        help="Emit SQL that removes the superuser record instead",
    )
    args = parser.parse_args()

    try:
        sql = render_sql(email=args.email, revoke=args.revoke)
    except ValueError as exc:
        parser.error(str(exc))
    print(sql)


if __name__ == "__main__":
    main()
