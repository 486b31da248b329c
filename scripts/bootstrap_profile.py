#!/usr/bin/env python3
"""Emit SQL that assigns a GetWork role to an existing Supabase identity."""

from __future__ import annotations

import argparse

ROLES = ("worker", "organization", "referral")


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, role: str, user_id: str | None, email: str | None) -> str:
    if role not in ROLES:
        raise ValueError(f"unknown role: {role}")
    role_value = _quote_sql(role)

    if user_id:
        target_where = f"id = {_quote_sql(user_id)}::uuid"
    elif email:
        target_where = f"email = {_quote_sql(email)}"
    else:
        raise ValueError("user_id or email is required")

    return f"""-- GetWork role bootstrap SQL
-- Run this in the Supabase SQL editor (or equivalent privileged Postgres session).

update auth.users
set raw_user_meta_data = coalesce(raw_user_meta_data, '{{}}'::jsonb) || jsonb_build_object('role', {role_value})
where {target_where};

-- An identity that is already registered keeps its role.
insert into profiles (user_id, role)
select id, {role_value} from auth.users where {target_where}
on conflict (user_id) do nothing;
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to register a GetWork role for a Supabase identity.")
    parser.add_argument("--role", choices=ROLES, default="worker", help="Profile role to register")
    identity_group = parser.add_mutually_exclusive_group(required=True)
    identity_group.add_argument("--user-id", help="Supabase auth.users id (UUID)")
    identity_group.add_argument("--email", help="Supabase auth.users email")
    args = parser.parse_args()

    print(render_sql(role=args.role, user_id=args.user_id, email=args.email))


if __name__ == "__main__":
    main()
