#!/usr/bin/env python3
"""Emit deterministic SQL that grants a dictionary role to a Supabase user."""

from __future__ import annotations

import argparse


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, role: str, user_id: str | None, email: str | None, actor: str) -> str:
    role_value = _quote_sql(role)
    actor_value = _quote_sql(actor)

    if user_id:
        target_where = f"id = {_quote_sql(user_id)}::uuid"
        target_payload = f"jsonb_build_object('user_id', {_quote_sql(user_id)}, 'role', {role_value})"
    else:
        assert email is not None
        target_where = f"email = {_quote_sql(email)}"
        target_payload = f"jsonb_build_object('email', {_quote_sql(email)}, 'role', {role_value})"

    # Roles are merged into app_metadata.roles so existing grants survive.
    return f"""-- Dictionary review role bootstrap SQL
-- Run this in the Supabase SQL editor (or equivalent privileged Postgres session).

update auth.users
set raw_app_meta_data = coalesce(raw_app_meta_data, '{{}}'::jsonb)
  || jsonb_build_object(
    'roles',
    (
      select coalesce(jsonb_agg(distinct value), '[]'::jsonb)
      from jsonb_array_elements_text(
        coalesce(raw_app_meta_data -> 'roles', '[]'::jsonb) || jsonb_build_array({role_value})
      ) as value
    )
  )
where {target_where};

insert into moderation_events (entity_type, event_type, actor_id, payload)
values ('bootstrap', 'role_bootstrap', {actor_value}, {target_payload});
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to grant a dictionary review role.")
    parser.add_argument(
        "--role",
        choices=["user", "admin"],
        default="admin",
        help="Role to add to auth.users.raw_app_meta_data.roles",
    )
    identity_group = parser.add_mutually_exclusive_group(required=True)
    identity_group.add_argument("--user-id", help="Supabase auth.users id (UUID)")
    identity_group.add_argument("--email", help="Supabase auth.users email")
    parser.add_argument(
        "--actor",
        default="system",
        help="Actor recorded on the moderation event",
    )
    args = parser.parse_args()

    print(
        render_sql(
            role=args.role,
            user_id=args.user_id,
            email=args.email,
            actor=args.actor,
        )
    )


if __name__ == "__main__":
    main()
