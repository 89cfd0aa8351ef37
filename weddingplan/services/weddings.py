from __future__ import annotations

import secrets
import string
from datetime import date
from typing import Any, Optional

import asyncpg

from weddingplan.engine.catalog import ROLE_ADMIN, ROLE_MEMBER

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 8


class WeddingNotFound(Exception):
    """Unknown wedding id or invite code."""


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

LOAD_WEDDING_SQL = """
SELECT id::text, name, partner1_name, partner2_name, wedding_date,
       budget, location, invite_code, created_at, updated_at
FROM weddings
WHERE id = $1::uuid;
"""

FIND_WEDDING_BY_CODE_SQL = """
SELECT id::text, name
FROM weddings
WHERE invite_code = $1
LIMIT 1;
"""

INSERT_WEDDING_SQL = """
INSERT INTO weddings (name, partner1_name, partner2_name, wedding_date, budget, location, invite_code)
VALUES ($1, $2, $3, $4::date, $5::numeric, $6, $7)
RETURNING id::text, name, partner1_name, partner2_name, wedding_date,
          budget, location, invite_code, created_at, updated_at;
"""

UPDATE_WEDDING_SQL = """
UPDATE weddings
SET name          = COALESCE($2, name),
    partner1_name = COALESCE($3, partner1_name),
    partner2_name = COALESCE($4, partner2_name),
    wedding_date  = $5::date,
    budget        = $6::numeric,
    location      = $7,
    updated_at    = now()
WHERE id = $1::uuid
RETURNING id::text, name, partner1_name, partner2_name, wedding_date,
          budget, location, invite_code, created_at, updated_at;
"""

INSERT_MEMBER_SQL = """
INSERT INTO wedding_members (wedding_id, user_id, role, display_name)
VALUES ($1::uuid, $2::uuid, $3, $4)
RETURNING id::text;
"""

JOIN_MEMBER_SQL = """
INSERT INTO wedding_members (wedding_id, user_id, role, display_name)
VALUES ($1::uuid, $2::uuid, $3, $4)
ON CONFLICT (wedding_id, user_id) DO NOTHING
RETURNING id::text;
"""

LOAD_MEMBERSHIP_SQL = """
SELECT id::text, role, display_name
FROM wedding_members
WHERE wedding_id = $1::uuid
  AND user_id = $2::uuid
LIMIT 1;
"""

LIST_MEMBERS_SQL = """
SELECT id::text, user_id::text, role, display_name, created_at
FROM wedding_members
WHERE wedding_id = $1::uuid
ORDER BY created_at ASC;
"""

LIST_USER_WEDDINGS_SQL = """
SELECT w.id::text, w.name, w.wedding_date, w.location, m.role
FROM wedding_members m
JOIN weddings w ON w.id = m.wedding_id
WHERE m.user_id = $1::uuid
ORDER BY w.wedding_date ASC NULLS LAST, w.created_at ASC;
"""

DELETE_MEMBER_SQL = """
DELETE FROM wedding_members
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
  AND user_id <> $3::uuid
RETURNING id::text;
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


async def load_wedding(conn: asyncpg.Connection, wedding_id: str) -> dict[str, Any]:
    row = await conn.fetchrow(LOAD_WEDDING_SQL, wedding_id)
    if not row:
        raise WeddingNotFound(f"Wedding not found: {wedding_id}")
    return dict(row)


async def create_wedding(
    conn: asyncpg.Connection,
    *,
    user_id: str,
    partner1_name: str,
    partner2_name: str,
    name: Optional[str] = None,
    wedding_date: Optional[date] = None,
    budget: Optional[float] = None,
    location: Optional[str] = None,
) -> dict[str, Any]:
    """Create a wedding and make the creator its admin."""
    async with conn.transaction():
        row = await conn.fetchrow(
            INSERT_WEDDING_SQL,
            name or f"{partner1_name} & {partner2_name}",
            partner1_name,
            partner2_name,
            wedding_date,
            budget,
            location or None,
            generate_invite_code(),
        )
        await conn.fetchval(INSERT_MEMBER_SQL, row["id"], user_id, ROLE_ADMIN, partner1_name)
    return dict(row)


async def join_wedding(
    conn: asyncpg.Connection,
    *,
    user_id: str,
    invite_code: str,
    display_name: Optional[str] = None,
) -> tuple[dict[str, Any], bool]:
    """
    Join a wedding by invite code.

    Returns (wedding, already_member). Raises WeddingNotFound for unknown codes.
    """
    wedding = await conn.fetchrow(FIND_WEDDING_BY_CODE_SQL, invite_code.strip().upper())
    if not wedding:
        raise WeddingNotFound("Invalid invite code")

    # No row back means the (wedding, user) pair already exists
    member_id = await conn.fetchval(JOIN_MEMBER_SQL, wedding["id"], user_id, ROLE_MEMBER, display_name or None)
    return dict(wedding), member_id is None


async def get_membership(conn: asyncpg.Connection, wedding_id: str, user_id: str) -> Optional[dict[str, Any]]:
    row = await conn.fetchrow(LOAD_MEMBERSHIP_SQL, wedding_id, user_id)
    return dict(row) if row else None


async def list_members(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_MEMBERS_SQL, wedding_id)]


async def list_user_weddings(conn: asyncpg.Connection, user_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_USER_WEDDINGS_SQL, user_id)]


async def update_wedding(
    conn: asyncpg.Connection,
    wedding_id: str,
    *,
    name: Optional[str],
    partner1_name: Optional[str],
    partner2_name: Optional[str],
    wedding_date: Optional[date],
    budget: Optional[float],
    location: Optional[str],
) -> dict[str, Any]:
    row = await conn.fetchrow(
        UPDATE_WEDDING_SQL,
        wedding_id,
        name or None,
        partner1_name or None,
        partner2_name or None,
        wedding_date,
        budget,
        location or None,
    )
    if not row:
        raise WeddingNotFound(f"Wedding not found: {wedding_id}")
    return dict(row)


async def remove_member(conn: asyncpg.Connection, wedding_id: str, member_id: str, acting_user_id: str) -> bool:
    """Remove a member row. An admin cannot remove their own membership."""
    return await conn.fetchval(DELETE_MEMBER_SQL, member_id, wedding_id, acting_user_id) is not None
