from __future__ import annotations

from typing import Any, Optional

import asyncpg

from weddingplan.engine.catalog import RSVP_PENDING, RSVP_STATUSES

GUEST_COLUMNS = """
id::text, name, group_name, relationship, priority, plus_one, address, notes,
rsvp_status, dietary_restrictions, latitude, longitude, geocoded_at
"""

LIST_GUESTS_SQL = f"""
SELECT {GUEST_COLUMNS}
FROM guests
WHERE wedding_id = $1::uuid
ORDER BY name ASC;
"""

LIST_GUESTS_WITH_ADDRESS_SQL = f"""
SELECT {GUEST_COLUMNS}
FROM guests
WHERE wedding_id = $1::uuid
  AND address IS NOT NULL
  AND address <> ''
ORDER BY name ASC;
"""

LOAD_GUEST_SQL = f"""
SELECT {GUEST_COLUMNS}
FROM guests
WHERE id = $1::uuid
  AND wedding_id = $2::uuid;
"""

INSERT_GUEST_SQL = f"""
INSERT INTO guests (
    wedding_id, name, group_name, relationship, priority,
    plus_one, address, notes, rsvp_status, dietary_restrictions
)
VALUES ($1::uuid, $2, $3, $4, $5, $6, $7, $8, $9, $10)
RETURNING {GUEST_COLUMNS};
"""

UPDATE_GUEST_SQL = f"""
UPDATE guests
SET name                 = $3,
    group_name           = $4,
    relationship         = $5,
    priority             = $6,
    plus_one             = $7,
    address              = $8,
    notes                = $9,
    dietary_restrictions = $10,
    -- a changed address invalidates stored coordinates
    latitude    = CASE WHEN address IS DISTINCT FROM $8 THEN NULL ELSE latitude END,
    longitude   = CASE WHEN address IS DISTINCT FROM $8 THEN NULL ELSE longitude END,
    geocoded_at = CASE WHEN address IS DISTINCT FROM $8 THEN NULL ELSE geocoded_at END,
    updated_at  = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING {GUEST_COLUMNS};
"""

SET_RSVP_SQL = """
UPDATE guests
SET rsvp_status = $3,
    updated_at = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text, rsvp_status;
"""

SAVE_COORDINATES_SQL = """
UPDATE guests
SET latitude = $3,
    longitude = $4,
    geocoded_at = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid;
"""

DELETE_GUEST_SQL = """
DELETE FROM guests
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text;
"""


def _check_rsvp(rsvp_status: str) -> str:
    if rsvp_status not in RSVP_STATUSES:
        raise ValueError(f"Invalid rsvp_status: {rsvp_status}")
    return rsvp_status


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


async def list_guests(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_GUESTS_SQL, wedding_id)]


async def list_guests_with_address(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_GUESTS_WITH_ADDRESS_SQL, wedding_id)]


async def get_guest(conn: asyncpg.Connection, wedding_id: str, guest_id: str) -> Optional[dict[str, Any]]:
    row = await conn.fetchrow(LOAD_GUEST_SQL, guest_id, wedding_id)
    return dict(row) if row else None


async def create_guest(
    conn: asyncpg.Connection,
    wedding_id: str,
    *,
    name: str,
    group_name: Optional[str] = None,
    relationship: Optional[str] = None,
    priority: Optional[str] = None,
    plus_one: Optional[str] = None,
    address: Optional[str] = None,
    notes: Optional[str] = None,
    rsvp_status: str = RSVP_PENDING,
    dietary_restrictions: Optional[str] = None,
) -> dict[str, Any]:
    name = name.strip()
    if not name:
        raise ValueError("Guest name is required")
    row = await conn.fetchrow(
        INSERT_GUEST_SQL,
        wedding_id,
        name,
        _blank_to_none(group_name),
        _blank_to_none(relationship),
        _blank_to_none(priority),
        _blank_to_none(plus_one),
        _blank_to_none(address),
        _blank_to_none(notes),
        _check_rsvp(rsvp_status),
        _blank_to_none(dietary_restrictions),
    )
    return dict(row)


async def update_guest(
    conn: asyncpg.Connection,
    wedding_id: str,
    guest_id: str,
    *,
    name: str,
    group_name: Optional[str] = None,
    relationship: Optional[str] = None,
    priority: Optional[str] = None,
    plus_one: Optional[str] = None,
    address: Optional[str] = None,
    notes: Optional[str] = None,
    dietary_restrictions: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    name = name.strip()
    if not name:
        raise ValueError("Guest name is required")
    row = await conn.fetchrow(
        UPDATE_GUEST_SQL,
        guest_id,
        wedding_id,
        name,
        _blank_to_none(group_name),
        _blank_to_none(relationship),
        _blank_to_none(priority),
        _blank_to_none(plus_one),
        _blank_to_none(address),
        _blank_to_none(notes),
        _blank_to_none(dietary_restrictions),
    )
    return dict(row) if row else None


async def set_rsvp(conn: asyncpg.Connection, wedding_id: str, guest_id: str, rsvp_status: str) -> Optional[dict[str, Any]]:
    row = await conn.fetchrow(SET_RSVP_SQL, guest_id, wedding_id, _check_rsvp(rsvp_status))
    return dict(row) if row else None


async def save_coordinates(
    conn: asyncpg.Connection, wedding_id: str, guest_id: str, lat: float, lng: float
) -> None:
    await conn.execute(SAVE_COORDINATES_SQL, guest_id, wedding_id, lat, lng)


async def delete_guest(conn: asyncpg.Connection, wedding_id: str, guest_id: str) -> bool:
    return await conn.fetchval(DELETE_GUEST_SQL, guest_id, wedding_id) is not None
