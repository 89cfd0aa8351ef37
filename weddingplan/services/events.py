from __future__ import annotations

from datetime import date
from typing import Any, Optional

import asyncpg

from weddingplan.engine.catalog import EVENT_TYPE_VALUES

EVENT_COLUMNS = "id::text, event_type, title, event_date, location, budget, notes"

LIST_EVENTS_SQL = f"""
SELECT {EVENT_COLUMNS}
FROM events
WHERE wedding_id = $1::uuid
ORDER BY event_date ASC NULLS LAST, created_at ASC;
"""

INSERT_EVENT_SQL = f"""
INSERT INTO events (wedding_id, event_type, title, event_date, location, budget, notes)
VALUES ($1::uuid, $2, $3, $4::date, $5, $6::numeric, $7)
RETURNING {EVENT_COLUMNS};
"""

UPDATE_EVENT_SQL = f"""
UPDATE events
SET event_type = $3,
    title      = $4,
    event_date = $5::date,
    location   = $6,
    budget     = $7::numeric,
    notes      = $8,
    updated_at = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING {EVENT_COLUMNS};
"""

DELETE_EVENT_SQL = """
DELETE FROM events
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text;
"""


def _check_event_type(event_type: str) -> str:
    if event_type not in EVENT_TYPE_VALUES:
        raise ValueError(f"Invalid event type: {event_type}")
    return event_type


async def list_events(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_EVENTS_SQL, wedding_id)]


async def create_event(
    conn: asyncpg.Connection,
    wedding_id: str,
    *,
    event_type: str,
    title: Optional[str] = None,
    event_date: Optional[date] = None,
    location: Optional[str] = None,
    budget: Optional[float] = None,
    notes: Optional[str] = None,
) -> dict[str, Any]:
    row = await conn.fetchrow(
        INSERT_EVENT_SQL,
        wedding_id, _check_event_type(event_type), title or None, event_date, location or None, budget, notes or None,
    )
    return dict(row)


async def update_event(
    conn: asyncpg.Connection,
    wedding_id: str,
    event_id: str,
    *,
    event_type: str,
    title: Optional[str] = None,
    event_date: Optional[date] = None,
    location: Optional[str] = None,
    budget: Optional[float] = None,
    notes: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    row = await conn.fetchrow(
        UPDATE_EVENT_SQL,
        event_id, wedding_id, _check_event_type(event_type), title or None, event_date,
        location or None, budget, notes or None,
    )
    return dict(row) if row else None


async def delete_event(conn: asyncpg.Connection, wedding_id: str, event_id: str) -> bool:
    return await conn.fetchval(DELETE_EVENT_SQL, event_id, wedding_id) is not None
