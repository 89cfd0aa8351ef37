from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import asyncpg

from weddingplan.engine.catalog import (
    VENDOR_BOOKED,
    VENDOR_CONTACTED,
    VENDOR_RESEARCHING,
    VENDOR_STATUSES,
)

VENDOR_COLUMNS = """
id::text, category, name, contact_name, phone, email, website, quote,
package_details, status, rating, notes
"""

LIST_VENDORS_SQL = f"""
SELECT {VENDOR_COLUMNS}
FROM vendors
WHERE wedding_id = $1::uuid
ORDER BY category ASC, name ASC;
"""

INSERT_VENDOR_SQL = f"""
INSERT INTO vendors (
    wedding_id, category, name, contact_name, phone, email, website,
    quote, package_details, status, rating, notes
)
VALUES ($1::uuid, $2, $3, $4, $5, $6, $7, $8::numeric, $9, $10, $11::int, $12)
RETURNING {VENDOR_COLUMNS};
"""

UPDATE_VENDOR_SQL = f"""
UPDATE vendors
SET category        = $3,
    name            = $4,
    contact_name    = $5,
    phone           = $6,
    email           = $7,
    website         = $8,
    quote           = $9::numeric,
    package_details = $10,
    status          = $11,
    rating          = $12::int,
    notes           = $13,
    updated_at      = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING {VENDOR_COLUMNS};
"""

DELETE_VENDOR_SQL = """
DELETE FROM vendors
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text;
"""


def _check_vendor(category: str, name: str, status: str, rating: Optional[int]) -> None:
    if not category.strip() or not name.strip():
        raise ValueError("Vendor category and name are required")
    if status not in VENDOR_STATUSES:
        raise ValueError(f"Invalid vendor status: {status}")
    if rating is not None and not 1 <= rating <= 5:
        raise ValueError("Rating must be between 1 and 5")


async def list_vendors(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_VENDORS_SQL, wedding_id)]


async def create_vendor(
    conn: asyncpg.Connection,
    wedding_id: str,
    *,
    category: str,
    name: str,
    status: str = VENDOR_RESEARCHING,
    contact_name: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    website: Optional[str] = None,
    quote: Optional[float] = None,
    package_details: Optional[str] = None,
    rating: Optional[int] = None,
    notes: Optional[str] = None,
) -> dict[str, Any]:
    _check_vendor(category, name, status, rating)
    row = await conn.fetchrow(
        INSERT_VENDOR_SQL,
        wedding_id, category.strip(), name.strip(), contact_name, phone, email, website,
        quote, package_details, status, rating, notes,
    )
    return dict(row)


async def update_vendor(
    conn: asyncpg.Connection,
    wedding_id: str,
    vendor_id: str,
    *,
    category: str,
    name: str,
    status: str,
    contact_name: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    website: Optional[str] = None,
    quote: Optional[float] = None,
    package_details: Optional[str] = None,
    rating: Optional[int] = None,
    notes: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    _check_vendor(category, name, status, rating)
    row = await conn.fetchrow(
        UPDATE_VENDOR_SQL,
        vendor_id, wedding_id, category.strip(), name.strip(), contact_name, phone, email, website,
        quote, package_details, status, rating, notes,
    )
    return dict(row) if row else None


async def delete_vendor(conn: asyncpg.Connection, wedding_id: str, vendor_id: str) -> bool:
    return await conn.fetchval(DELETE_VENDOR_SQL, vendor_id, wedding_id) is not None


def vendor_summary(vendors: Iterable[Mapping[str, Any]]) -> dict[str, list[Mapping[str, Any]]]:
    """Split vendors into booked and still-being-considered. Rejected vendors are dropped."""
    booked: list[Mapping[str, Any]] = []
    considering: list[Mapping[str, Any]] = []
    for v in vendors:
        if v.get("status") == VENDOR_BOOKED:
            booked.append(v)
        elif v.get("status") in (VENDOR_RESEARCHING, VENDOR_CONTACTED):
            considering.append(v)
    return {"booked": booked, "considering": considering}
