"""
Wedding planner schema migration.

Usage:
  python scripts/migrate.py

Creates (idempotent):
  - weddings, wedding_members
  - guests (with geocoded coordinates)
  - budget_categories, budget_expenses
  - vendors, tasks, events
"""
import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

import asyncpg

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    print("ERROR: DATABASE_URL not set")
    sys.exit(1)

TABLES = [
    ("weddings", """
        CREATE TABLE IF NOT EXISTS weddings (
            id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name          TEXT NOT NULL,
            partner1_name TEXT NOT NULL,
            partner2_name TEXT NOT NULL,
            wedding_date  DATE,
            budget        NUMERIC(12, 2),
            location      TEXT,
            invite_code   TEXT NOT NULL UNIQUE,
            created_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at    TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """),
    ("wedding_members", """
        CREATE TABLE IF NOT EXISTS wedding_members (
            id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            wedding_id   UUID NOT NULL REFERENCES weddings(id) ON DELETE CASCADE,
            user_id      UUID NOT NULL,
            role         TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('admin', 'member')),
            display_name TEXT,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
            UNIQUE (wedding_id, user_id)
        )
    """),
    ("guests", """
        CREATE TABLE IF NOT EXISTS guests (
            id                   UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            wedding_id           UUID NOT NULL REFERENCES weddings(id) ON DELETE CASCADE,
            name                 TEXT NOT NULL,
            group_name           TEXT,
            relationship         TEXT,
            priority             TEXT,
            plus_one             TEXT,
            address              TEXT,
            notes                TEXT,
            rsvp_status          TEXT NOT NULL DEFAULT 'pending'
                                 CHECK (rsvp_status IN ('pending', 'confirmed', 'declined')),
            dietary_restrictions TEXT,
            latitude             DOUBLE PRECISION,
            longitude            DOUBLE PRECISION,
            geocoded_at          TIMESTAMPTZ,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """),
    ("budget_categories", """
        CREATE TABLE IF NOT EXISTS budget_categories (
            id         UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            wedding_id UUID NOT NULL REFERENCES weddings(id) ON DELETE CASCADE,
            category   TEXT NOT NULL,
            allocated  NUMERIC(12, 2) NOT NULL DEFAULT 0,
            spent      NUMERIC(12, 2) NOT NULL DEFAULT 0,
            notes      TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """),
    ("budget_expenses", """
        CREATE TABLE IF NOT EXISTS budget_expenses (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            category_id UUID NOT NULL REFERENCES budget_categories(id) ON DELETE CASCADE,
            wedding_id  UUID NOT NULL REFERENCES weddings(id) ON DELETE CASCADE,
            description TEXT,
            amount      NUMERIC(12, 2) NOT NULL,
            vendor      TEXT,
            paid        BOOLEAN NOT NULL DEFAULT false,
            due_date    DATE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """),
    ("vendors", """
        CREATE TABLE IF NOT EXISTS vendors (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            wedding_id      UUID NOT NULL REFERENCES weddings(id) ON DELETE CASCADE,
            category        TEXT NOT NULL,
            name            TEXT NOT NULL,
            contact_name    TEXT,
            phone           TEXT,
            email           TEXT,
            website         TEXT,
            quote           NUMERIC(12, 2),
            package_details TEXT,
            status          TEXT NOT NULL DEFAULT 'researching',
            rating          INT CHECK (rating BETWEEN 1 AND 5),
            notes           TEXT,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """),
    ("tasks", """
        CREATE TABLE IF NOT EXISTS tasks (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            wedding_id  UUID NOT NULL REFERENCES weddings(id) ON DELETE CASCADE,
            category    TEXT,
            title       TEXT NOT NULL,
            description TEXT,
            owner       TEXT NOT NULL DEFAULT 'Both',
            due_date    DATE,
            status      TEXT NOT NULL DEFAULT 'pending',
            priority    TEXT NOT NULL DEFAULT 'medium',
            created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """),
    ("events", """
        CREATE TABLE IF NOT EXISTS events (
            id         UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            wedding_id UUID NOT NULL REFERENCES weddings(id) ON DELETE CASCADE,
            event_type TEXT NOT NULL,
            title      TEXT,
            event_date DATE,
            location   TEXT,
            budget     NUMERIC(12, 2),
            notes      TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """),
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS wedding_members_user_idx ON wedding_members (user_id)",
    "CREATE INDEX IF NOT EXISTS guests_wedding_idx ON guests (wedding_id)",
    "CREATE INDEX IF NOT EXISTS budget_categories_wedding_idx ON budget_categories (wedding_id)",
    "CREATE INDEX IF NOT EXISTS budget_expenses_wedding_idx ON budget_expenses (wedding_id)",
    "CREATE INDEX IF NOT EXISTS vendors_wedding_idx ON vendors (wedding_id)",
    "CREATE INDEX IF NOT EXISTS tasks_wedding_due_idx ON tasks (wedding_id, due_date)",
    "CREATE INDEX IF NOT EXISTS events_wedding_idx ON events (wedding_id)",
]


async def migrate():
    conn = await asyncpg.connect(DATABASE_URL)
    try:
        print("Running wedding planner migration...")
        async with conn.transaction():
            for name, ddl in TABLES:
                await conn.execute(ddl)
                print(f"OK {name}")
            for ddl in INDEXES:
                await conn.execute(ddl)
            print("OK indexes")

        print("\nMigration complete.")

    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(migrate())
