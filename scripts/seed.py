"""
Seed a demo wedding for local development.

Usage:
  python scripts/seed.py --user-id 6f1c0e9a-2b7d-4c55-9d0e-3a1f7b2c4d5e

Options:
  --user-id   Auth user id that becomes the wedding's admin (required)
  --days      Days from today until the wedding (default 180)
"""
import argparse
import asyncio
import os
import sys
import uuid
from datetime import date, timedelta
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

import asyncpg

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    print("ERROR: DATABASE_URL not set")
    sys.exit(1)

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from weddingplan.engine.catalog import REHEARSAL_DINNER, RSVP_CONFIRMED, VENDOR_BOOKED, VENDOR_CONTACTED
from weddingplan.services.budget import seed_default_categories
from weddingplan.services.events import create_event
from weddingplan.services.guests import create_guest
from weddingplan.services.tasks import create_task
from weddingplan.services.vendors import create_vendor
from weddingplan.services.weddings import create_wedding

GUESTS = [
    ("Alex Rivera", "Partner 1", "Friend", "Must", "12 Oak St, Springfield, IL 62701", RSVP_CONFIRMED),
    ("Sam Chen", "Partner 1", "Cousin", "Must", "40 Elm Ave, Springfield, IL 62704", "pending"),
    ("Jordan Lee", "Partner 2", "Coworker", "Like", "9 Pine Rd, Austin, TX 78701", "pending"),
    ("Morgan Patel", "Partner 2", "Aunt", "Must", "221 Lake Dr, Madison, WI 53703", RSVP_CONFIRMED),
]

VENDORS = [
    ("Venue", "The Grand Barn", VENDOR_BOOKED, 12000),
    ("Photography", "Golden Hour Studio", VENDOR_BOOKED, 3500),
    ("Catering", "Harvest Table", VENDOR_CONTACTED, 8000),
]

# (title, days before the wedding, status)
TASKS = [
    ("Send save the dates", 150, "completed"),
    ("Create gift registry", 120, "pending"),
    ("Send invitations", 60, "pending"),
    ("Final dress fitting", 14, "pending"),
]


async def seed(user_id: str, days: int):
    wedding_date = date.today() + timedelta(days=days)
    conn = await asyncpg.connect(DATABASE_URL)
    try:
        wedding = await create_wedding(
            conn,
            user_id=user_id,
            partner1_name="Riley",
            partner2_name="Casey",
            wedding_date=wedding_date,
            budget=40000,
            location="Springfield, IL",
        )
        wedding_id = wedding["id"]
        print(f"OK Created wedding {wedding['name']} ({wedding_id}), invite code {wedding['invite_code']}")

        categories = await seed_default_categories(conn, wedding_id, 40000)
        print(f"OK Seeded {categories} budget categories")

        for name, side, relationship, priority, address, rsvp in GUESTS:
            await create_guest(
                conn,
                wedding_id,
                name=name,
                group_name=side,
                relationship=relationship,
                priority=priority,
                address=address,
                rsvp_status=rsvp,
            )
        print(f"OK Created {len(GUESTS)} guests")

        for category, name, status, quote in VENDORS:
            await create_vendor(conn, wedding_id, category=category, name=name, status=status, quote=quote)
        print(f"OK Created {len(VENDORS)} vendors")

        for title, days_before, status in TASKS:
            await create_task(
                conn,
                wedding_id,
                title=title,
                due_date=wedding_date - timedelta(days=days_before),
                status=status,
            )
        print(f"OK Created {len(TASKS)} tasks")

        await create_event(
            conn,
            wedding_id,
            event_type=REHEARSAL_DINNER,
            title="Rehearsal dinner",
            event_date=wedding_date - timedelta(days=1),
        )
        print("OK Created rehearsal dinner")

        print(f"\nDone. Open /w/{wedding_id}/dashboard")

    finally:
        await conn.close()


def main():
    parser = argparse.ArgumentParser(description="Seed a demo wedding")
    parser.add_argument("--user-id", required=True, help="Auth user id (UUID) of the admin")
    parser.add_argument("--days", type=int, default=180, help="Days until the wedding")
    args = parser.parse_args()
    try:
        uuid.UUID(args.user_id)
    except ValueError:
        parser.error("--user-id must be a UUID")
    asyncio.run(seed(args.user_id, args.days))


if __name__ == "__main__":
    main()
