"""
Dashboard view model: headline stats, this week's tasks, vendor summary and
the milestone report for one wedding.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Optional

import asyncpg

from weddingplan.engine.catalog import TASK_COMPLETED
from weddingplan.engine.milestones import fetch_milestone_data, parse_date
from weddingplan.services.budget import list_categories, summarize_budget
from weddingplan.services.tasks import group_tasks_by_day, list_tasks, task_completion, weekly_tasks
from weddingplan.services.vendors import list_vendors, vendor_summary

GUEST_STATS_SQL = """
SELECT COUNT(*) AS total,
       COUNT(*) FILTER (WHERE rsvp_status = 'confirmed') AS confirmed,
       COUNT(*) FILTER (WHERE rsvp_status = 'pending') AS pending,
       COUNT(*) FILTER (WHERE rsvp_status = 'declined') AS declined
FROM guests
WHERE wedding_id = $1::uuid;
"""

UPCOMING_TASK_LIMIT = 5


def days_until(wedding_date: Any, today: date) -> Optional[int]:
    wedding = parse_date(wedding_date)
    if wedding is None:
        return None
    return (wedding - today).days


def _percent(part: int, whole: int) -> int:
    return math.floor(part / whole * 100 + 0.5) if whole else 0


async def load_dashboard(
    conn: asyncpg.Connection,
    wedding: dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    today = now.date()
    wedding_id = wedding["id"]

    guest_row = await conn.fetchrow(GUEST_STATS_SQL, wedding_id)
    categories = await list_categories(conn, wedding_id)
    tasks = await list_tasks(conn, wedding_id)
    vendors = await list_vendors(conn, wedding_id)
    this_week = await weekly_tasks(conn, wedding_id, today)

    milestones = await fetch_milestone_data(conn, wedding_id, wedding.get("wedding_date"), now=now)

    guests = dict(guest_row) if guest_row else {"total": 0, "confirmed": 0, "pending": 0, "declined": 0}
    completed, total_tasks = task_completion(tasks)

    return {
        "wedding": wedding,
        "days_until": days_until(wedding.get("wedding_date"), today),
        "guests": {
            **guests,
            "rsvp_percent": _percent(guests["confirmed"] + guests["declined"], guests["total"]),
        },
        "budget": summarize_budget(categories, fallback_total=wedding.get("budget")),
        "tasks": {
            "total": total_tasks,
            "completed": completed,
            "percent": _percent(completed, total_tasks),
            "upcoming": [t for t in tasks if t.get("status") != TASK_COMPLETED][:UPCOMING_TASK_LIMIT],
        },
        "weekly_tasks": group_tasks_by_day(this_week, today),
        "vendors": vendor_summary(vendors),
        "milestones": milestones,
    }
