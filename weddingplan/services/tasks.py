from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional

import asyncpg

from weddingplan.engine.catalog import (
    TASK_COMPLETED,
    TASK_PENDING,
    TASK_PRIORITIES,
    TASK_STATUSES,
)
from weddingplan.engine.milestones import parse_date

TASK_COLUMNS = """
id::text, category, title, description, owner, due_date, status, priority
"""

LIST_TASKS_SQL = f"""
SELECT {TASK_COLUMNS}
FROM tasks
WHERE wedding_id = $1::uuid
ORDER BY due_date ASC NULLS LAST, created_at ASC;
"""

# Open tasks due on or before the cutoff (overdue included)
WEEKLY_TASKS_SQL = f"""
SELECT {TASK_COLUMNS}
FROM tasks
WHERE wedding_id = $1::uuid
  AND status <> 'completed'
  AND due_date <= $2::date
ORDER BY due_date ASC;
"""

INSERT_TASK_SQL = f"""
INSERT INTO tasks (wedding_id, category, title, description, owner, due_date, status, priority)
VALUES ($1::uuid, $2, $3, $4, $5, $6::date, $7, $8)
RETURNING {TASK_COLUMNS};
"""

UPDATE_TASK_SQL = f"""
UPDATE tasks
SET category    = $3,
    title       = $4,
    description = $5,
    owner       = $6,
    due_date    = $7::date,
    status      = $8,
    priority    = $9,
    updated_at  = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING {TASK_COLUMNS};
"""

TOGGLE_TASK_SQL = """
UPDATE tasks
SET status = CASE WHEN status = 'completed' THEN 'pending' ELSE 'completed' END,
    updated_at = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text, status;
"""

DELETE_TASK_SQL = """
DELETE FROM tasks
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text;
"""

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DAY_GROUP_ORDER = ("Overdue", "Today", "Tomorrow", *WEEKDAYS, "No Date")


def _check_task(title: str, status: str, priority: str) -> None:
    if not title.strip():
        raise ValueError("Task title is required")
    if status not in TASK_STATUSES:
        raise ValueError(f"Invalid task status: {status}")
    if priority not in TASK_PRIORITIES:
        raise ValueError(f"Invalid task priority: {priority}")


async def list_tasks(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_TASKS_SQL, wedding_id)]


async def weekly_tasks(conn: asyncpg.Connection, wedding_id: str, today: date) -> list[dict[str, Any]]:
    rows = await conn.fetch(WEEKLY_TASKS_SQL, wedding_id, today + timedelta(days=7))
    return [dict(r) for r in rows]


async def create_task(
    conn: asyncpg.Connection,
    wedding_id: str,
    *,
    title: str,
    owner: str = "Both",
    category: Optional[str] = None,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
    status: str = TASK_PENDING,
    priority: str = "medium",
) -> dict[str, Any]:
    _check_task(title, status, priority)
    row = await conn.fetchrow(
        INSERT_TASK_SQL,
        wedding_id, category or None, title.strip(), description or None, owner, due_date, status, priority,
    )
    return dict(row)


async def update_task(
    conn: asyncpg.Connection,
    wedding_id: str,
    task_id: str,
    *,
    title: str,
    owner: str,
    status: str,
    priority: str,
    category: Optional[str] = None,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
) -> Optional[dict[str, Any]]:
    _check_task(title, status, priority)
    row = await conn.fetchrow(
        UPDATE_TASK_SQL,
        task_id, wedding_id, category or None, title.strip(), description or None, owner, due_date, status, priority,
    )
    return dict(row) if row else None


async def toggle_task(conn: asyncpg.Connection, wedding_id: str, task_id: str) -> Optional[dict[str, Any]]:
    """Flip a task between completed and pending."""
    row = await conn.fetchrow(TOGGLE_TASK_SQL, task_id, wedding_id)
    return dict(row) if row else None


async def delete_task(conn: asyncpg.Connection, wedding_id: str, task_id: str) -> bool:
    return await conn.fetchval(DELETE_TASK_SQL, task_id, wedding_id) is not None


def _day_label(due: Optional[date], today: date) -> str:
    if due is None:
        return "No Date"
    diff = (due - today).days
    if diff < 0:
        return "Overdue"
    if diff == 0:
        return "Today"
    if diff == 1:
        return "Tomorrow"
    return WEEKDAYS[due.weekday()]


def group_tasks_by_day(
    tasks: Iterable[Mapping[str, Any]], today: date
) -> list[tuple[str, list[Mapping[str, Any]]]]:
    """Bucket tasks into Overdue / Today / Tomorrow / weekday / No Date, in that order."""
    groups: dict[str, list[Mapping[str, Any]]] = {}
    for task in tasks:
        label = _day_label(parse_date(task.get("due_date")), today)
        groups.setdefault(label, []).append(task)
    return [(label, groups[label]) for label in DAY_GROUP_ORDER if label in groups]


def task_completion(tasks: Iterable[Mapping[str, Any]]) -> tuple[int, int]:
    """Returns (completed, total)."""
    total = completed = 0
    for t in tasks:
        total += 1
        if t.get("status") == TASK_COMPLETED:
            completed += 1
    return completed, total
