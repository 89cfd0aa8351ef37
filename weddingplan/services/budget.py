"""
Budget categories and expenses.

A category's `spent` is the running total of its expenses; add_expense and
delete_expense adjust it in the same transaction as the expense row.
"""
from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable, Mapping, Optional

import asyncpg

from weddingplan.engine.catalog import DEFAULT_BUDGET_CATEGORIES

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

LIST_CATEGORIES_SQL = """
SELECT id::text, category, allocated, spent, notes
FROM budget_categories
WHERE wedding_id = $1::uuid
ORDER BY category ASC;
"""

COUNT_CATEGORIES_SQL = """
SELECT COUNT(*) FROM budget_categories WHERE wedding_id = $1::uuid;
"""

INSERT_CATEGORY_SQL = """
INSERT INTO budget_categories (wedding_id, category, allocated, spent, notes)
VALUES ($1::uuid, $2, $3::numeric, 0, $4)
RETURNING id::text, category, allocated, spent, notes;
"""

UPDATE_CATEGORY_SQL = """
UPDATE budget_categories
SET allocated = $3::numeric,
    notes = $4,
    updated_at = now()
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text, category, allocated, spent, notes;
"""

DELETE_CATEGORY_SQL = """
DELETE FROM budget_categories
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text;
"""

LOCK_CATEGORY_SQL = """
SELECT id FROM budget_categories
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
FOR UPDATE;
"""

LIST_EXPENSES_SQL = """
SELECT id::text, category_id::text, description, amount, vendor, paid, due_date, created_at
FROM budget_expenses
WHERE wedding_id = $1::uuid
ORDER BY created_at DESC;
"""

INSERT_EXPENSE_SQL = """
INSERT INTO budget_expenses (category_id, wedding_id, description, amount, vendor, paid, due_date)
VALUES ($1::uuid, $2::uuid, $3, $4::numeric, $5, $6, $7::date)
RETURNING id::text, category_id::text, description, amount, vendor, paid, due_date, created_at;
"""

DELETE_EXPENSE_SQL = """
DELETE FROM budget_expenses
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING category_id, amount;
"""

ADJUST_SPENT_SQL = """
UPDATE budget_categories
SET spent = GREATEST(spent + $2::numeric, 0),
    updated_at = now()
WHERE id = $1::uuid;
"""

SET_EXPENSE_PAID_SQL = """
UPDATE budget_expenses
SET paid = $3
WHERE id = $1::uuid
  AND wedding_id = $2::uuid
RETURNING id::text, paid;
"""


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def list_categories(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_CATEGORIES_SQL, wedding_id)]


async def seed_default_categories(conn: asyncpg.Connection, wedding_id: str, budget: Optional[float]) -> int:
    """
    Insert the default categories, splitting the overall budget evenly.

    No-op when the wedding already has categories. Returns the number inserted.
    """
    async with conn.transaction():
        if await conn.fetchval(COUNT_CATEGORIES_SQL, wedding_id):
            return 0
        per_category = math.floor(float(budget) / len(DEFAULT_BUDGET_CATEGORIES) + 0.5) if budget else 0
        await conn.executemany(
            INSERT_CATEGORY_SQL,
            [(wedding_id, name, per_category, None) for name in DEFAULT_BUDGET_CATEGORIES],
        )
    return len(DEFAULT_BUDGET_CATEGORIES)


async def create_category(
    conn: asyncpg.Connection, wedding_id: str, *, category: str, allocated: float = 0, notes: Optional[str] = None
) -> dict[str, Any]:
    if not category.strip():
        raise ValueError("Category name is required")
    if allocated < 0:
        raise ValueError("Allocated amount cannot be negative")
    return dict(await conn.fetchrow(INSERT_CATEGORY_SQL, wedding_id, category.strip(), allocated, notes or None))


async def update_category(
    conn: asyncpg.Connection, wedding_id: str, category_id: str, *, allocated: float, notes: Optional[str] = None
) -> Optional[dict[str, Any]]:
    if allocated < 0:
        raise ValueError("Allocated amount cannot be negative")
    row = await conn.fetchrow(UPDATE_CATEGORY_SQL, category_id, wedding_id, allocated, notes or None)
    return dict(row) if row else None


async def delete_category(conn: asyncpg.Connection, wedding_id: str, category_id: str) -> bool:
    return await conn.fetchval(DELETE_CATEGORY_SQL, category_id, wedding_id) is not None


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

async def list_expenses(conn: asyncpg.Connection, wedding_id: str) -> list[dict[str, Any]]:
    return [dict(r) for r in await conn.fetch(LIST_EXPENSES_SQL, wedding_id)]


async def add_expense(
    conn: asyncpg.Connection,
    wedding_id: str,
    category_id: str,
    *,
    amount: float,
    description: Optional[str] = None,
    vendor: Optional[str] = None,
    paid: bool = False,
    due_date: Optional[date] = None,
) -> Optional[dict[str, Any]]:
    """Record an expense and add it to the category's spent. None if the category is not this wedding's."""
    if amount <= 0:
        raise ValueError("Expense amount must be positive")
    async with conn.transaction():
        if not await conn.fetchval(LOCK_CATEGORY_SQL, category_id, wedding_id):
            return None
        row = await conn.fetchrow(
            INSERT_EXPENSE_SQL,
            category_id, wedding_id, description or None, amount, vendor or None, paid, due_date,
        )
        await conn.execute(ADJUST_SPENT_SQL, category_id, amount)
    return dict(row)


async def delete_expense(conn: asyncpg.Connection, wedding_id: str, expense_id: str) -> bool:
    async with conn.transaction():
        row = await conn.fetchrow(DELETE_EXPENSE_SQL, expense_id, wedding_id)
        if not row:
            return False
        await conn.execute(ADJUST_SPENT_SQL, row["category_id"], -row["amount"])
    return True


async def set_expense_paid(conn: asyncpg.Connection, wedding_id: str, expense_id: str, paid: bool) -> bool:
    return await conn.fetchrow(SET_EXPENSE_PAID_SQL, expense_id, wedding_id, paid) is not None


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def summarize_budget(
    categories: Iterable[Mapping[str, Any]], fallback_total: Optional[float] = None
) -> dict[str, Any]:
    """
    Totals across categories.

    fallback_total (the wedding's overall budget) is used as the allocated
    figure when no category has anything allocated yet.
    """
    rows = list(categories)
    allocated = sum(float(c.get("allocated") or 0) for c in rows)
    spent = sum(float(c.get("spent") or 0) for c in rows)
    if not allocated and fallback_total:
        allocated = float(fallback_total)
    percent = math.floor(spent / allocated * 100 + 0.5) if allocated > 0 else 0
    return {
        "allocated": allocated,
        "spent": spent,
        "remaining": allocated - spent,
        "percent_spent": percent,
        "over_budget": spent > allocated,
    }
