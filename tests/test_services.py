from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from weddingplan.engine.catalog import DEFAULT_BUDGET_CATEGORIES
from weddingplan.services import budget as budget_service
from weddingplan.services import events as event_service
from weddingplan.services import tasks as task_service
from weddingplan.services import weddings as wedding_service
from weddingplan.services.dashboard import days_until, load_dashboard
from weddingplan.services.vendors import create_vendor, vendor_summary


class _Transaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _conn(**async_methods):
    conn = MagicMock()
    conn.transaction.return_value = _Transaction()
    for name in ("fetch", "fetchrow", "fetchval", "execute", "executemany"):
        setattr(conn, name, AsyncMock(return_value=async_methods.get(name)))
    return conn


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------

def test_summarize_budget_totals_and_flags_overspend() -> None:
    summary = budget_service.summarize_budget(
        c for c in [{"allocated": 1000, "spent": 800}, {"allocated": 500, "spent": 900}]
    )

    assert summary["allocated"] == 1500
    assert summary["spent"] == 1700
    assert summary["remaining"] == -200
    assert summary["percent_spent"] == 113
    assert summary["over_budget"] is True


def test_summarize_budget_falls_back_to_wedding_budget() -> None:
    summary = budget_service.summarize_budget([], fallback_total=30000)

    assert summary["allocated"] == 30000
    assert summary["percent_spent"] == 0
    assert summary["over_budget"] is False


@pytest.mark.asyncio
async def test_seed_default_categories_splits_budget_evenly() -> None:
    conn = _conn(fetchval=0)

    inserted = await budget_service.seed_default_categories(conn, "w1", 25000)

    assert inserted == len(DEFAULT_BUDGET_CATEGORIES) == 16
    rows = conn.executemany.await_args.args[1]
    assert len(rows) == 16
    # 25000 / 16 = 1562.5 rounds half up
    assert {r[2] for r in rows} == {1563}
    assert rows[0][1] == DEFAULT_BUDGET_CATEGORIES[0]


@pytest.mark.asyncio
async def test_seed_default_categories_skips_when_categories_exist() -> None:
    conn = _conn(fetchval=3)

    assert await budget_service.seed_default_categories(conn, "w1", 25000) == 0
    conn.executemany.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_expense_rejects_non_positive_amount() -> None:
    with pytest.raises(ValueError):
        await budget_service.add_expense(_conn(), "w1", "c1", amount=0)


@pytest.mark.asyncio
async def test_add_expense_for_foreign_category_returns_none() -> None:
    conn = _conn(fetchval=None)

    assert await budget_service.add_expense(conn, "w1", "c1", amount=50) is None
    conn.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_expense_adjusts_category_spent() -> None:
    conn = _conn(fetchval="c1", fetchrow={"id": "e1", "amount": 50})

    expense = await budget_service.add_expense(conn, "w1", "c1", amount=50, description="Deposit")

    assert expense["id"] == "e1"
    conn.execute.assert_awaited_once_with(budget_service.ADJUST_SPENT_SQL, "c1", 50)


@pytest.mark.asyncio
async def test_delete_expense_reverses_spent() -> None:
    conn = _conn(fetchrow={"category_id": "c1", "amount": 75})

    assert await budget_service.delete_expense(conn, "w1", "e1") is True
    conn.execute.assert_awaited_once_with(budget_service.ADJUST_SPENT_SQL, "c1", -75)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def test_group_tasks_by_day_orders_buckets() -> None:
    today = date(2025, 3, 5)  # Wednesday
    tasks = [
        {"title": "no date", "due_date": None},
        {"title": "saturday", "due_date": date(2025, 3, 8)},
        {"title": "late", "due_date": date(2025, 3, 1)},
        {"title": "tomorrow", "due_date": "2025-03-06"},
        {"title": "today", "due_date": date(2025, 3, 5)},
    ]

    groups = task_service.group_tasks_by_day(tasks, today)

    assert [label for label, _ in groups] == ["Overdue", "Today", "Tomorrow", "Saturday", "No Date"]
    assert groups[-1][1][0]["title"] == "no date"


def test_task_completion_counts() -> None:
    tasks = [{"status": "completed"}, {"status": "pending"}, {"status": "completed"}]
    assert task_service.task_completion(tasks) == (2, 3)
    assert task_service.task_completion([]) == (0, 0)


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"title": "  "},
    {"title": "x", "status": "done"},
    {"title": "x", "priority": "urgent"},
])
async def test_create_task_validates(kwargs) -> None:
    with pytest.raises(ValueError):
        await task_service.create_task(_conn(), "w1", **kwargs)


@pytest.mark.asyncio
async def test_weekly_tasks_looks_one_week_ahead() -> None:
    conn = _conn(fetch=[])

    await task_service.weekly_tasks(conn, "w1", date(2025, 3, 5))

    conn.fetch.assert_awaited_once_with(task_service.WEEKLY_TASKS_SQL, "w1", date(2025, 3, 12))


# ---------------------------------------------------------------------------
# Vendors
# ---------------------------------------------------------------------------

def test_vendor_summary_drops_rejected() -> None:
    summary = vendor_summary([
        {"name": "a", "status": "booked"},
        {"name": "b", "status": "contacted"},
        {"name": "c", "status": "rejected"},
        {"name": "d", "status": "researching"},
    ])

    assert [v["name"] for v in summary["booked"]] == ["a"]
    assert [v["name"] for v in summary["considering"]] == ["b", "d"]


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"category": "Florist", "name": "", "status": "booked"},
    {"category": "Florist", "name": "Petals", "status": "maybe"},
    {"category": "Florist", "name": "Petals", "status": "booked", "rating": 6},
])
async def test_create_vendor_validates(kwargs) -> None:
    with pytest.raises(ValueError):
        await create_vendor(_conn(), "w1", **kwargs)


# ---------------------------------------------------------------------------
# Weddings
# ---------------------------------------------------------------------------

def test_invite_codes_are_eight_uppercase_alphanumerics() -> None:
    codes = {wedding_service.generate_invite_code() for _ in range(50)}

    assert all(len(c) == 8 and c.isalnum() and c == c.upper() for c in codes)
    assert len(codes) > 1


@pytest.mark.asyncio
async def test_load_wedding_raises_for_unknown_id() -> None:
    with pytest.raises(wedding_service.WeddingNotFound):
        await wedding_service.load_wedding(_conn(fetchrow=None), "00000000-0000-0000-0000-000000000000")


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def test_days_until() -> None:
    assert days_until("2025-06-01", date(2025, 5, 30)) == 2
    assert days_until(None, date(2025, 5, 30)) is None
    assert days_until(date(2025, 5, 1), date(2025, 5, 30)) == -29


@pytest.mark.asyncio
async def test_load_dashboard_assembles_view_model(monkeypatch) -> None:
    from weddingplan.services import dashboard as dashboard_mod

    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value={"total": 4, "confirmed": 2, "pending": 1, "declined": 1})

    monkeypatch.setattr(dashboard_mod, "list_categories", AsyncMock(return_value=[{"allocated": 100, "spent": 40}]))
    monkeypatch.setattr(dashboard_mod, "list_tasks", AsyncMock(return_value=[
        {"title": "a", "status": "completed"},
        {"title": "b", "status": "pending"},
    ]))
    monkeypatch.setattr(dashboard_mod, "list_vendors", AsyncMock(return_value=[{"name": "v", "status": "booked"}]))
    monkeypatch.setattr(dashboard_mod, "weekly_tasks", AsyncMock(return_value=[
        {"title": "b", "status": "pending", "due_date": date(2025, 5, 1)},
    ]))
    report = object()
    fetch = AsyncMock(return_value=report)
    monkeypatch.setattr(dashboard_mod, "fetch_milestone_data", fetch)

    wedding = {"id": "w1", "wedding_date": date(2025, 6, 1), "budget": 20000}
    data = await load_dashboard(conn, wedding, now=datetime(2025, 5, 1, tzinfo=timezone.utc))

    assert data["days_until"] == 31
    assert data["guests"]["rsvp_percent"] == 75
    assert data["budget"]["allocated"] == 100
    assert data["tasks"] == {
        "total": 2,
        "completed": 1,
        "percent": 50,
        "upcoming": [{"title": "b", "status": "pending"}],
    }
    assert data["weekly_tasks"][0][0] == "Today"
    assert [v["name"] for v in data["vendors"]["booked"]] == ["v"]
    assert data["milestones"] is report
    fetch.assert_awaited_once_with(conn, "w1", date(2025, 6, 1), now=datetime(2025, 5, 1, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_event_rejects_unknown_type() -> None:
    conn = _conn()

    with pytest.raises(ValueError):
        await event_service.create_event(conn, "w1", event_type="rehearsal-dinner")
    conn.fetchrow.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_event_blanks_become_null() -> None:
    conn = _conn(fetchrow={"id": "e1", "event_type": "rehearsal_dinner"})

    event = await event_service.create_event(conn, "w1", event_type="rehearsal_dinner", title="", location="")

    assert event["id"] == "e1"
    conn.fetchrow.assert_awaited_once_with(
        event_service.INSERT_EVENT_SQL, "w1", "rehearsal_dinner", None, None, None, None, None,
    )


@pytest.mark.asyncio
async def test_update_and_delete_missing_event() -> None:
    conn = _conn(fetchrow=None, fetchval=None)

    assert await event_service.update_event(conn, "w1", "e9", event_type="other") is None
    assert await event_service.delete_event(conn, "w1", "e9") is False


# ---------------------------------------------------------------------------
# Joining
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_join_wedding_inserts_member() -> None:
    conn = _conn(fetchrow={"id": "w1", "name": "Robin & Sam"}, fetchval="m2")

    wedding, already_member = await wedding_service.join_wedding(conn, user_id="u2", invite_code=" abcd1234 ")

    assert wedding["id"] == "w1"
    assert already_member is False
    conn.fetchrow.assert_awaited_once_with(wedding_service.FIND_WEDDING_BY_CODE_SQL, "ABCD1234")
    conn.fetchval.assert_awaited_once_with(wedding_service.JOIN_MEMBER_SQL, "w1", "u2", "member", None)


@pytest.mark.asyncio
async def test_join_wedding_twice_reports_existing_membership() -> None:
    # The insert conflicts on (wedding_id, user_id) and returns no row
    conn = _conn(fetchrow={"id": "w1", "name": "Robin & Sam"}, fetchval=None)

    _, already_member = await wedding_service.join_wedding(conn, user_id="u2", invite_code="ABCD1234")

    assert already_member is True
    assert "ON CONFLICT (wedding_id, user_id) DO NOTHING" in wedding_service.JOIN_MEMBER_SQL
