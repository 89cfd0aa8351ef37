import asyncio
import contextlib
from datetime import date, datetime, timezone

import pytest

from weddingplan.engine import milestones as milestones_mod
from weddingplan.engine.catalog import VENDOR_CATEGORIES
from weddingplan.engine.milestones import (
    COMPLETE,
    IN_PROGRESS,
    MILESTONE_IDS,
    NOT_STARTED,
    compute_milestones,
    fetch_milestone_data,
    parse_date,
    subtract_one_month,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _by_id(report):
    return {m.id: m for m in report.milestones}


def _compute(vendors=(), guests=(), tasks=(), events=(), wedding_date=None, now=NOW):
    return compute_milestones(vendors, guests, tasks, events, wedding_date, now=now)


# ---------------------------------------------------------------------------
# Reference scenarios
# ---------------------------------------------------------------------------

def test_empty_wedding_has_nothing_started() -> None:
    report = _compute()

    assert [m.id for m in report.milestones] == list(MILESTONE_IDS)
    assert all(m.status == NOT_STARTED for m in report.milestones)
    assert report.completed_count == 0
    assert report.total_count == 9
    assert report.next_milestone.id == "venue"


def test_booked_venue_completes_venue_milestone_with_vendor_name() -> None:
    report = _compute(vendors=[{"category": "Venue", "status": "booked", "name": "Grand Hall"}])

    venue = _by_id(report)["venue"]
    assert venue.status == COMPLETE
    assert venue.detail == "Grand Hall"
    assert report.next_milestone.id == "save-the-dates"


def test_partial_rsvps_are_in_progress_with_rounded_percentage() -> None:
    guests = [
        {"rsvp_status": "confirmed"},
        {"rsvp_status": "confirmed"},
        {"rsvp_status": "declined"},
        {"rsvp_status": "pending"},
    ]
    rsvps = _by_id(_compute(guests=guests))["rsvps"]

    assert rsvps.status == IN_PROGRESS
    assert rsvps.detail == "75% responded"


def test_no_guests_is_never_fully_responded() -> None:
    rsvps = _by_id(_compute(guests=[]))["rsvps"]

    assert rsvps.status == NOT_STARTED
    assert rsvps.detail == "Add guests first"


def test_final_details_counts_tasks_in_last_month() -> None:
    tasks = [
        {"title": "Confirm florist", "status": "completed", "due_date": date(2025, 5, 15)},
        {"title": "Seating chart", "status": "pending", "due_date": date(2025, 5, 20)},
        {"title": "Book venue", "status": "completed", "due_date": date(2024, 10, 1)},
    ]
    final = _by_id(_compute(tasks=tasks, wedding_date="2025-06-01"))["final-details"]

    assert final.status == IN_PROGRESS
    assert final.detail == "1/2 tasks"


def test_all_reference_vendor_categories_booked_completes_vendors() -> None:
    vendors = [{"category": c, "status": "booked", "name": f"{c} Co"} for c in VENDOR_CATEGORIES]
    vendors_milestone = _by_id(_compute(vendors=vendors))["vendors"]

    assert vendors_milestone.status == COMPLETE
    assert vendors_milestone.detail == "8/8 booked"


# ---------------------------------------------------------------------------
# Individual rules
# ---------------------------------------------------------------------------

def test_vendors_counts_distinct_categories_and_ignores_venue() -> None:
    vendors = [
        {"category": "Venue", "status": "booked", "name": "Hall"},
        {"category": "Photography", "status": "booked", "name": "A"},
        {"category": "Photography", "status": "booked", "name": "B"},
        {"category": "Catering", "status": "contacted", "name": "C"},
    ]
    milestone = _by_id(_compute(vendors=vendors))["vendors"]

    assert milestone.status == IN_PROGRESS
    assert milestone.detail == "1/8 booked"


def test_keyword_milestones_need_a_completed_task() -> None:
    tasks = [
        {"title": "Mail SAVE THE DATE cards", "status": "completed"},
        {"title": "Create registry", "status": "in_progress"},
        {"title": "Send invitations", "status": "completed"},
    ]
    by_id = _by_id(_compute(tasks=tasks))

    assert by_id["save-the-dates"].status == COMPLETE
    assert by_id["save-the-dates"].detail == "Sent"
    assert by_id["registry"].status == NOT_STARTED
    assert by_id["registry"].detail == "Set up your gift registry"
    assert by_id["invitations"].status == COMPLETE


def test_all_guests_responded_completes_rsvps() -> None:
    guests = [{"rsvp_status": "confirmed"}, {"rsvp_status": "declined"}, {"rsvp_status": "confirmed"}]
    rsvps = _by_id(_compute(guests=guests))["rsvps"]

    assert rsvps.status == COMPLETE
    assert rsvps.detail == "100% responded"


def test_rsvp_percentage_rounds_half_up() -> None:
    # 1 of 8 responded = 12.5%
    guests = [{"rsvp_status": "confirmed"}] + [{"rsvp_status": "pending"}] * 7
    assert _by_id(_compute(guests=guests))["rsvps"].detail == "13% responded"


def test_rehearsal_from_event_or_completed_task() -> None:
    from_event = _compute(events=[{"event_type": "rehearsal_dinner"}])
    from_task = _compute(tasks=[{"title": "Book Rehearsal space", "status": "completed"}])
    pending_task = _compute(tasks=[{"title": "Book rehearsal space", "status": "pending"}])

    assert _by_id(from_event)["rehearsal"].status == COMPLETE
    assert _by_id(from_task)["rehearsal"].status == COMPLETE
    assert _by_id(pending_task)["rehearsal"].status == NOT_STARTED


def test_rehearsal_event_type_must_match_exactly() -> None:
    report = _compute(events=[{"event_type": "rehearsal-dinner"}])
    assert _by_id(report)["rehearsal"].status == NOT_STARTED


def test_final_details_without_wedding_date_is_not_started() -> None:
    tasks = [{"title": "Seating chart", "status": "completed", "due_date": date(2025, 5, 20)}]
    final = _by_id(_compute(tasks=tasks))["final-details"]

    assert final.status == NOT_STARTED
    assert final.detail == "Tasks will appear here"


def test_final_details_window_is_inclusive_at_both_ends() -> None:
    tasks = [
        {"title": "a", "status": "completed", "due_date": "2025-05-01"},
        {"title": "b", "status": "completed", "due_date": "2025-06-01"},
        {"title": "c", "status": "completed", "due_date": "2025-04-30"},
    ]
    final = _by_id(_compute(tasks=tasks, wedding_date=date(2025, 6, 1)))["final-details"]

    assert final.status == COMPLETE
    assert final.detail == "2/2 tasks"


def test_wedding_day_depends_on_clock() -> None:
    before = _compute(wedding_date="2025-06-01", now=datetime(2025, 5, 31, 23, 0, tzinfo=timezone.utc))
    on_day = _compute(wedding_date="2025-06-01", now=datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc))

    assert _by_id(before)["wedding-day"].status == NOT_STARTED
    assert _by_id(before)["wedding-day"].detail == "Your special day awaits"
    assert _by_id(on_day)["wedding-day"].status == COMPLETE
    assert _by_id(on_day)["wedding-day"].detail == "Congratulations!"


def test_malformed_wedding_date_is_treated_as_absent() -> None:
    tasks = [{"title": "x", "status": "completed", "due_date": "2025-05-20"}]
    report = _compute(tasks=tasks, wedding_date="next june")
    by_id = _by_id(report)

    assert by_id["final-details"].status == NOT_STARTED
    assert by_id["wedding-day"].status == NOT_STARTED


def test_none_collections_count_as_empty() -> None:
    report = compute_milestones(None, None, None, None, None, now=NOW)
    assert report.completed_count == 0
    assert len(report.milestones) == 9


# ---------------------------------------------------------------------------
# Report invariants
# ---------------------------------------------------------------------------

def _everything_done():
    vendors = [{"category": "Venue", "status": "booked", "name": "Hall"}]
    vendors += [{"category": c, "status": "booked", "name": c} for c in VENDOR_CATEGORIES]
    tasks = [
        {"title": "Save the date cards", "status": "completed"},
        {"title": "Registry", "status": "completed"},
        {"title": "Invitations", "status": "completed"},
        {"title": "Final fitting", "status": "completed", "due_date": "2025-01-20"},
    ]
    return dict(
        vendors=vendors,
        guests=[{"rsvp_status": "confirmed"}],
        tasks=tasks,
        events=[{"event_type": "rehearsal_dinner"}],
        wedding_date="2025-02-01",
    )


def test_all_complete_has_no_next_milestone() -> None:
    report = _compute(**_everything_done())

    assert report.completed_count == report.total_count == 9
    assert report.next_milestone is None
    assert report.to_dict()["nextMilestone"] is None


@pytest.mark.parametrize("inputs", [
    {},
    {"guests": [{"rsvp_status": "confirmed"}]},
    {"vendors": [{"category": "Florist", "status": "booked", "name": "F"}]},
    _everything_done(),
])
def test_counts_and_next_milestone_are_consistent(inputs) -> None:
    report = _compute(**inputs)
    completed = [m for m in report.milestones if m.status == COMPLETE]
    first_open = next((m for m in report.milestones if m.status != COMPLETE), None)

    assert report.completed_count == len(completed)
    assert report.next_milestone == first_open
    assert _compute(**inputs) == report


def test_to_dict_uses_camel_case_and_omits_terminal_link() -> None:
    data = _compute().to_dict()

    assert set(data) == {"milestones", "nextMilestone", "completedCount", "totalCount"}
    assert data["milestones"][0]["linkLabel"] == "View vendors"
    assert "link" not in data["milestones"][-1]
    assert "linkLabel" not in data["milestones"][-1]


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("given,expected", [
    (date(2025, 6, 1), date(2025, 5, 1)),
    (date(2025, 1, 15), date(2024, 12, 15)),
    (date(2025, 3, 31), date(2025, 2, 28)),
    (date(2024, 3, 31), date(2024, 2, 29)),
])
def test_subtract_one_month_clamps_to_month_end(given, expected) -> None:
    assert subtract_one_month(given) == expected


def test_parse_date_accepts_common_shapes() -> None:
    assert parse_date("2025-06-01") == date(2025, 6, 1)
    assert parse_date("2025-06-01T23:30:00-05:00") == date(2025, 6, 2)
    assert parse_date(datetime(2025, 6, 1, 8, 0)) == date(2025, 6, 1)
    assert parse_date("") is None
    assert parse_date("not a date") is None
    assert parse_date(20250601) is None


# ---------------------------------------------------------------------------
# fetch_milestone_data
# ---------------------------------------------------------------------------

class _FakeConn:
    def __init__(self, tables):
        self._tables = tables
        self.queries = []

    async def fetch(self, sql, wedding_id):
        self.queries.append(sql)
        for table, rows in self._tables.items():
            if f"FROM {table}" in sql:
                if isinstance(rows, Exception):
                    raise rows
                return rows
        raise AssertionError(f"unexpected query: {sql}")


@pytest.mark.asyncio
async def test_fetch_milestone_data_reads_all_four_snapshots(monkeypatch) -> None:
    runs = []
    monkeypatch.setattr(milestones_mod, "log_milestone_run", lambda **kw: runs.append(kw))
    conn = _FakeConn({
        "vendors": [{"category": "Venue", "status": "booked", "name": "Grand Hall"}],
        "guests": [{"rsvp_status": "confirmed"}],
        "tasks": [],
        "events": [{"event_type": "rehearsal_dinner"}],
    })

    report = await fetch_milestone_data(conn, "wedding-1", None, now=NOW)
    by_id = _by_id(report)

    assert len(conn.queries) == 4
    assert by_id["venue"].status == COMPLETE
    assert by_id["rsvps"].status == COMPLETE
    assert by_id["rehearsal"].status == COMPLETE
    assert runs[0]["missing_inputs"] == []
    assert runs[0]["completed_count"] == 3


@pytest.mark.asyncio
async def test_fetch_milestone_data_treats_failed_read_as_empty(monkeypatch) -> None:
    runs = []
    monkeypatch.setattr(milestones_mod, "log_milestone_run", lambda **kw: runs.append(kw))
    conn = _FakeConn({
        "vendors": OSError("connection reset"),
        "guests": [{"rsvp_status": "pending"}],
        "tasks": [],
        "events": [],
    })

    report = await fetch_milestone_data(conn, "wedding-1", "2025-06-01", now=NOW)

    assert _by_id(report)["venue"].status == NOT_STARTED
    assert _by_id(report)["rsvps"].detail == "0% responded"
    assert runs[0]["missing_inputs"] == ["vendors"]


class _BoundedPool:
    """Blocks on acquire once every connection is checked out, as asyncpg does."""

    def __init__(self, size, tables):
        self._slots = asyncio.Semaphore(size)
        self._tables = tables

    @contextlib.asynccontextmanager
    async def acquire(self):
        async with self._slots:
            yield _FakeConn(self._tables)


@pytest.mark.asyncio
async def test_full_pool_of_concurrent_requests_completes(monkeypatch) -> None:
    monkeypatch.setattr(milestones_mod, "log_milestone_run", lambda **kw: None)
    pool = _BoundedPool(10, {"vendors": [], "guests": [], "tasks": [], "events": []})

    async def request():
        async with pool.acquire() as conn:
            await asyncio.sleep(0)
            return await fetch_milestone_data(conn, "wedding-1", None, now=NOW)

    reports = await asyncio.wait_for(asyncio.gather(*(request() for _ in range(10))), timeout=3)

    assert len(reports) == 10
    assert all(r.total_count == 9 for r in reports)
