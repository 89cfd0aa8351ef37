"""
Planning milestone derivation.

Infers how far along a wedding plan is from the current state of four tenant
collections (vendors, guests, tasks, events) plus the wedding date. The
result is a derived view: recomputed from scratch on every request, never
stored.

compute_milestones() is pure. fetch_milestone_data() loads the snapshots for
one wedding and delegates to it; a collection that fails to load is treated
as empty so the dashboard still gets a best-effort report.
"""
from __future__ import annotations

import asyncio
import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Optional

import asyncpg

from weddingplan.engine.catalog import (
    REHEARSAL_DINNER,
    RSVP_PENDING,
    TASK_COMPLETED,
    VENDOR_BOOKED,
    VENDOR_CATEGORIES,
    VENUE_CATEGORY,
)
from weddingplan.trace_logger import log_milestone_run

logger = logging.getLogger(__name__)

COMPLETE = "complete"
IN_PROGRESS = "in_progress"
NOT_STARTED = "not_started"

Row = Mapping[str, Any]

# ---------------------------------------------------------------------------
# Milestone catalogue (fixed order)
# ---------------------------------------------------------------------------

# id -> (label, description, link, link_label)
_MILESTONE_TEXT: dict[str, tuple[str, str, Optional[str], Optional[str]]] = {
    "venue": ("Book Venue", "Secure your wedding venue", "/vendors", "View vendors"),
    "save-the-dates": ("Send Save the Dates", "Let guests know to save your date", "/timeline", "View tasks"),
    "vendors": ("Book Vendors", "Photography, catering, music & more", "/vendors", "View vendors"),
    "registry": ("Create Registry", "Help guests know what to gift", "/timeline", "View tasks"),
    "invitations": ("Send Invitations", "Formally invite your guests", "/timeline", "View tasks"),
    "rsvps": ("Collect RSVPs", "Track guest responses", "/guests", "View guests"),
    "final-details": ("Finalize Details", "Complete final month preparations", "/timeline", "View tasks"),
    "rehearsal": ("Rehearsal", "Practice for the big day", "/timeline", "View tasks"),
    "wedding-day": ("Wedding Day", "Celebrate your love", None, None),
}

MILESTONE_IDS: tuple[str, ...] = tuple(_MILESTONE_TEXT)


@dataclass(frozen=True)
class Milestone:
    id: str
    label: str
    status: str
    detail: str
    description: str
    link: Optional[str] = None
    link_label: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "status": self.status,
            "detail": self.detail,
            "description": self.description,
        }
        if self.link is not None:
            out["link"] = self.link
            out["linkLabel"] = self.link_label
        return out


@dataclass(frozen=True)
class MilestoneReport:
    milestones: tuple[Milestone, ...]
    next_milestone: Optional[Milestone]
    completed_count: int
    total_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "milestones": [m.to_dict() for m in self.milestones],
            "nextMilestone": self.next_milestone.to_dict() if self.next_milestone else None,
            "completedCount": self.completed_count,
            "totalCount": self.total_count,
        }


def _milestone(milestone_id: str, status: str, detail: str) -> Milestone:
    label, description, link, link_label = _MILESTONE_TEXT[milestone_id]
    return Milestone(
        id=milestone_id,
        label=label,
        status=status,
        detail=detail,
        description=description,
        link=link,
        link_label=link_label,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a DB/form date value to a date.

    Accepts date, datetime (converted to UTC when aware) or an ISO string.
    Anything else, including unparseable strings, is treated as absent.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return parse_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            logger.debug("unparseable date value=%r", value)
            return None
    return None


def subtract_one_month(d: date) -> date:
    """Same day one calendar month earlier, clamped to the end of a shorter month."""
    year, month = (d.year - 1, 12) if d.month == 1 else (d.year, d.month - 1)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def _ratio_status(done: int, total: int) -> str:
    # An empty denominator is never "complete"
    if total == 0:
        return NOT_STARTED
    if done == total:
        return COMPLETE
    if done > 0:
        return IN_PROGRESS
    return NOT_STARTED


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _has_completed_task(tasks: list[Row], keyword: str) -> bool:
    needle = keyword.lower()
    return any(
        t.get("status") == TASK_COMPLETED and needle in (t.get("title") or "").lower()
        for t in tasks
    )


def _today_utc(now: datetime) -> date:
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date()


# ---------------------------------------------------------------------------
# Per-milestone rules
# ---------------------------------------------------------------------------

def _venue(vendors: list[Row]) -> Milestone:
    venue = next(
        (v for v in vendors if v.get("category") == VENUE_CATEGORY and v.get("status") == VENDOR_BOOKED),
        None,
    )
    if venue is None:
        return _milestone("venue", NOT_STARTED, "Find your perfect venue")
    return _milestone("venue", COMPLETE, venue.get("name") or "Booked")


def _keyword_milestone(milestone_id: str, tasks: list[Row], keyword: str, done: str, todo: str) -> Milestone:
    if _has_completed_task(tasks, keyword):
        return _milestone(milestone_id, COMPLETE, done)
    return _milestone(milestone_id, NOT_STARTED, todo)


def _vendors(vendors: list[Row]) -> Milestone:
    booked_categories = {
        v.get("category")
        for v in vendors
        if v.get("status") == VENDOR_BOOKED and v.get("category") != VENUE_CATEGORY
    }
    booked = len(booked_categories)
    total = len(VENDOR_CATEGORIES)
    if booked == total:
        status = COMPLETE
    elif booked > 0:
        status = IN_PROGRESS
    else:
        status = NOT_STARTED
    return _milestone("vendors", status, f"{booked}/{total} booked")


def _rsvps(guests: list[Row]) -> Milestone:
    total = len(guests)
    responded = sum(1 for g in guests if g.get("rsvp_status") != RSVP_PENDING)
    if total == 0:
        return _milestone("rsvps", NOT_STARTED, "Add guests first")
    pct = _round_half_up(responded / total * 100)
    return _milestone("rsvps", _ratio_status(responded, total), f"{pct}% responded")


def _final_details(tasks: list[Row], wedding: Optional[date]) -> Milestone:
    total = completed = 0
    if wedding is not None:
        window_start = subtract_one_month(wedding)
        for t in tasks:
            due = parse_date(t.get("due_date"))
            if due is None or not (window_start <= due <= wedding):
                continue
            total += 1
            if t.get("status") == TASK_COMPLETED:
                completed += 1

    detail = f"{completed}/{total} tasks" if total > 0 else "Tasks will appear here"
    return _milestone("final-details", _ratio_status(completed, total), detail)


def _rehearsal(tasks: list[Row], events: list[Row]) -> Milestone:
    has_event = any(e.get("event_type") == REHEARSAL_DINNER for e in events)
    if has_event or _has_completed_task(tasks, "rehearsal"):
        return _milestone("rehearsal", COMPLETE, "Planned")
    return _milestone("rehearsal", NOT_STARTED, "Plan your rehearsal dinner")


def _wedding_day(wedding: Optional[date], now: datetime) -> Milestone:
    if wedding is not None and wedding <= _today_utc(now):
        return _milestone("wedding-day", COMPLETE, "Congratulations!")
    return _milestone("wedding-day", NOT_STARTED, "Your special day awaits")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute_milestones(
    vendors: Optional[Iterable[Row]],
    guests: Optional[Iterable[Row]],
    tasks: Optional[Iterable[Row]],
    events: Optional[Iterable[Row]],
    wedding_date: Any = None,
    *,
    now: Optional[datetime] = None,
) -> MilestoneReport:
    """
    Derive the 9 planning milestones for one wedding.

    Missing collections (None) count as empty. A wedding date that cannot be
    parsed counts as not set. Only the wedding-day milestone depends on `now`.
    """
    vendor_rows = list(vendors or [])
    guest_rows = list(guests or [])
    task_rows = list(tasks or [])
    event_rows = list(events or [])
    wedding = parse_date(wedding_date)
    if now is None:
        now = datetime.now(timezone.utc)

    milestones = (
        _venue(vendor_rows),
        _keyword_milestone("save-the-dates", task_rows, "save the date", "Sent", "Notify your guests"),
        _vendors(vendor_rows),
        _keyword_milestone("registry", task_rows, "registry", "Created", "Set up your gift registry"),
        _keyword_milestone("invitations", task_rows, "invitation", "Sent", "Send out your invites"),
        _rsvps(guest_rows),
        _final_details(task_rows, wedding),
        _rehearsal(task_rows, event_rows),
        _wedding_day(wedding, now),
    )

    completed_count = sum(1 for m in milestones if m.status == COMPLETE)
    next_milestone = next((m for m in milestones if m.status != COMPLETE), None)

    return MilestoneReport(
        milestones=milestones,
        next_milestone=next_milestone,
        completed_count=completed_count,
        total_count=len(milestones),
    )


# ---------------------------------------------------------------------------
# SQL: read-only snapshots
# ---------------------------------------------------------------------------

LOAD_VENDORS_SQL = """
SELECT category, status, name
FROM vendors
WHERE wedding_id = $1::uuid;
"""

LOAD_GUESTS_SQL = """
SELECT rsvp_status
FROM guests
WHERE wedding_id = $1::uuid;
"""

LOAD_TASKS_SQL = """
SELECT title, status, due_date
FROM tasks
WHERE wedding_id = $1::uuid;
"""

LOAD_EVENTS_SQL = """
SELECT event_type
FROM events
WHERE wedding_id = $1::uuid;
"""


async def fetch_milestone_data(
    conn: asyncpg.Connection,
    wedding_id: str,
    wedding_date: Any = None,
    *,
    now: Optional[datetime] = None,
) -> MilestoneReport:
    """
    Load one wedding's snapshots and compute its milestone report.

    The four reads run one after another on the caller's connection; no
    further connection is taken from the pool while the caller holds one.
    """
    missing: list[str] = []

    async def _load(name: str, sql: str) -> list[Row]:
        try:
            return list(await conn.fetch(sql, wedding_id))
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            logger.warning("milestones: %s unavailable for wedding=%s: %s", name, wedding_id, e)
            missing.append(name)
            return []

    vendors = await _load("vendors", LOAD_VENDORS_SQL)
    guests = await _load("guests", LOAD_GUESTS_SQL)
    tasks = await _load("tasks", LOAD_TASKS_SQL)
    events = await _load("events", LOAD_EVENTS_SQL)

    report = compute_milestones(vendors, guests, tasks, events, wedding_date, now=now)

    log_milestone_run(
        wedding_id=wedding_id,
        completed_count=report.completed_count,
        total_count=report.total_count,
        next_milestone=report.next_milestone.id if report.next_milestone else None,
        missing_inputs=sorted(missing),
    )
    return report
