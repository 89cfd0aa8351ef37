"""Vendor, budget, timeline (tasks) and event pages. All mutations are form posts answered with 303 redirects."""
from datetime import datetime, timezone
from typing import Optional

import asyncpg
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse

from ..engine.catalog import TASK_PENDING, VENDOR_RESEARCHING
from ..services import budget as budget_service
from ..services import events as event_service
from ..services import tasks as task_service
from ..services import vendors as vendor_service
from ..services.weddings import load_wedding
from .auth import check_record_ids, get_conn, require_member
from .common import opt_date, opt_float, opt_int, opt_str, redirect, templates, wedding_url

router = APIRouter(prefix="/w/{wedding_id}", tags=["planning"], dependencies=[Depends(check_record_ids)])


# ---------------------------------------------------------------------------
# Vendors
# ---------------------------------------------------------------------------

@router.get("/vendors", response_class=HTMLResponse)
async def vendors_page(
    wedding_id: str,
    request: Request,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    vendors = await vendor_service.list_vendors(conn, wedding_id)
    by_category: dict[str, list[dict]] = {}
    for v in vendors:
        by_category.setdefault(v["category"], []).append(v)
    return templates.TemplateResponse("vendors.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "by_category": by_category,
        "error": error,
        "notice": notice,
    })


def _vendor_fields(
    category, name, status, contact_name, phone, email, website, quote, package_details, rating, notes
) -> dict:
    """Form strings to service kwargs. Raises ValueError for unparseable numbers."""
    return dict(
        category=category,
        name=name,
        status=status,
        contact_name=opt_str(contact_name),
        phone=opt_str(phone),
        email=opt_str(email),
        website=opt_str(website),
        quote=opt_float(quote),
        package_details=opt_str(package_details),
        rating=opt_int(rating),
        notes=opt_str(notes),
    )


@router.post("/vendors")
async def add_vendor(
    wedding_id: str,
    category: str = Form(...),
    name: str = Form(...),
    status: str = Form(VENDOR_RESEARCHING),
    contact_name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    website: str = Form(""),
    quote: str = Form(""),
    package_details: str = Form(""),
    rating: str = Form(""),
    notes: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "vendors")
    try:
        fields = _vendor_fields(
            category, name, status, contact_name, phone, email, website, quote, package_details, rating, notes
        )
        await vendor_service.create_vendor(conn, wedding_id, **fields)
    except ValueError as e:
        return redirect(url, error=str(e))
    return redirect(url, notice=f"Added {name.strip()}")


@router.post("/vendors/{vendor_id}/update")
async def edit_vendor(
    wedding_id: str,
    vendor_id: str,
    category: str = Form(...),
    name: str = Form(...),
    status: str = Form(...),
    contact_name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    website: str = Form(""),
    quote: str = Form(""),
    package_details: str = Form(""),
    rating: str = Form(""),
    notes: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "vendors")
    try:
        fields = _vendor_fields(
            category, name, status, contact_name, phone, email, website, quote, package_details, rating, notes
        )
        updated = await vendor_service.update_vendor(conn, wedding_id, vendor_id, **fields)
    except ValueError as e:
        return redirect(url, error=str(e))
    if not updated:
        return redirect(url, error="Vendor not found")
    return redirect(url, notice="Vendor updated")


@router.post("/vendors/{vendor_id}/delete")
async def remove_vendor(
    wedding_id: str,
    vendor_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "vendors")
    if not await vendor_service.delete_vendor(conn, wedding_id, vendor_id):
        return redirect(url, error="Vendor not found")
    return redirect(url, notice="Vendor removed")


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------

@router.get("/budget", response_class=HTMLResponse)
async def budget_page(
    wedding_id: str,
    request: Request,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    categories = await budget_service.list_categories(conn, wedding_id)
    expenses = await budget_service.list_expenses(conn, wedding_id)
    return templates.TemplateResponse("budget.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "categories": categories,
        "expenses": expenses,
        "category_names": {c["id"]: c["category"] for c in categories},
        "summary": budget_service.summarize_budget(categories),
        "error": error,
        "notice": notice,
    })


@router.post("/budget/seed")
async def seed_budget(
    wedding_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    inserted = await budget_service.seed_default_categories(conn, wedding_id, wedding.get("budget"))
    url = wedding_url(wedding_id, "budget")
    if not inserted:
        return redirect(url, error="Budget categories already exist")
    return redirect(url, notice=f"Created {inserted} categories")


@router.post("/budget/categories")
async def add_category(
    wedding_id: str,
    category: str = Form(...),
    allocated: str = Form(""),
    notes: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "budget")
    try:
        await budget_service.create_category(
            conn, wedding_id, category=category, allocated=opt_float(allocated) or 0, notes=opt_str(notes)
        )
    except ValueError as e:
        return redirect(url, error=str(e))
    return redirect(url)


@router.post("/budget/categories/{category_id}/update")
async def edit_category(
    wedding_id: str,
    category_id: str,
    allocated: str = Form(""),
    notes: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "budget")
    try:
        updated = await budget_service.update_category(
            conn, wedding_id, category_id, allocated=opt_float(allocated) or 0, notes=opt_str(notes)
        )
    except ValueError as e:
        return redirect(url, error=str(e))
    if not updated:
        return redirect(url, error="Category not found")
    return redirect(url)


@router.post("/budget/categories/{category_id}/delete")
async def remove_category(
    wedding_id: str,
    category_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "budget")
    if not await budget_service.delete_category(conn, wedding_id, category_id):
        return redirect(url, error="Category not found")
    return redirect(url)


@router.post("/budget/expenses")
async def add_expense(
    wedding_id: str,
    category_id: str = Form(...),
    amount: str = Form(...),
    description: str = Form(""),
    vendor: str = Form(""),
    paid: bool = Form(False),
    due_date: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "budget")
    try:
        parsed_amount = opt_float(amount)
        if parsed_amount is None:
            raise ValueError("Expense amount is required")
        created = await budget_service.add_expense(
            conn,
            wedding_id,
            category_id,
            amount=parsed_amount,
            description=opt_str(description),
            vendor=opt_str(vendor),
            paid=paid,
            due_date=opt_date(due_date),
        )
    except ValueError as e:
        return redirect(url, error=str(e))
    if not created:
        return redirect(url, error="Category not found")
    return redirect(url, notice="Expense added")


@router.post("/budget/expenses/{expense_id}/paid")
async def mark_expense_paid(
    wedding_id: str,
    expense_id: str,
    paid: bool = Form(False),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "budget")
    if not await budget_service.set_expense_paid(conn, wedding_id, expense_id, paid):
        return redirect(url, error="Expense not found")
    return redirect(url)


@router.post("/budget/expenses/{expense_id}/delete")
async def remove_expense(
    wedding_id: str,
    expense_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "budget")
    if not await budget_service.delete_expense(conn, wedding_id, expense_id):
        return redirect(url, error="Expense not found")
    return redirect(url, notice="Expense removed")


# ---------------------------------------------------------------------------
# Timeline (tasks)
# ---------------------------------------------------------------------------

@router.get("/timeline", response_class=HTMLResponse)
async def timeline_page(
    wedding_id: str,
    request: Request,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    tasks = await task_service.list_tasks(conn, wedding_id)
    completed, total = task_service.task_completion(tasks)
    return templates.TemplateResponse("timeline.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "tasks": tasks,
        "completed": completed,
        "total": total,
        "today": datetime.now(timezone.utc).date(),
        "error": error,
        "notice": notice,
    })


@router.post("/timeline/tasks")
async def add_task(
    wedding_id: str,
    title: str = Form(...),
    owner: str = Form("Both"),
    category: str = Form(""),
    description: str = Form(""),
    due_date: str = Form(""),
    status: str = Form(TASK_PENDING),
    priority: str = Form("medium"),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "timeline")
    try:
        await task_service.create_task(
            conn,
            wedding_id,
            title=title,
            owner=owner.strip() or "Both",
            category=opt_str(category),
            description=opt_str(description),
            due_date=opt_date(due_date),
            status=status,
            priority=priority,
        )
    except ValueError as e:
        return redirect(url, error=str(e))
    return redirect(url, notice="Task added")


@router.post("/timeline/tasks/{task_id}/update")
async def edit_task(
    wedding_id: str,
    task_id: str,
    title: str = Form(...),
    owner: str = Form("Both"),
    category: str = Form(""),
    description: str = Form(""),
    due_date: str = Form(""),
    status: str = Form(TASK_PENDING),
    priority: str = Form("medium"),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "timeline")
    try:
        updated = await task_service.update_task(
            conn,
            wedding_id,
            task_id,
            title=title,
            owner=owner.strip() or "Both",
            category=opt_str(category),
            description=opt_str(description),
            due_date=opt_date(due_date),
            status=status,
            priority=priority,
        )
    except ValueError as e:
        return redirect(url, error=str(e))
    if not updated:
        return redirect(url, error="Task not found")
    return redirect(url, notice="Task updated")


@router.post("/timeline/tasks/{task_id}/toggle")
async def toggle_task(
    wedding_id: str,
    task_id: str,
    next: str = Form("timeline"),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    # Toggled from the dashboard's weekly list as well as from the timeline
    page = "dashboard" if next == "dashboard" else "timeline"
    url = wedding_url(wedding_id, page)
    toggled = await task_service.toggle_task(conn, wedding_id, task_id)
    if not toggled:
        return redirect(url, error="Task not found")
    if toggled["status"] == "completed":
        return redirect(url, notice="Task completed!")
    return redirect(url)


@router.post("/timeline/tasks/{task_id}/delete")
async def remove_task(
    wedding_id: str,
    task_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "timeline")
    if not await task_service.delete_task(conn, wedding_id, task_id):
        return redirect(url, error="Task not found")
    return redirect(url, notice="Task removed")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@router.get("/events", response_class=HTMLResponse)
async def events_page(
    wedding_id: str,
    request: Request,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    events = await event_service.list_events(conn, wedding_id)
    return templates.TemplateResponse("events.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "events": events,
        "error": error,
        "notice": notice,
    })


@router.post("/events")
async def add_event(
    wedding_id: str,
    event_type: str = Form(...),
    title: str = Form(""),
    event_date: str = Form(""),
    location: str = Form(""),
    budget: str = Form(""),
    notes: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "events")
    try:
        await event_service.create_event(
            conn,
            wedding_id,
            event_type=event_type,
            title=opt_str(title),
            event_date=opt_date(event_date),
            location=opt_str(location),
            budget=opt_float(budget),
            notes=opt_str(notes),
        )
    except ValueError as e:
        return redirect(url, error=str(e))
    return redirect(url, notice="Event added")


@router.post("/events/{event_id}/update")
async def edit_event(
    wedding_id: str,
    event_id: str,
    event_type: str = Form(...),
    title: str = Form(""),
    event_date: str = Form(""),
    location: str = Form(""),
    budget: str = Form(""),
    notes: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "events")
    try:
        updated = await event_service.update_event(
            conn,
            wedding_id,
            event_id,
            event_type=event_type,
            title=opt_str(title),
            event_date=opt_date(event_date),
            location=opt_str(location),
            budget=opt_float(budget),
            notes=opt_str(notes),
        )
    except ValueError as e:
        return redirect(url, error=str(e))
    if not updated:
        return redirect(url, error="Event not found")
    return redirect(url, notice="Event updated")


@router.post("/events/{event_id}/delete")
async def remove_event(
    wedding_id: str,
    event_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    url = wedding_url(wedding_id, "events")
    if not await event_service.delete_event(conn, wedding_id, event_id):
        return redirect(url, error="Event not found")
    return redirect(url, notice="Event removed")
