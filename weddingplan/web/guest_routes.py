import logging
import re
from typing import Optional
from urllib.parse import quote

import asyncpg
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, PlainTextResponse

from ..engine.catalog import RSVP_PENDING
from ..guests.csv_import import (
    TEMPLATE_CSV,
    CsvImportError,
    build_import_preview,
    commit_import,
    export_guests_csv,
)
from ..services import guests as guest_service
from ..services.weddings import load_wedding
from ..trace_logger import log_guest_import
from .auth import check_record_ids, get_conn, require_member
from .common import opt_str, redirect, templates, wedding_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/w/{wedding_id}/guests", tags=["guests"], dependencies=[Depends(check_record_ids)])


def _guests_url(wedding_id: str) -> str:
    return wedding_url(wedding_id, "guests")


def _content_disposition(filename: str) -> str:
    """ASCII fallback name plus the RFC 5987 UTF-8 form for non-Latin names."""
    fallback = re.sub(r"[^A-Za-z0-9._-]+", "_", filename).strip("_") or "guest-list.csv"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _csv_response(body: str, filename: str) -> PlainTextResponse:
    return PlainTextResponse(
        body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": _content_disposition(filename)},
    )


# ---------------------------------------------------------------------------
# List + CRUD
# ---------------------------------------------------------------------------

@router.get("", response_class=HTMLResponse)
async def guests_page(
    wedding_id: str,
    request: Request,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    rsvp: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    guests = await guest_service.list_guests(conn, wedding_id)
    counts = {status: 0 for status in ("pending", "confirmed", "declined")}
    for g in guests:
        counts[g["rsvp_status"]] = counts.get(g["rsvp_status"], 0) + 1
    shown = [g for g in guests if not rsvp or g["rsvp_status"] == rsvp]
    return templates.TemplateResponse("guests.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "guests": shown,
        "total": len(guests),
        "counts": counts,
        "rsvp_filter": rsvp,
        "error": error,
        "notice": notice,
    })


@router.post("")
async def add_guest(
    wedding_id: str,
    name: str = Form(...),
    group_name: str = Form(""),
    relationship: str = Form(""),
    priority: str = Form(""),
    plus_one: str = Form(""),
    address: str = Form(""),
    notes: str = Form(""),
    dietary_restrictions: str = Form(""),
    rsvp_status: str = Form(RSVP_PENDING),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    try:
        await guest_service.create_guest(
            conn,
            wedding_id,
            name=name,
            group_name=group_name,
            relationship=relationship,
            priority=priority,
            plus_one=plus_one,
            address=address,
            notes=notes,
            dietary_restrictions=dietary_restrictions,
            rsvp_status=rsvp_status,
        )
    except ValueError as e:
        return redirect(_guests_url(wedding_id), error=str(e))
    return redirect(_guests_url(wedding_id), notice=f"Added {name.strip()}")


@router.post("/{guest_id}/update")
async def edit_guest(
    wedding_id: str,
    guest_id: str,
    name: str = Form(...),
    group_name: str = Form(""),
    relationship: str = Form(""),
    priority: str = Form(""),
    plus_one: str = Form(""),
    address: str = Form(""),
    notes: str = Form(""),
    dietary_restrictions: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    try:
        updated = await guest_service.update_guest(
            conn,
            wedding_id,
            guest_id,
            name=name,
            group_name=group_name,
            relationship=relationship,
            priority=priority,
            plus_one=plus_one,
            address=address,
            notes=notes,
            dietary_restrictions=dietary_restrictions,
        )
    except ValueError as e:
        return redirect(_guests_url(wedding_id), error=str(e))
    if not updated:
        return redirect(_guests_url(wedding_id), error="Guest not found")
    return redirect(_guests_url(wedding_id), notice="Guest updated")


@router.post("/{guest_id}/rsvp")
async def update_rsvp(
    wedding_id: str,
    guest_id: str,
    rsvp_status: str = Form(...),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    try:
        updated = await guest_service.set_rsvp(conn, wedding_id, guest_id, rsvp_status)
    except ValueError as e:
        return redirect(_guests_url(wedding_id), error=str(e))
    if not updated:
        return redirect(_guests_url(wedding_id), error="Guest not found")
    return redirect(_guests_url(wedding_id))


@router.post("/{guest_id}/delete")
async def remove_guest(
    wedding_id: str,
    guest_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    if not await guest_service.delete_guest(conn, wedding_id, guest_id):
        return redirect(_guests_url(wedding_id), error="Guest not found")
    return redirect(_guests_url(wedding_id), notice="Guest removed")


# ---------------------------------------------------------------------------
# CSV export / import
# ---------------------------------------------------------------------------

@router.get("/export.csv")
async def export_guests(
    wedding_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    guests = await guest_service.list_guests(conn, wedding_id)
    return _csv_response(export_guests_csv(guests), f"{wedding['name'] or 'guests'}-guest-list.csv")


@router.get("/import/template.csv")
async def import_template(wedding_id: str, member: dict = Depends(require_member)):
    return _csv_response(TEMPLATE_CSV, "guest-list-template.csv")


@router.post("/import", response_class=HTMLResponse)
async def import_preview(
    wedding_id: str,
    request: Request,
    file: UploadFile = File(...),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return redirect(_guests_url(wedding_id), error="The CSV file must be UTF-8 encoded")

    existing = await guest_service.list_guests(conn, wedding_id)
    try:
        preview = build_import_preview(text, [g["name"] for g in existing], filename=file.filename)
    except CsvImportError as e:
        return redirect(_guests_url(wedding_id), error=str(e))

    wedding = await load_wedding(conn, wedding_id)
    return templates.TemplateResponse("import_preview.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "preview": preview,
        "csv_text": text,
    })


@router.post("/import/confirm")
async def import_confirm(
    wedding_id: str,
    csv_text: str = Form(...),
    include_duplicates: bool = Form(False),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    # Re-parse the reviewed text; nothing is held server-side between the two steps
    existing = await guest_service.list_guests(conn, wedding_id)
    try:
        preview = build_import_preview(csv_text, [g["name"] for g in existing])
        imported = await commit_import(conn, wedding_id, preview, include_duplicates=include_duplicates)
    except CsvImportError as e:
        return redirect(_guests_url(wedding_id), error=str(e))

    log_guest_import(
        wedding_id=wedding_id,
        imported=imported,
        duplicates_skipped=0 if include_duplicates else len(preview.guests) - imported,
        rows_skipped=preview.skipped_rows,
    )
    return redirect(_guests_url(wedding_id), notice=f"Successfully imported {imported} guests")
