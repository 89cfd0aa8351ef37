import logging
from typing import Optional

import asyncpg
from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from ..adapters.geocoding.nominatim import geocode_addresses
from ..engine.milestones import fetch_milestone_data
from ..guests.clustering import group_guests_by_location
from ..services import guests as guest_service
from ..services.dashboard import load_dashboard
from ..services.weddings import (
    WeddingNotFound,
    create_wedding,
    join_wedding,
    list_members,
    list_user_weddings,
    load_wedding,
    remove_member,
    update_wedding,
)
from ..trace_logger import log_geocode_batch
from .auth import check_record_ids, get_conn, require_admin, require_member, require_user
from .common import opt_date, opt_float, opt_str, redirect, templates, wedding_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["weddings"], dependencies=[Depends(check_record_ids)])


# ---------------------------------------------------------------------------
# Wedding selection / creation / joining
# ---------------------------------------------------------------------------

@router.get("/weddings", response_class=HTMLResponse)
async def select_wedding(
    request: Request,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    code: Optional[str] = None,
    user: dict = Depends(require_user),
    conn: asyncpg.Connection = Depends(get_conn),
):
    weddings = await list_user_weddings(conn, user["user_id"])
    return templates.TemplateResponse("select.html", {
        "request": request,
        "weddings": weddings,
        "invite_code": (code or "").upper(),
        "error": error,
        "notice": notice,
    })


@router.get("/join", response_class=HTMLResponse)
async def join_page(
    request: Request,
    code: Optional[str] = None,
    user: dict = Depends(require_user),
    conn: asyncpg.Connection = Depends(get_conn),
):
    return await select_wedding(request, code=code, user=user, conn=conn)


@router.post("/weddings/new")
async def new_wedding(
    partner1_name: str = Form(...),
    partner2_name: str = Form(...),
    name: str = Form(""),
    wedding_date: str = Form(""),
    budget: str = Form(""),
    location: str = Form(""),
    user: dict = Depends(require_user),
    conn: asyncpg.Connection = Depends(get_conn),
):
    if not partner1_name.strip() or not partner2_name.strip():
        return redirect("/weddings", error="Both partner names are required")
    try:
        parsed_date = opt_date(wedding_date)
        parsed_budget = opt_float(budget)
    except ValueError as e:
        return redirect("/weddings", error=str(e))

    wedding = await create_wedding(
        conn,
        user_id=user["user_id"],
        partner1_name=partner1_name.strip(),
        partner2_name=partner2_name.strip(),
        name=opt_str(name),
        wedding_date=parsed_date,
        budget=parsed_budget,
        location=opt_str(location),
    )
    logger.info("wedding created id=%s by user=%s", wedding["id"], user["user_id"])
    return redirect(wedding_url(wedding["id"], "dashboard"))


@router.post("/join")
async def join(
    invite_code: str = Form(...),
    display_name: str = Form(""),
    user: dict = Depends(require_user),
    conn: asyncpg.Connection = Depends(get_conn),
):
    try:
        wedding, already_member = await join_wedding(
            conn,
            user_id=user["user_id"],
            invite_code=invite_code,
            display_name=opt_str(display_name),
        )
    except WeddingNotFound:
        return redirect("/weddings", error="Invalid invite code")

    if already_member:
        return redirect("/weddings", notice="You are already a member of this wedding!")
    return redirect(wedding_url(wedding["id"], "dashboard"), notice=f"Welcome to {wedding['name']}!")


@router.get("/w/{wedding_id}")
async def wedding_root(wedding_id: str, member: dict = Depends(require_member)):
    return redirect(wedding_url(wedding_id, "dashboard"))


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

@router.get("/w/{wedding_id}/dashboard", response_class=HTMLResponse)
async def dashboard(
    wedding_id: str,
    request: Request,
    notice: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    data = await load_dashboard(conn, wedding)
    return templates.TemplateResponse("dashboard.html", {
        "request": request,
        "member": member,
        "notice": notice,
        **data,
    })


# ---------------------------------------------------------------------------
# Guest map
# ---------------------------------------------------------------------------

@router.get("/w/{wedding_id}/map", response_class=HTMLResponse)
async def guest_map(
    wedding_id: str,
    request: Request,
    notice: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    guests = await guest_service.list_guests_with_address(conn, wedding_id)
    located = [g for g in guests if g["latitude"] is not None and g["longitude"] is not None]
    return templates.TemplateResponse("map.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "notice": notice,
        "groups": group_guests_by_location(located),
        "located_count": len(located),
        "missing_count": len(guests) - len(located),
    })


@router.post("/w/{wedding_id}/map/geocode")
async def geocode_missing(
    wedding_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    guests = await guest_service.list_guests_with_address(conn, wedding_id)
    pending = [(g["id"], g["address"]) for g in guests if g["latitude"] is None or g["longitude"] is None]

    results = await geocode_addresses(pending)
    for guest_id, result in results.items():
        await guest_service.save_coordinates(conn, wedding_id, guest_id, result.lat, result.lng)

    log_geocode_batch(wedding_id=wedding_id, requested=len(pending), resolved=len(results))
    return redirect(
        wedding_url(wedding_id, "map"),
        notice=f"Located {len(results)} of {len(pending)} addresses",
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@router.get("/w/{wedding_id}/settings", response_class=HTMLResponse)
async def settings_page(
    wedding_id: str,
    request: Request,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    members = await list_members(conn, wedding_id)
    return templates.TemplateResponse("settings.html", {
        "request": request,
        "member": member,
        "wedding": wedding,
        "members": members,
        "invite_url": f"{request.base_url}join?code={wedding['invite_code']}",
        "error": error,
        "notice": notice,
    })


@router.post("/w/{wedding_id}/settings")
async def save_settings(
    wedding_id: str,
    name: str = Form(""),
    partner1_name: str = Form(""),
    partner2_name: str = Form(""),
    wedding_date: str = Form(""),
    budget: str = Form(""),
    location: str = Form(""),
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    try:
        await update_wedding(
            conn,
            wedding_id,
            name=opt_str(name),
            partner1_name=opt_str(partner1_name),
            partner2_name=opt_str(partner2_name),
            wedding_date=opt_date(wedding_date),
            budget=opt_float(budget),
            location=opt_str(location),
        )
    except ValueError as e:
        return redirect(wedding_url(wedding_id, "settings"), error=str(e))
    return redirect(wedding_url(wedding_id, "settings"), notice="Settings saved")


@router.post("/w/{wedding_id}/settings/members/{member_id}/remove")
async def remove_wedding_member(
    wedding_id: str,
    member_id: str,
    admin: dict = Depends(require_admin),
    conn: asyncpg.Connection = Depends(get_conn),
):
    if not await remove_member(conn, wedding_id, member_id, admin["user_id"]):
        return redirect(wedding_url(wedding_id, "settings"), error="Member could not be removed")
    return redirect(wedding_url(wedding_id, "settings"), notice="Member removed")


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

@router.get("/api/weddings/{wedding_id}/milestones")
async def milestones_json(
    wedding_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    wedding = await load_wedding(conn, wedding_id)
    report = await fetch_milestone_data(conn, wedding_id, wedding.get("wedding_date"))
    return report.to_dict()


@router.get("/api/weddings/{wedding_id}/guests/clusters")
async def guest_clusters_json(
    wedding_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    guests = await guest_service.list_guests_with_address(conn, wedding_id)
    groups = group_guests_by_location(guests)
    return {"groups": [g.to_dict() for g in groups]}


class RsvpUpdate(BaseModel):
    rsvp_status: str


@router.post("/api/weddings/{wedding_id}/guests/{guest_id}/rsvp")
async def guest_rsvp_json(
    wedding_id: str,
    guest_id: str,
    body: RsvpUpdate,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    try:
        updated = await guest_service.set_rsvp(conn, wedding_id, guest_id, body.rsvp_status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not updated:
        raise HTTPException(status_code=404, detail="Guest not found")
    return updated


@router.get("/api/weddings/{wedding_id}/guests/{guest_id}")
async def guest_json(
    wedding_id: str,
    guest_id: str,
    member: dict = Depends(require_member),
    conn: asyncpg.Connection = Depends(get_conn),
):
    guest = await guest_service.get_guest(conn, wedding_id, guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")
    return guest
