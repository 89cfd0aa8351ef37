"""Template environment and form helpers shared by the page routers."""
import os
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import quote_plus

from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from ..engine.catalog import (
    EVENT_TYPES,
    GUEST_PRIORITIES,
    RSVP_STATUSES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    VENDOR_CATEGORIES,
    VENDOR_STATUSES,
    VENUE_CATEGORY,
)

templates = Jinja2Templates(
    directory=os.path.join(os.path.dirname(__file__), "templates")
)


def _money(value: Any) -> str:
    if value is None:
        return "$0"
    amount = float(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.0f}"


templates.env.filters["money"] = _money
templates.env.globals.update(
    EVENT_TYPES=EVENT_TYPES,
    EVENT_TYPE_LABELS=dict(EVENT_TYPES),
    GUEST_PRIORITIES=GUEST_PRIORITIES,
    RSVP_STATUSES=RSVP_STATUSES,
    TASK_PRIORITIES=TASK_PRIORITIES,
    TASK_STATUSES=TASK_STATUSES,
    VENDOR_CATEGORIES=(VENUE_CATEGORY, *VENDOR_CATEGORIES, "Transportation"),
    VENDOR_STATUSES=VENDOR_STATUSES,
)


def redirect(url: str, error: Optional[str] = None, notice: Optional[str] = None) -> RedirectResponse:
    if error:
        url = f"{url}?error={quote_plus(error)}"
    elif notice:
        url = f"{url}?notice={quote_plus(notice)}"
    return RedirectResponse(url=url, status_code=303)


def wedding_url(wedding_id: str, page: str) -> str:
    return f"/w/{wedding_id}/{page}"


# ---------------------------------------------------------------------------
# Form value parsing (blank -> None; bad values raise ValueError)
# ---------------------------------------------------------------------------

def opt_str(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def opt_float(value: Optional[str]) -> Optional[float]:
    value = opt_str(value)
    if value is None:
        return None
    try:
        return float(Decimal(value.replace(",", "").lstrip("$")))
    except ArithmeticError:
        raise ValueError(f"Not a number: {value}")


def opt_int(value: Optional[str]) -> Optional[int]:
    value = opt_str(value)
    if value is None:
        return None
    return int(value)


def opt_date(value: Optional[str]) -> Optional[date]:
    value = opt_str(value)
    if value is None:
        return None
    return date.fromisoformat(value)
