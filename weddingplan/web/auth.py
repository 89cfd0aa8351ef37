"""
Session verification and wedding membership checks.

Sessions are HS256 JWTs issued by the hosted auth provider; this app only
verifies them. The token comes from the `session_token` cookie or an
`Authorization: Bearer` header, and its `sub` claim is the user id.
"""
import uuid
from typing import AsyncGenerator, Optional

import asyncpg
from fastapi import Cookie, Depends, Header, HTTPException, Request
from jose import JWTError, jwt

from ..config import settings
from ..db import get_pool
from ..engine.catalog import ROLE_ADMIN
from ..services.weddings import get_membership

_ALGORITHM = "HS256"


class NotAuthenticated(Exception):
    """Raised by require_user when no valid session token is present."""


class RecordNotFound(Exception):
    """A path id that cannot name a row. `back_url` is the page the form post came from."""

    def __init__(self, name: str, back_url: Optional[str] = None):
        super().__init__(name)
        self.name = name
        self.back_url = back_url


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------

def decode_session(token: str) -> str:
    """Return the user id from a session token. Raises NotAuthenticated."""
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError:
        raise NotAuthenticated()
    user_id = payload.get("sub")
    if not user_id or not is_uuid(user_id):
        raise NotAuthenticated()
    return user_id


def is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Shared DB dependency
# ---------------------------------------------------------------------------

async def get_conn() -> AsyncGenerator[asyncpg.Connection, None]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


# ---------------------------------------------------------------------------
# Auth dependencies
# ---------------------------------------------------------------------------

async def require_user(
    session_token: Optional[str] = Cookie(default=None),
    authorization: Optional[str] = Header(default=None),
) -> dict:
    token = session_token
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    if not token:
        raise NotAuthenticated()
    return {"user_id": decode_session(token)}


async def require_member(
    wedding_id: str,
    user: dict = Depends(require_user),
    conn: asyncpg.Connection = Depends(get_conn),
) -> dict:
    """Resolves the path's wedding_id to the caller's membership. 404 for non-members."""
    if not is_uuid(wedding_id):
        raise HTTPException(status_code=404, detail="Wedding not found")
    membership = await get_membership(conn, wedding_id, user["user_id"])
    if not membership:
        raise HTTPException(status_code=404, detail="Wedding not found")
    return {
        "user_id": user["user_id"],
        "wedding_id": wedding_id,
        "member_id": membership["id"],
        "role": membership["role"],
        "display_name": membership["display_name"],
    }


async def require_admin(member: dict = Depends(require_member)) -> dict:
    """Extends require_member; raises 403 if role is not admin."""
    if member["role"] != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return member


async def check_record_ids(request: Request) -> None:
    """
    Router dependency: every `*_id` path parameter other than the wedding's
    must be a UUID, otherwise the row cannot exist. wedding_id is left to
    require_member.
    """
    for name, value in request.path_params.items():
        if not name.endswith("_id") or name == "wedding_id" or is_uuid(value):
            continue
        parts = request.url.path.strip("/").split("/")
        back_url = f"/w/{parts[1]}/{parts[2]}" if parts[0] == "w" and len(parts) > 2 else None
        raise RecordNotFound(name, back_url)
