import logging

import asyncpg
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .config import settings
from .db import close_db_pool, get_pool, init_db_pool
from .services.weddings import WeddingNotFound
from .web.auth import NotAuthenticated, RecordNotFound
from .web.common import redirect
from .web.guest_routes import router as guest_router
from .web.planning_routes import router as planning_router
from .web.routes import router as wedding_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Wedding Planner", version="0.1.0")
load_dotenv()
app.include_router(wedding_router)
app.include_router(guest_router)
app.include_router(planning_router)


@app.exception_handler(NotAuthenticated)
async def _not_authenticated(request: Request, exc: NotAuthenticated):
    if request.url.path.startswith("/api/"):
        return JSONResponse({"detail": "Not authenticated"}, status_code=401)
    return RedirectResponse(url=settings.auth_login_url, status_code=303)


@app.exception_handler(WeddingNotFound)
async def _wedding_not_found(request: Request, exc: WeddingNotFound):
    logger.info("wedding not found path=%s", request.url.path)
    return JSONResponse({"detail": "Wedding not found"}, status_code=404)


@app.exception_handler(RecordNotFound)
async def _record_not_found(request: Request, exc: RecordNotFound):
    logger.info("malformed %s path=%s", exc.name, request.url.path)
    if exc.back_url and not request.url.path.startswith("/api/"):
        return redirect(exc.back_url, error="Not found")
    return JSONResponse({"detail": "Not found"}, status_code=404)


@app.on_event("startup")
async def _startup():
    await init_db_pool()


@app.on_event("shutdown")
async def _shutdown():
    await close_db_pool()


@app.get("/")
async def index():
    return RedirectResponse(url="/weddings", status_code=303)


@app.get("/health")
async def health():
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            db_ok = await conn.fetchval("SELECT 1") == 1
    except (asyncpg.PostgresError, OSError, RuntimeError) as e:
        logger.warning("health: database unreachable: %s", e)
        db_ok = False
    return {"ok": db_ok, "service": settings.service_name, "env": settings.env}
