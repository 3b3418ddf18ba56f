"""
GLOBE: map-centric ephemeral photo sharing.
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from limiter import limiter
from postgrest.exceptions import APIError as _PGRSTError
from supabase import AuthError

from config import get_settings
from database import get_supabase
from errors import auth_error_detail
from maintenance import run_maintenance
from scheduler import schedule_interval, scheduler
from security import is_version_supported
from routers import comments, follows, posts, profiles, security
from routers import map as map_router
from routers import auth as auth_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("globe")

settings = get_settings()


# ── Lifespan (startup / shutdown) ─────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    db = get_supabase()
    try:
        run_maintenance(db)
    except Exception as exc:
        logger.warning("Initial maintenance run failed: %s", exc)
    schedule_interval(lambda: run_maintenance(db), settings.maintenance_interval_minutes, "maintenance")
    scheduler.start()
    logger.info("Maintenance scheduler started (%d-minute interval)", settings.maintenance_interval_minutes)
    yield
    scheduler.shutdown(wait=False)
    logger.info("Maintenance scheduler stopped")


# ── App ────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="GLOBE",
    description="Share photos and moments on a world map. Posts fade after 24 hours.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Rate limiting ──────────────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# ── PostgREST error handler ────────────────────────────────────────────────
# PGRST116 = 0 rows returned from a .single() query → 404 Not Found
# Anything else → 400 Bad Request with the Postgres error message.
@app.exception_handler(_PGRSTError)
async def postgrest_error_handler(request: Request, exc: _PGRSTError):
    code = getattr(exc, "code", None) or ""
    message = getattr(exc, "message", None) or str(exc)
    info = exc.args[0] if exc.args else None
    if isinstance(info, dict):
        code = info.get("code") or code
        message = info.get("message") or message

    if code == "PGRST116":
        return JSONResponse(status_code=404, content={"detail": "Not found"})
    return JSONResponse(status_code=400, content={"detail": message})


# ── Supabase Auth error handler ────────────────────────────────────────────
@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    status_code, detail = auth_error_detail(exc)
    logging.getLogger("globe.auth").info("Auth error on %s: %s", request.url.path, status_code)
    return JSONResponse(status_code=status_code, content={"detail": detail})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def app_version_check(request: Request, call_next):
    """Return 426 Upgrade Required when the client app is older than the minimum version."""
    current = request.headers.get("X-App-Version")
    if current and not is_version_supported(current, settings.min_app_version):
        return JSONResponse(
            status_code=426,
            content={
                "detail": (
                    f"This version of GLOBE (v{current}) is no longer supported. "
                    f"Please update to v{settings.min_app_version} or later."
                ),
                "minimum_version": settings.min_app_version,
                "current_version": current,
            },
        )
    return await call_next(request)


# ── Routers ────────────────────────────────────────────────────────────────

PREFIX = "/api/v1"

app.include_router(auth_router.router, prefix=PREFIX)
app.include_router(profiles.router,    prefix=PREFIX)
app.include_router(posts.router,       prefix=PREFIX)
app.include_router(comments.router,    prefix=PREFIX)
app.include_router(follows.router,     prefix=PREFIX)
app.include_router(map_router.router,  prefix=PREFIX)
app.include_router(security.router,    prefix=PREFIX)


# ── Root API ───────────────────────────────────────────────────────────────

@app.get("/api/v1")
async def root():
    return {
        "name": settings.app_name,
        "description": "Share photos and moments on a world map.",
        "docs": "/docs",
        "version": app.version,
        "minimum_app_version": settings.min_app_version,
    }


@app.get("/health")
async def health():
    return {"status": "ok"}


# ── Dev runner ─────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
