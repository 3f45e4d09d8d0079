# app/main.py
"""
FastAPI application entry point.
Includes security middleware, error handlers for ledger failures, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import ledger, occupancy, totals, reset, events, scans, bans, setup, alerts, health
from app.database import create_tables
from app.config import settings
from app.exceptions import LedgerError, BannedPatron
from app.services import change_feed  # noqa: F401  (registers session listeners)
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Venue Occupancy Ledger API",
    description="Live headcounts per venue area, traffic totals, resets and door bans.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dashboard + door devices call the API directly) ────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to dashboard origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth in front of every endpoint.
    Health check and docs stay open.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Ledger Error Handler ─────────────────────────────────────────────────────
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code} {exc.message}")
    content = {"detail": exc.message, "error": exc.error_code}
    if isinstance(exc, BannedPatron):
        content["reason"] = "BANNED"
    return JSONResponse(status_code=exc.status_code, content=content)


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(ledger.router,    prefix="/api/v1", tags=["Ledger"])
app.include_router(occupancy.router, prefix="/api/v1", tags=["Occupancy"])
app.include_router(totals.router,    prefix="/api/v1", tags=["Traffic Totals"])
app.include_router(reset.router,     prefix="/api/v1", tags=["Reset"])
app.include_router(events.router,    prefix="/api/v1", tags=["Event Log"])
app.include_router(scans.router,     prefix="/api/v1", tags=["ID Scans"])
app.include_router(bans.router,      prefix="/api/v1", tags=["Bans"])
app.include_router(setup.router,     prefix="/api/v1", tags=["Setup"])
app.include_router(alerts.router,    prefix="/api/v1", tags=["Alerts"])
app.include_router(health.router,    prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("Occupancy ledger starting up...")
    create_tables()
    logger.info("Database tables ready")
    logger.info(f"Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("Occupancy ledger shutting down...")
