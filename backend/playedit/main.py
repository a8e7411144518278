"""
PlayedIt API — FastAPI application entry point.

Routers are registered here. Each service lives in playedit/api/.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from playedit.api import rankings
from playedit.core.config import settings
from playedit.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="PlayedIt API",
    description="Ranked game lists for the PlayedIt app.",
    version="0.1.0",
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_DOCS else None,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(rankings.router, prefix="/rankings", tags=["rankings"])


# ── Health check ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
def health_check() -> dict:
    """Liveness probe. Returns 200 when the server is up."""
    return {"status": "ok", "version": app.version, "env": settings.APP_ENV}
