"""
Financial Hub Backend API
FastAPI application that turns inbound emails into financial items and
context highlights.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from finhub.config import load_settings
from finhub.dependencies import get_repository
from finhub.routers import email_intake, financial_items
from finhub.services.repository import FinancialRepository

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Own the process-wide handles.

    Settings are loaded at startup. The Supabase repository and the
    extraction oracle are built on first use by the dependencies in
    finhub.dependencies and dropped here on shutdown.
    """
    app.state.settings = load_settings()
    logger.info(
        "Display currency %s; conversion rates %s",
        app.state.settings.display_currency,
        app.state.settings.conversion_rates,
    )
    yield
    app.state.repository = None
    app.state.extractor = None


app = FastAPI(
    title="Financial Hub API",
    description="Inbound email ingestion into financial items and context highlights",
    version="0.1.0",
    lifespan=lifespan,
)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes http://localhost:3000 (dashboard dev server). Additional
    origins are read from the CORS_ORIGINS environment variable as a
    comma-separated list, e.g.:
        CORS_ORIGINS=https://hub.example.com,https://preview.hub.example.com

    Duplicates are removed while preserving order.
    """
    always_included = ["http://localhost:3000"]

    extra_origins: List[str] = []
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if cors_env:
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

    seen: set = set()
    origins: List[str] = []
    for origin in always_included + extra_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(email_intake.router, prefix="/webhook", tags=["webhook"])
app.include_router(financial_items.router, prefix="/api/data", tags=["financial-items"])


@app.get("/")
async def root():
    return {"message": "Financial Hub API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db(repository: FinancialRepository = Depends(get_repository)):
    """
    Test the Supabase database connection with a one-row select.
    Returns 503 on failure.
    """
    try:
        await run_in_threadpool(repository.ping)
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(exc)}",
        )
