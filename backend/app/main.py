"""
Studio Membership - FastAPI Application

Main entry point for the backend API.
Provides endpoints for the plan catalog, subscriptions and their
active/paused timeline.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.infrastructure.db.database import close_db, init_db
from app.infrastructure.exceptions import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    StudioMembershipError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"Studio Membership Backend starting in {settings.environment} mode...")

    await init_db()
    logger.info("Database connection pool initialized")

    yield

    # Shutdown
    await close_db()
    logger.info("Database connection pool closed")
    logger.info("Studio Membership Backend shutting down...")


app = FastAPI(
    title="Studio Membership",
    description="Plan subscriptions with an active/paused period ledger",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    DuplicateError: 409,
    InvalidStateError: 409,
}


@app.exception_handler(StudioMembershipError)
async def studio_error_handler(request: Request, exc: StudioMembershipError):
    """Render application errors with the status mapped to their class (500 otherwise)."""
    status_code = next(
        (code for error_class, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_class)),
        500,
    )
    if status_code >= 500:
        logger.error(f"Unhandled application error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "studio-membership"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Studio Membership API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from app.api.routes import admin, plans, subscriptions

app.include_router(plans.router, prefix="/api", tags=["Plans"])
app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(admin.router)
