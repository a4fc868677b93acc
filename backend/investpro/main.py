"""InvestPro FastAPI Application.

Fixed-term investment platform: accounts, reviewed deposits and withdrawals,
plans with a guaranteed ROI, and the maturity sweeper that pays them out.
"""

import logging
import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .models import init_db, configure_database, async_session_maker
from .routers import admin, auth, deposits, health, investments, platform, transactions, users, withdrawals
from .services.config import config_service, ConfigValidationException
from .services.errors import InvestProError
from .services.maturity import MaturitySweeper

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Apply the logging section of the configuration to the root logger."""
    logging.basicConfig(
        level=config_service.get("logging.level", "INFO"),
        format=config_service.get("logging.format"),
        force=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: Validate configuration
    try:
        config_service.load_and_validate()
    except ConfigValidationException as e:
        print(f"FATAL: {e}", file=sys.stderr)
        print("Server cannot start with invalid configuration.", file=sys.stderr)
        sys.exit(1)

    configure_logging()
    logger.info("Configuration validated successfully")

    # Initialize database
    configure_database(
        config_service.get("database.url"),
        config_service.get("database.timeout_seconds"),
    )
    await init_db()
    logger.info("Database initialized")

    # Start maturity sweeper
    sweeper = None
    if config_service.get("sweep.enabled", True):
        sweeper = MaturitySweeper(
            async_session_maker,
            interval_seconds=config_service.get("sweep.interval_seconds", 60),
        )
        await sweeper.start()

    yield

    # Shutdown
    logger.info("Initiating graceful shutdown...")
    if sweeper is not None:
        await sweeper.stop()
    logger.info("Graceful shutdown complete")


# Middleware is fixed at import time, so CORS origins are read here; an
# invalid file is reported and aborts startup in lifespan
try:
    config_service.load_and_validate()
except ConfigValidationException as e:
    logger.debug(f"Deferring configuration error to startup: {e}")

app = FastAPI(
    title="InvestPro API",
    description="Fixed-term investment platform API",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config_service.get("cors.allow_origins"),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvestProError)
async def domain_error_handler(request: Request, exc: InvestProError):
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(investments.router, prefix="/api/investments", tags=["Investments"])
app.include_router(deposits.router, prefix="/api/deposits", tags=["Deposits"])
app.include_router(withdrawals.router, prefix="/api/withdrawals", tags=["Withdrawals"])
app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(platform.router, prefix="/api/platform", tags=["Platform"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint redirect to docs."""
    return {"message": "InvestPro API", "docs": "/docs"}
