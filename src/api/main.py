"""
hatgate FastAPI application.

Builds the OTP store, ledger and chain client at startup according to
settings, mounts the v1 router and enables CORS for browser clients.

Run with: uvicorn src.api.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from psycopg_pool import ConnectionPool

from src.adapters.chain.client import ChainClient
from src.adapters.repository import (
    InMemoryOtpRepository,
    InMemoryRegistrationLedger,
    PostgresOtpRepository,
    PostgresRegistrationLedger,
    run_migrations,
)
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Hat Registration API v1 - Request an OTP and register an address",
    },
]


def create_pool(settings: Settings) -> ConnectionPool:
    """
    Create the connection pool with checkout and statement timeouts.

    Both are bounded by store_timeout_seconds so no store call can block
    a request indefinitely.
    """
    statement_timeout_ms = int(settings.store_timeout_seconds * 1000)
    return ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.store_timeout_seconds,
        kwargs={"options": f"-c statement_timeout={statement_timeout_ms}"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the OTP store and ledger for the configured backend
    - Runs migrations on startup (postgres backend)
    - Connects the chain client
    - Closes connection pool on shutdown
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        pool = create_pool(settings)

        logger.info("Running database migrations...")
        run_migrations(pool)

        app.state.otp_repository = PostgresOtpRepository(pool)
        app.state.ledger = PostgresRegistrationLedger(pool)
    else:
        logger.warning("Using in-memory storage; OTPs and ledger are lost on restart")
        app.state.otp_repository = InMemoryOtpRepository()
        app.state.ledger = InMemoryRegistrationLedger()

    app.state.pool = pool
    app.state.chain_client = ChainClient.from_settings(settings)
    logger.info("Chain client ready, signer %s", app.state.chain_client.address)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="hatgate",
    description="Hat Registration API - Email-gated hat minting and Semaphore group admission",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["POST"],
    allow_headers=["*"],
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Liveness probe; also round-trips SELECT 1 when running on PostgreSQL.

    A database failure propagates and FastAPI answers 500.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
