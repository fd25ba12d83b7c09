"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — builds the engine, store and processor at startup,
     disposes the connection pool at shutdown
  2. CORS middleware — allows frontend origins to make cross-origin requests
  3. Request logging middleware — one structured log line per request
  4. Exception handlers — maps domain errors to HTTP responses
  5. Router registration — mounts the API endpoint groups

Running locally:
    uvicorn app.main:app --reload
"""

import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import build_engine, build_session_factory, create_schema
from app.exceptions import register_exception_handlers
from app.logging_config import configure_logging
from app.provisioning import provision_accounts
from app.routers import accounts, clientes
from app.services.transaction_service import TransactionProcessor
from app.store import AccountStore

configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Builds the engine (and its pool) from settings, creates any missing
      tables, seeds the default accounts if enabled, and stores the
      TransactionProcessor on app.state for get_transaction_processor.

    Shutdown:
      Disposes of the engine, closing all pooled connections.
    """
    # --- Startup ---
    engine = build_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        lock_timeout=settings.DB_LOCK_TIMEOUT,
        echo=settings.DEBUG,
    )
    session_factory = build_session_factory(engine)

    await create_schema(engine)
    if settings.SEED_DEFAULT_ACCOUNTS:
        created = await provision_accounts(session_factory)
        if created:
            logger.info("Provisioned default accounts", account_ids=created)

    app.state.processor = TransactionProcessor(
        AccountStore(session_factory),
        statement_limit=settings.STATEMENT_TRANSACTION_LIMIT,
    )
    logger.info("Starting Ledger API", version=settings.APP_VERSION)
    yield
    # --- Shutdown ---
    logger.info("Shutting down Ledger API")
    await engine.dispose()


# Create the FastAPI application instance
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Account ledger with credit limits, atomic transactions and statements",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        process_time=round(time.perf_counter() - start_time, 4),
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(clientes.router, prefix="/clientes", tags=["Compatibility"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment probes."""
    return {"status": "ok", "version": settings.APP_VERSION}
