"""
FastAPI API Service Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import bookings, parking_lots, reports, sensors, system
from database.connection import create_engine_from_settings, create_session_factory, wait_for_database
from parking.errors import ConflictError, NotFoundError
from parking.transactions.executor import TransactionError, TransactionExecutor
from shared.cache import CacheAside
from shared.config import get_settings
from shared.logging_config import configure_logging
from shared.redis_client import close_redis_client, create_redis_client
from shared.startup_validator import StartupValidationError, validate_startup_config

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create process-wide resources at startup and release them at shutdown.

    Stored on app.state and handed to routes by api.dependencies:
    - engine / session_factory: PostgreSQL
    - executor: TransactionExecutor for every multi-row write
    - cache: CacheAside over the Redis client

    Raises:
        StartupValidationError: If critical configuration is invalid
    """
    settings = get_settings()
    engine = create_engine_from_settings()
    redis_client = create_redis_client()
    cache = CacheAside(redis_client, default_ttl=settings.CACHE_DEFAULT_TTL)

    try:
        logger.info("Running API startup configuration validation...")
        try:
            await validate_startup_config(redis_client)
            logger.info("API startup configuration validation passed")
        except StartupValidationError as e:
            logger.critical(f"API startup blocked due to configuration errors: {e}")
            raise  # FastAPI will fail to start

        await wait_for_database(engine)

        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        app.state.executor = TransactionExecutor(engine)
        app.state.cache = cache
        logger.info(f"ParkPulse API started (environment={settings.ENVIRONMENT})")

        yield
    finally:
        await cache.close()
        await close_redis_client(redis_client)
        await engine.dispose()
        logger.info("ParkPulse API resources released")


app = FastAPI(
    title="ParkPulse API",
    version="1.0.0",
    lifespan=lifespan,
)

# Load settings for CORS configuration
settings = get_settings()
origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(system.router)
app.include_router(bookings.router)
app.include_router(reports.router)
app.include_router(sensors.router)
app.include_router(parking_lots.router)


def transaction_error_status(exc: TransactionError) -> int:
    """HTTP status for a failed transaction: 400, 404, 409, 503 or 500."""
    if isinstance(exc.cause, NotFoundError):
        return 404
    if isinstance(exc.cause, ConflictError):
        return 409
    if exc.constraint_violation == "FOREIGN_KEY_VIOLATION":
        return 400
    if exc.constraint_violation == "UNIQUE_VIOLATION":
        return 409
    if exc.retries_exhausted:
        return 503
    return 500


@app.exception_handler(TransactionError)
async def transaction_exception_handler(request: Request, exc: TransactionError) -> JSONResponse:
    """Translate TransactionError into an HTTP error response."""
    status_code = transaction_error_status(exc)

    if exc.is_business_error:
        message = exc.cause.message
        details = exc.cause.details
    elif exc.constraint_violation == "FOREIGN_KEY_VIOLATION":
        message = "Referenced user, parking lot or spot does not exist"
        details = {}
    elif exc.constraint_violation == "UNIQUE_VIOLATION":
        message = "Conflicts with an existing record"
        details = {}
    elif status_code == 503:
        message = "Service busy, please retry"
        details = {}
    else:
        # Unexpected database failure: do not leak driver messages
        logger.error(
            f"Unhandled transaction failure: {exc}",
            extra={"request_path": request.url.path, "attempt": exc.attempt_count},
        )
        message = "Internal server error"
        details = {}

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.error_code,
            "message": message,
            "details": details,
            "attempts": exc.attempt_count,
        },
    )


# Exception handler for request validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    details = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": details},
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "ParkPulse API - Use /health for health checks"}
