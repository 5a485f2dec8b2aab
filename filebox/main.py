from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import OperationalError
from redis.exceptions import RedisError
import asyncio
import logging

from filebox.core.config import settings
from filebox.core.database import AsyncSessionLocal, engine, get_db, init_models
from filebox.core.redis import redis_client
from filebox.core.storage import BlobStore, get_blob_store
from filebox.api.v1.router import api_router
from filebox.initial_data import init_admin
from filebox.tasks.cleanup import start_cleanup_task
from filebox.utils.exceptions import FileboxException, RateLimitError, StoreUnavailableError

logger = logging.getLogger(__name__)

STORE_RETRY_AFTER_SECONDS = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION} ({settings.ENVIRONMENT})")
    await init_models()

    # Connect to Redis; rate limiting is skipped while it is down
    await redis_client.connect()
    try:
        await redis_client.ping()
    except RedisError as e:
        logger.warning(f"Redis is unavailable, rate limiting disabled: {e}")

    # Ensure the blob store is reachable
    blob_store = await get_blob_store()
    if not await blob_store.ping():
        logger.warning("Blob store is unavailable")

    await init_admin()
    cleanup_task = start_cleanup_task(AsyncSessionLocal, blob_store)

    yield

    # Shutdown
    logger.info("Shutting down...")
    if cleanup_task:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
    await redis_client.disconnect()
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Retry-After"],
)


def error_response(status_code: int, kind: str, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"kind": kind, "message": message},
        headers=headers
    )


@app.exception_handler(FileboxException)
async def filebox_exception_handler(request: Request, exc: FileboxException):
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, StoreUnavailableError):
        headers = {"Retry-After": str(STORE_RETRY_AFTER_SECONDS)}
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.kind, exc.message, headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in errors
    ) or "Invalid request"
    return error_response(422, "InvalidInput", message)


@app.exception_handler(OperationalError)
async def database_exception_handler(request: Request, exc: OperationalError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return error_response(
        503,
        StoreUnavailableError.kind,
        "Database is temporarily unavailable",
        {"Retry-After": str(STORE_RETRY_AFTER_SECONDS)}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return error_response(500, FileboxException.kind, FileboxException.default_message)


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "redoc": "/api/redoc",
        "health": "/health",
        "api": "/api/v1"
    }


# Health check endpoint
@app.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    database_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except OperationalError:
        database_status = "unhealthy"

    redis_status = "healthy"
    try:
        if not await redis_client.ping():
            redis_status = "unhealthy"
    except RedisError:
        redis_status = "unhealthy"

    storage_status = "healthy" if await blob_store.ping() else "unhealthy"

    statuses = (database_status, redis_status, storage_status)
    return {
        "status": "healthy" if all(s == "healthy" for s in statuses) else "degraded",
        "services": {
            "database": database_status,
            "redis": redis_status,
            "storage": storage_status
        }
    }
