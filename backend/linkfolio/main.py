"""
LinkFolio ASGI application.
Run with: uvicorn linkfolio.main:app
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import admin, analytics, auth, folders, links, recycle_bin, redirect, users
from .config import settings
from .database import Base, SessionLocal, engine
from .errors import ServiceError
from .logging_config import bind_request, get_logger, setup_logging
from .redis_client import RedisService
from .schemas import HealthResponse
from .tasks import task_runner

setup_logging()
logger = get_logger(__name__)

ROUTERS = (
    (auth.router, "/api/auth"),
    (users.router, "/api/user"),
    (links.router, "/api/url"),
    (folders.router, "/api/folder"),
    (analytics.router, "/api/analytics"),
    (recycle_bin.router, "/api/recycle-bin"),
    (admin.router, "/api/admin"),
    (redirect.router, "/r"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} ready (schema checked)")

    if settings.uses_default_secrets:
        logger.warning("Token secrets are not configured; using development defaults")
    if settings.CLEANUP_ENABLED:
        task_runner.start()

    try:
        yield
    finally:
        task_runner.stop()
        logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="URL shortener with folders, click analytics and a recycle bin",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)


@app.middleware("http")
async def tag_request(request: Request, call_next):
    """Bind a request id for log records and echo it back as X-Request-ID."""
    rid = bind_request(
        request.headers.get("X-Request-ID"),
        f"{request.method} {request.url.path}",
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    return response


if "*" in settings.CORS_ORIGINS:
    logger.warning("CORS allows every origin; list the frontend origins in CORS_ORIGINS")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router, prefix in ROUTERS:
    app.include_router(router, prefix=prefix)


def _database_ok() -> bool:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database probe failed: {e}")
        return False
    finally:
        db.close()


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health():
    database = _database_ok()
    cache = RedisService.health_check()
    return HealthResponse(
        status="healthy" if database and cache else "degraded",
        database=database,
        redis=cache,
        version=settings.APP_VERSION,
    )


@app.exception_handler(ServiceError)
async def handle_service_error(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code or 500,
        content={"detail": exc.detail or "HTTP error"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
