"""FastAPI application entrypoint — lifespan, routers, middleware, error shape."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from starlette.exceptions import HTTPException as StarletteHTTPException

from agrivision import __version__
from agrivision.clients import create_firestore, create_http_client, create_redis, init_firebase
from agrivision.config import get_settings
from agrivision.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from agrivision.routes import ai, alerts, fields, ndvi, predict, ws

logger = structlog.get_logger("agrivision")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Open the shared upstream HTTP client
      3. Connect to Redis (optional; alert caching is skipped without it)
      4. Initialize Firebase Admin + async Firestore client

    Shutdown:
      1. Close Redis connection pool
      2. Close the HTTP client
    """
    configure_structured_logging()
    settings = get_settings()
    logger.info("agrivision_starting", log_level=settings.log_level, port=settings.port)

    app.state.http_client = create_http_client(settings)

    redis: Redis | None = create_redis(settings)
    try:
        await redis.ping()
    except Exception as exc:
        logger.warning("redis_unavailable", error=str(exc))
        await redis.aclose()
        redis = None
    app.state.redis = redis

    try:
        firebase_app = init_firebase(settings)
        app.state.firestore = create_firestore(firebase_app)
    except Exception as exc:
        logger.exception("startup failure", error=str(exc))
        await app.state.http_client.aclose()
        if redis is not None:
            await redis.aclose()
        raise

    yield

    logger.info("agrivision_shutting_down")
    if redis is not None:
        await redis.aclose()
    await app.state.http_client.aclose()


app = FastAPI(
    title="AgriVision API",
    description=(
        "Crop-monitoring backend: satellite vegetation indices, disease and pest "
        "model proxies, forecast alerts with per-field caching, and generative "
        "explanations of field metrics."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# ── Error shape ─────────────────────────────────────────────────────────────
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Something went wrong!"})


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/", tags=["system"])
async def root() -> dict[str, str]:
    return {"message": "AgriVision API is running"}


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check; verifies the API process is alive."""
    return {
        "status": "ok",
        "service": "agrivision",
        "version": __version__,
    }


async def _run_readiness_checks(target: FastAPI) -> dict[str, dict[str, Any]]:
    checks: dict[str, dict[str, Any]] = {}

    redis_client = getattr(target.state, "redis", None)
    if redis_client is None:
        checks["redis"] = {"ok": False, "message": "not connected"}
    else:
        try:
            await redis_client.ping()
            checks["redis"] = {"ok": True, "message": "ok"}
        except Exception as exc:
            checks["redis"] = {"ok": False, "message": str(exc)}

    firestore = getattr(target.state, "firestore", None)
    checks["firestore"] = {
        "ok": firestore is not None,
        "message": "ok" if firestore is not None else "not configured",
    }
    return checks


@app.get("/health/ready", tags=["system"])
async def readiness_check() -> JSONResponse:
    checks = await _run_readiness_checks(app)
    ready = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ok" if ready else "degraded", "checks": checks},
    )


# ── Router registration ────────────────────────────────────────────────────
app.include_router(predict.router)
app.include_router(ndvi.router)
app.include_router(ai.router)
app.include_router(alerts.router)
app.include_router(fields.router)
app.include_router(ws.router)
