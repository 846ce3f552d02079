"""
Wanderplan preference service — profile preferences, session overrides,
Travel DNA and the onboarding flow.

Entrypoint: uvicorn services.api.main:app --host 0.0.0.0 --port 8000
"""

import logging
import uuid
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request, Response
from starlette.responses import JSONResponse

from services.api.config import settings
from services.api.db.engine import create_engine, create_session_factory
from services.api.middleware.cors import setup_cors
from services.api.middleware.sentry import setup_sentry
from services.api.onboarding.marker import OnboardingCompletion
from services.api.onboarding.scan import SimulatedScanDriver
from services.api.onboarding.sessions import OnboardingSessions
from services.api.preferences.cache import PreferenceCache
from services.api.preferences.local_first import LocalFirstPreferences
from services.api.preferences.local_storage import LocalStorage
from services.api.preferences.store import PreferenceStore, SQLPreferenceStore
from services.api.routers import dna, health, onboarding, preferences

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    setup_sentry()

    # Redis backs local snapshots and the onboarding marker
    redis_client = None
    if settings.redis_url:
        try:
            redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
            await redis_client.ping()
        except Exception:
            # Snapshots degrade gracefully: reads miss and writes are dropped
            logger.warning("Redis unavailable, running remote-only", exc_info=True)
            redis_client = None

    app.state.redis = redis_client
    app.state.settings = settings

    # Remote preference store
    sa_engine = None
    app.state.db_session_factory = None
    if settings.database_url:
        try:
            sa_engine = create_engine()
            app.state.db_engine = sa_engine
            app.state.db_session_factory = create_session_factory(sa_engine)
        except Exception as e:
            logger.warning("SA engine failed to init: %s", e)

    store = PreferenceStore(
        SQLPreferenceStore(app.state.db_session_factory),
        PreferenceCache(ttl_seconds=settings.preference_cache_ttl_s),
        timeout_seconds=settings.preference_remote_timeout_s,
    )
    storage = LocalStorage(redis_client)
    accessor = LocalFirstPreferences(store, storage)

    completion = OnboardingCompletion(storage)
    await completion.initialize()

    app.state.preference_store = store
    app.state.preferences = accessor
    app.state.onboarding_completion = completion
    app.state.onboarding = OnboardingSessions(
        completion,
        accessor,
        driver_factory=lambda: SimulatedScanDriver(interval_s=settings.scan_tick_interval_s),
        finish_delay_s=settings.scan_finish_delay_s,
        idle_ttl_s=settings.onboarding_session_idle_ttl_s,
    )

    yield

    await app.state.onboarding.aclose()
    await accessor.aclose()
    if sa_engine:
        await sa_engine.dispose()
    if redis_client:
        await redis_client.aclose()


app = FastAPI(
    title="Wanderplan API",
    version=settings.app_version,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# -- Middleware (order matters: last added = outermost in Starlette) --

# Routers first (innermost)
app.include_router(health.router)
app.include_router(preferences.router)
app.include_router(dna.router)
app.include_router(onboarding.router)

# CORS (needs to be outermost to handle preflight)
setup_cors(app)


# Request ID injection
@app.middleware("http")
async def request_envelope_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# -- Exception Handlers --

@app.exception_handler(404)
async def not_found_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "success": False,
            "error": {"code": "NOT_FOUND", "message": "Resource not found."},
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )


@app.exception_handler(422)
async def validation_error_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": str(exc.detail) if hasattr(exc, "detail") else "Validation error.",
            },
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred."},
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )
