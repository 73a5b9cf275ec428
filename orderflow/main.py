"""
FastAPI Application Entry Point

Restaurant order lifecycle backend.
Mock notification gateway in development, Twilio SMS in staging/production.

Endpoints:
    - GET /: API root
    - GET /health: System health check
    - /api/...: Orders, establishment status and live events (see orderflow.api.routes)
    - /uploads/...: Stored proof-of-payment images

Run with:
    uvicorn orderflow.main:app --reload

Version: 1.0.0
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from orderflow.api import router
from orderflow.core.config import OrderStoreBackend, Settings, get_settings, setup_logging
from orderflow.schemas import HealthResponse
from orderflow.services.establishment import BaseEstablishmentProvider, build_establishment_provider
from orderflow.services.events import EventHub
from orderflow.services.events.hub import keepalive_loop
from orderflow.services.notifications import get_notification_gateway
from orderflow.services.order_store import BaseOrderStore, build_order_store
from orderflow.services.orders import OrderService, StatusNotifier

setup_logging()
logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    settings: Settings = app.state.settings
    hub: EventHub = app.state.event_hub
    store: BaseOrderStore = app.state.order_store

    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.order_store_backend == OrderStoreBackend.SQL:
        from orderflow.database import get_engine, init_db

        await init_db(get_engine())
        logger.info("✅ Database initialized")

    logger.info(f"✅ Order Store: {store.provider_name}")
    logger.info(f"✅ Establishment: {app.state.establishment.provider_name}")
    logger.info(f"✅ Notifications: {'enabled' if app.state.order_service.notifier else 'disabled'}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    keepalive = asyncio.create_task(keepalive_loop(hub, settings.sse_ping_interval_seconds))

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    keepalive.cancel()
    try:
        await keepalive
    except asyncio.CancelledError:
        pass
    hub.close_all()

    if settings.order_store_backend == OrderStoreBackend.SQL:
        from orderflow.database import get_engine

        await get_engine().dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    order_store: Optional[BaseOrderStore] = None,
    establishment: Optional[BaseEstablishmentProvider] = None,
    notifier: Optional[StatusNotifier] = None,
    event_hub: Optional[EventHub] = None,
) -> FastAPI:
    """
    Build the application and its collaborators.

    Anything not passed in is built from settings. With notifications
    enabled and no notifier given, status changes are enqueued as Celery
    tasks.
    """
    settings = settings or get_settings()

    hub = event_hub or EventHub(queue_size=settings.subscriber_queue_size)
    store = order_store or build_order_store(settings)
    establishment = establishment or build_establishment_provider(settings)

    if notifier is None and settings.notifications_enabled:
        from orderflow.tasks import enqueue_status_notification

        notifier = enqueue_status_notification

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Restaurant ordering backend: schedule-gated order intake, "
            "server-side pricing, status workflow and live staff events."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.event_hub = hub
    app.state.order_store = store
    app.state.establishment = establishment
    app.state.order_service = OrderService.from_settings(
        settings, store, hub, establishment, notifier=notifier,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    upload_dir = Path(settings.upload_directory)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount(settings.upload_url_prefix, StaticFiles(directory=upload_dir), name="uploads")

    app.include_router(router)
    register_root_routes(app)
    register_exception_handlers(app)
    return app


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

async def check_redis(redis_url: str) -> str:
    def _ping() -> None:
        r = redis.Redis.from_url(redis_url, socket_timeout=2, socket_connect_timeout=2)
        try:
            r.ping()
        finally:
            r.close()

    try:
        await run_in_threadpool(_ping)
        return "healthy"
    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return f"unhealthy: {str(e)}"


def register_root_routes(app: FastAPI) -> None:

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """API root with navigation links."""
        settings: Settings = app.state.settings
        return {
            "message": f"🍕 Welcome to {settings.app_name}",
            "version": settings.app_version,
            "environment": settings.env_mode.value,
            "documentation": "/docs",
            "status": "/api/status",
            "health": "/health",
        }

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="System Health Check",
    )
    async def health_check() -> HealthResponse:
        """Verify all system components are operational."""
        settings: Settings = app.state.settings

        store_status = "healthy" if await app.state.order_store.health_check() else "unhealthy"
        redis_status = await check_redis(settings.redis_url)

        notification_status = "disabled"
        if settings.notifications_enabled:
            gateway = get_notification_gateway()
            notification_status = "healthy" if await gateway.health_check() else "unhealthy"

        overall = "operational" if all(
            s in ("healthy", "disabled") for s in [store_status, redis_status, notification_status]
        ) else "degraded"

        return HealthResponse(
            status=overall,
            order_store=store_status,
            redis=redis_status,
            notification_service=notification_status,
            subscribers=app.state.event_hub.subscriber_count,
            timestamp=datetime.now(),
        )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
                "detail": exc.detail,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors: list[dict[str, Any]] = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": "validation_error",
                "detail": "Invalid request payload",
                "errors": errors,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")
        debug = app.state.settings.debug
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "internal_error",
                "detail": str(exc) if debug else "An unexpected error occurred",
            },
        )


app = create_app()
