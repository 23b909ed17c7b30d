# guitarshare/main.py

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from guitarshare.config import LOGS_PATH, settings
from guitarshare.db.redis import close_redis
from guitarshare.middleware.error_handler import setup_exception_handlers
from guitarshare.observability.logger import configure_logging
from guitarshare.observability.metrics import router as prometheus_router
from guitarshare.observability.tracing import init_otel
from guitarshare.routers.deps import get_share_service
from guitarshare.routers.health import router as health_router
from guitarshare.routers.public import router as public_router
from guitarshare.routers.shares import router as shares_router
from guitarshare.utils.logger import log_info


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and graceful shutdown."""
    log_info(f"Server starting, public links at {settings.FRONTEND_URL}")
    yield
    log_info("Starting graceful shutdown...")
    # Let in-flight view analytics land before the store goes away
    if get_share_service.cache_info().currsize:
        await get_share_service().wait_for_background()
    await close_redis()
    log_info("Shutdown complete.")


def create_app() -> FastAPI:
    configure_logging(settings, logs_path=LOGS_PATH)

    app = FastAPI(
        title="Guitar Share API",
        description="Public sharing of guitar records with redacted fields and watermarked images",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Register exception handlers
    setup_exception_handlers(app, debug=settings.DEBUG)

    # Include routers
    app.include_router(health_router)  # Health checks at root level
    app.include_router(prometheus_router)
    app.include_router(shares_router, prefix="/api")
    app.include_router(public_router, prefix="/api")

    if settings.OTEL_ENABLED:
        init_otel(app=app, service_name=settings.SERVICE_NAME)

    return app


app = create_app()


def run() -> None:
    uvicorn.run("guitarshare.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
