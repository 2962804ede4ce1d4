"""FastAPI application entry point with lifecycle management."""

from fastapi import FastAPI
from contextlib import asynccontextmanager, suppress
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import uvicorn

from .config import settings
from .routes import router
from .product_routes import router as product_router, admin_router as product_admin_router
from .db import create_tables, dispose_engine
from .cache import cache_manager
from .errors import register_exception_handlers
from .logger import logger
from .rate_limit import RateLimiter, run_periodic_cleanup
from .middleware import (
    graceful_shutdown_middleware,
    rate_limit_middleware,
    add_request_id_middleware,
    request_logging_middleware,
    security_headers_middleware,
    set_shutdown_manager,
)
from .monitoring import setup_monitoring

# ==================== Graceful Shutdown ====================


class GracefulShutdownManager:
    """Manages graceful shutdown of the application.

    Tracks active requests and ensures all in-flight requests complete
    before shutting down database and cache connections.
    """

    def __init__(self):
        self.is_shutting_down = False
        self.active_requests = 0
        self.shutdown_timeout = settings.GRACEFUL_SHUTDOWN_TIMEOUT

    def request_started(self):
        """Track a new incoming request."""
        if not self.is_shutting_down:
            self.active_requests += 1

    def request_finished(self):
        """Mark a request as completed."""
        self.active_requests -= 1

    async def initiate_shutdown(self):
        """Stop accepting requests and wait (up to the timeout) for in-flight ones."""
        if self.is_shutting_down:
            return

        logger.info("Graceful shutdown initiated")
        self.is_shutting_down = True

        if self.active_requests == 0:
            logger.info("No active requests - proceeding with immediate shutdown")
            return

        logger.info(f"Waiting for {self.active_requests} active request(s) to complete...")
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        while self.active_requests > 0:
            if loop.time() - start_time >= self.shutdown_timeout:
                logger.warning(
                    f"Shutdown timeout ({self.shutdown_timeout}s) reached with "
                    f"{self.active_requests} request(s) still active - forcing shutdown"
                )
                return
            await asyncio.sleep(0.1)

        logger.info("All active requests completed successfully")


shutdown_manager = GracefulShutdownManager()
set_shutdown_manager(shutdown_manager)

# ==================== Application Lifecycle ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - handles startup and graceful shutdown."""
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")

    if settings.DB_SYNCHRONIZE:
        await create_tables()
    else:
        logger.info("Database schema managed by Alembic migrations")

    # Connect to Redis cache
    if settings.CACHE_ENABLED:
        await cache_manager.connect()

    cleanup_task = asyncio.create_task(
        run_periodic_cleanup(app.state.rate_limiter, settings.RATE_LIMIT_CLEANUP_INTERVAL)
    )

    logger.info(f"{settings.APP_NAME} started successfully - ready to accept requests")

    yield

    # Cleanup on shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")

    await shutdown_manager.initiate_shutdown()

    cleanup_task.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup_task

    if settings.CACHE_ENABLED:
        await cache_manager.disconnect()

    await dispose_engine()

    logger.info(f"{settings.APP_NAME} shutdown complete")

# ==================== Application Setup ====================


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.state.rate_limiter = RateLimiter(
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
)

# Middleware registration (last registered = outermost layer)
app.middleware("http")(rate_limit_middleware)
app.middleware("http")(request_logging_middleware)
app.middleware("http")(add_request_id_middleware)
app.middleware("http")(graceful_shutdown_middleware)
app.middleware("http")(security_headers_middleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

register_exception_handlers(app)

# Include API routes (admin routes first so /products/admin/* is never read as an id)
app.include_router(router)
app.include_router(product_admin_router)
app.include_router(product_router)

# Setup Prometheus monitoring
setup_monitoring(app)


if __name__ == "__main__":
    uvicorn.run("storefront.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
