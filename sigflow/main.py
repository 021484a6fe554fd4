"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (health and workflow context)
- Error handlers (centralized domain-to-HTTP mapping)
- Security middleware (headers, rate limiting)
- Logging configuration
- The run queue worker (started and stopped with the app)

No business logic belongs here.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from sigflow.core.config import settings
from sigflow.domain.workflow.errors import PersistenceError
from sigflow.infrastructure.workflow.database import init_schema
from sigflow.interfaces.health import router as health_router
from sigflow.interfaces.workflow.dependencies import build_run_queue, get_db_engine
from sigflow.interfaces.workflow.router import router as workflow_router
from sigflow.shared.errors.handlers import register_error_handlers
from sigflow.shared.logging import configure_logging
from sigflow.shared.security.headers import SecurityHeadersMiddleware
from sigflow.shared.security.rate_limiting import limiter, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: prepare the store, start/stop the run worker."""
    engine = get_db_engine()
    try:
        init_schema(engine)
    except PersistenceError:
        logger.error(
            "Workflow store unavailable at startup; "
            "requests will fail until it is reachable."
        )

    run_queue = build_run_queue(engine)
    app.state.run_queue = run_queue
    if settings.run_worker_enabled:
        run_queue.start()

    yield

    await run_queue.stop()
    app.state.run_queue = None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.
    This is the composition root of the application.

    Returns:
        A fully configured FastAPI application instance.
    """
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware)

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(workflow_router, prefix="/api/v1")

    return app


app = create_app()
