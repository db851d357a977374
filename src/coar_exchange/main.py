"""FastAPI application factory and lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from coar_exchange.config import Settings, get_settings
from coar_exchange.logging_config import configure_logging

# Configure logging at import time
_settings = get_settings()
configure_logging(log_level=_settings.log_level, json_output=not _settings.local_mode)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    from coar_exchange.context import build_context
    from coar_exchange.db.engine import create_db_engine, create_session_factory, create_tables

    settings: Settings = app.state.settings
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    if settings.auto_create_tables or settings.local_mode:
        await create_tables(engine)
        logger.info("Notification tables ensured")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)

    # Redis is only a wake-up channel for the job runner; optional
    app.state.redis = None
    if not settings.local_mode:
        try:
            import redis.asyncio as aioredis
            app.state.redis = aioredis.from_url(settings.redis_url, decode_responses=True)
        except Exception:
            logger.warning("Redis not available, job runner will poll the database")

    ctx = build_context(settings)
    ctx.redis = app.state.redis
    app.state.context = ctx

    runner_task = None
    if settings.run_workers:
        from coar_exchange.workers.runner import run_job_runner
        runner_task = asyncio.create_task(run_job_runner(app))

    logger.info(
        "COAR exchange started (enabled=%s, db=%s, services=%d)",
        settings.enabled,
        "sqlite" if "sqlite" in db_url else "postgresql",
        len(ctx.directory),
    )
    yield

    # Shutdown
    if runner_task is not None:
        runner_task.cancel()
        try:
            await runner_task
        except asyncio.CancelledError:
            pass
    if app.state.redis:
        await app.state.redis.aclose()
    await engine.dispose()
    logger.info("COAR exchange shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="COAR Notify exchange",
        version="0.1.0",
        description="Linked Data Notifications inbox and outbox for COAR Notify review workflows.",
        lifespan=lifespan,
    )
    app.state.settings = settings or get_settings()

    from coar_exchange.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from coar_exchange.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from coar_exchange.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
