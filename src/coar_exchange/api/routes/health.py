"""Health and probe endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func, select

from coar_exchange.db.models.job import JobRow
from coar_exchange.models.enums import JobStatus

router = APIRouter(tags=["Health"])

SERVICE_NAME = "coar-exchange"
VERSION = "0.1.0"


@router.get("/health")
async def health_check(request: Request):
    """Service status, the loaded patterns and the known remote services."""
    ctx = request.app.state.context
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "enabled": ctx.settings.enabled,
        "patterns": len(ctx.patterns.pattern_names()),
        "services": ctx.directory.service_names(),
    }


@router.get("/health/live")
async def liveness():
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Ready once the job table answers; also reports the queue backlog."""
    checks: dict[str, str | int] = {}
    ready = True

    try:
        async with request.app.state.db_session_factory() as session:
            backlog = await session.execute(
                select(func.count()).select_from(JobRow).where(JobRow.status == JobStatus.QUEUED)
            )
            checks["queued_jobs"] = backlog.scalar_one()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"
        ready = False

    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            # The runner falls back to polling, so Redis trouble is not fatal
            checks["redis"] = f"degraded: {exc}"

    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )
