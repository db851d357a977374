"""Job queue: durable job rows plus an optional Redis wake-up signal."""

import json
import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.db.base import utcnow
from coar_exchange.db.models.job import JobRow
from coar_exchange.models.enums import JobStatus, JobType, SendAction
from coar_exchange.repositories.job_repo import JobRepository
from coar_exchange.services.id_generator import generate_id

if TYPE_CHECKING:
    from coar_exchange.context import ExchangeContext

logger = logging.getLogger(__name__)

WAKEUP_KEY = "coar:jobs:wakeup"


async def enqueue_job(
    session: AsyncSession,
    job_type: str,
    trace_id: str,
    payload: dict | None = None,
    max_retries: int = 3,
    redis=None,
) -> JobRow:
    """Create a queued job row in the caller's transaction.

    The row is authoritative; the Redis push only shortens the runner's wait.
    """
    repo = JobRepository(session)
    job = await repo.add(
        job_id=generate_id("job_"),
        job_type=str(job_type),
        status=JobStatus.QUEUED.value,
        payload=payload or {},
        attempts=0,
        max_retries=max_retries,
        next_run_at=utcnow(),
        errors=None,
        trace_id=trace_id,
    )

    if redis:
        try:
            await redis.rpush(WAKEUP_KEY, json.dumps({"job_id": job.job_id, "job_type": job.job_type}))
        except Exception as exc:
            logger.warning("Redis wake-up for job %s failed: %s", job.job_id, exc)

    logger.debug("Enqueued %s job %s", job.job_type, job.job_id)
    return job


async def enqueue_send(
    session: AsyncSession,
    ctx: "ExchangeContext",
    issue_id: int,
    service_key: str,
    action: str = SendAction.REQUEST_REVIEW,
) -> JobRow:
    """Queue an outbound request for a paper; used by the editorial bot.

    Retry limit and wake-up channel come from ``ctx``, as for received notifications.
    """
    return await enqueue_job(
        session,
        JobType.SEND_NOTIFICATION,
        trace_id=f"send_{issue_id}_{service_key}",
        payload={"issue_id": issue_id, "service": service_key, "action": str(action)},
        max_retries=ctx.settings.job_max_retries,
        redis=ctx.redis,
    )
