"""Background job runner: claims due jobs and runs them with bounded concurrency."""

import asyncio
import logging
from datetime import timedelta

from coar_exchange.db.base import utcnow
from coar_exchange.models.enums import JobStatus
from coar_exchange.repositories.job_repo import JobRepository
from coar_exchange.workers.queue import WAKEUP_KEY
from coar_exchange.workers.registry import get_worker

logger = logging.getLogger(__name__)


async def _run_one(session_factory, ctx, job_id: str) -> None:
    async with session_factory() as session:
        job = await JobRepository(session).get(job_id)
        if job is None:
            return
        worker = get_worker(job.job_type, ctx)
        if worker is None:
            logger.error("No worker registered for job type %s (job %s)", job.job_type, job_id)
            job.status = JobStatus.FAILED.value
            job.errors = [*(job.errors or []), {
                "code": "UNKNOWN_JOB_TYPE",
                "message": f"No worker for {job.job_type}",
                "timestamp": utcnow().isoformat(),
            }]
            await session.commit()
            return
        await worker.execute(job_id, session)


async def process_due_jobs(session_factory, ctx, limit: int | None = None) -> int:
    """Claim and run every due job once. Returns the number of jobs claimed.

    A job is claimed by a conditional ``queued -> running`` update, so two
    runners never execute the same job.
    """
    concurrency = max(1, ctx.settings.worker_concurrency)
    async with session_factory() as session:
        repo = JobRepository(session)
        due = await repo.due_job_ids(limit or concurrency * 4)
        claimed = [job_id for job_id in due if await repo.claim(job_id)]
        await session.commit()

    if not claimed:
        return 0

    semaphore = asyncio.Semaphore(concurrency)

    async def _guarded(job_id: str) -> None:
        async with semaphore:
            try:
                await _run_one(session_factory, ctx, job_id)
            except Exception:
                logger.exception("Job %s crashed outside its worker", job_id)

    await asyncio.gather(*(_guarded(job_id) for job_id in claimed))
    return len(claimed)


async def requeue_stale_jobs(session_factory, ctx) -> int:
    """Put running jobs whose lease has expired back in the queue."""
    lease = timedelta(seconds=ctx.settings.job_lease_seconds)
    async with session_factory() as session:
        count = await JobRepository(session).requeue_stale(lease)
        await session.commit()
    if count:
        logger.warning("Requeued %d jobs left running for more than %.0fs", count, lease.total_seconds())
    return count


async def _wait_for_work(ctx, poll_interval: float) -> None:
    redis = ctx.redis
    if redis is None:
        await asyncio.sleep(poll_interval)
        return
    try:
        await redis.blpop(WAKEUP_KEY, timeout=max(1, int(poll_interval)))
    except Exception as exc:
        logger.warning("Redis wake-up wait failed, polling instead: %s", exc)
        await asyncio.sleep(poll_interval)


async def run_job_runner(app) -> None:
    """Background task that runs queued jobs until cancelled."""
    ctx = app.state.context
    poll_interval = ctx.settings.job_poll_interval
    logger.info(
        "Job runner started (concurrency=%d, poll_interval=%.1fs)",
        ctx.settings.worker_concurrency,
        poll_interval,
    )

    while True:
        try:
            session_factory = getattr(app.state, "db_session_factory", None)
            if session_factory is None:
                await asyncio.sleep(poll_interval)
                continue

            await requeue_stale_jobs(session_factory, ctx)
            count = await process_due_jobs(session_factory, ctx)
            if count:
                logger.debug("Job runner processed %d jobs", count)
                continue
            await _wait_for_work(ctx, poll_interval)

        except asyncio.CancelledError:
            logger.info("Job runner stopped")
            break
        except Exception as exc:
            logger.exception("Job runner error: %s", exc)
            await asyncio.sleep(poll_interval)
