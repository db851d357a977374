"""Base worker: one job run with bounded retries and exponential backoff."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.db.base import utcnow
from coar_exchange.db.models.job import JobRow
from coar_exchange.logging_config import bind_job_context, clear_request_context
from coar_exchange.models.enums import JobStatus
from coar_exchange.repositories.job_repo import JobRepository

if TYPE_CHECKING:
    from coar_exchange.context import ExchangeContext

logger = logging.getLogger(__name__)


def backoff_delay(base: float, attempt: int) -> timedelta:
    """Delay before the next try after ``attempt`` failed attempts."""
    return timedelta(seconds=base * 2 ** attempt)


class BaseWorker(ABC):
    """Abstract base class for job workers."""

    def __init__(self, ctx: "ExchangeContext"):
        self.ctx = ctx

    @abstractmethod
    async def process(self, job: JobRow, session: AsyncSession) -> None:
        """Do the job's work. Raise to fail the attempt."""
        ...

    async def on_exhausted(self, job: JobRow, session: AsyncSession, exc: Exception) -> None:
        """Called once when a retryable job has used up its retries."""

    async def execute(self, job_id: str, session: AsyncSession) -> None:
        """Run one attempt: running -> succeeded, queued for retry, or failed.

        Errors whose ``retryable`` attribute is False fail the job at once.
        Other errors requeue it with backoff until ``max_retries`` retries
        have been spent; the job is then failed and dropped.
        Cancellation (shutdown) puts the job back in the queue and re-raises.
        """
        repo = JobRepository(session)
        job = await repo.get(job_id)
        if not job:
            return

        job.attempts += 1
        attempt = job.attempts
        bind_job_context(job.job_id, job.job_type, attempt)
        try:
            await self.process(job, session)
        except asyncio.CancelledError:
            await self._release(session, job_id, attempt)
            raise
        except Exception as exc:
            await self._record_failure(session, job_id, attempt, exc)
        else:
            job.status = JobStatus.SUCCEEDED.value
            logger.info("Job %s succeeded (attempt=%d)", job_id, attempt)
            await session.commit()
        finally:
            clear_request_context()

    async def _release(self, session: AsyncSession, job_id: str, attempt: int) -> None:
        """Return an interrupted job to the queue. The attempt does not count."""
        try:
            await session.rollback()
            job = await JobRepository(session).get(job_id)
            job.status = JobStatus.QUEUED.value
            job.attempts = attempt - 1
            job.next_run_at = utcnow()
            await session.commit()
            logger.warning("Job %s interrupted on attempt %d; returned to the queue", job_id, attempt)
        except Exception:
            logger.exception("Could not requeue interrupted job %s; left for the stale-job sweep", job_id)

    async def _record_failure(self, session: AsyncSession, job_id: str, attempt: int, exc: Exception) -> None:
        if not session.is_active:
            # The failure left the transaction unusable; keep only the job bookkeeping
            await session.rollback()
        job = await JobRepository(session).get(job_id)
        job.attempts = attempt
        now = utcnow()
        retryable = getattr(exc, "retryable", True)
        error_detail = {
            "code": getattr(exc, "code", "WORKER_ERROR"),
            "message": f"{type(exc).__name__}: {exc}",
            "trace_id": job.trace_id,
            "timestamp": now.isoformat(),
            "attempt": job.attempts,
        }
        job.errors = [*(job.errors or []), error_detail]

        if not retryable:
            job.status = JobStatus.FAILED.value
            logger.error("Job %s failed permanently (type=%s): %s", job_id, job.job_type, exc)
        elif job.attempts <= job.max_retries:
            delay = backoff_delay(self.ctx.settings.job_backoff_base, job.attempts)
            job.status = JobStatus.QUEUED.value
            job.next_run_at = now + delay
            logger.warning(
                "Job %s failed (type=%s, attempt=%d); retrying in %.0fs: %s",
                job_id, job.job_type, job.attempts, delay.total_seconds(), exc,
            )
        else:
            job.status = JobStatus.FAILED.value
            logger.exception("Job %s exhausted %d retries (type=%s)", job_id, job.max_retries, job.job_type)
            try:
                await self.on_exhausted(job, session, exc)
            except Exception:
                logger.exception("on_exhausted hook failed for job %s", job_id)
        await session.commit()
