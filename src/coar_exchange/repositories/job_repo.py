"""Job repository: due-job selection and claiming for the runner."""

from datetime import datetime, timedelta

from sqlalchemy import select, update

from coar_exchange.db.base import utcnow
from coar_exchange.db.models.job import JobRow
from coar_exchange.models.enums import JobStatus
from coar_exchange.repositories.base import BaseRepository


class JobRepository(BaseRepository[JobRow]):
    model = JobRow

    async def due_job_ids(self, limit: int, now: datetime | None = None) -> list[str]:
        """Ids of queued jobs whose next run time has passed, oldest first."""
        stmt = (
            select(JobRow.job_id)
            .where(JobRow.status == JobStatus.QUEUED, JobRow.next_run_at <= (now or utcnow()))
            .order_by(JobRow.next_run_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def claim(self, job_id: str) -> bool:
        """Atomically move a queued job to running. False if another runner won."""
        stmt = (
            update(JobRow)
            .where(JobRow.job_id == job_id, JobRow.status == JobStatus.QUEUED)
            .values(status=JobStatus.RUNNING.value, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def requeue_stale(self, older_than: timedelta, now: datetime | None = None) -> int:
        """Return running jobs whose claim is older than ``older_than`` to the queue.

        Covers runners that died mid-job. The interrupted attempt still counts.
        """
        now = now or utcnow()
        stmt = (
            update(JobRow)
            .where(JobRow.status == JobStatus.RUNNING, JobRow.updated_at < now - older_than)
            .values(status=JobStatus.QUEUED.value, next_run_at=now, updated_at=now)
        )
        result = await self.session.execute(stmt)
        return result.rowcount
