"""Worker that runs the handler for a received notification."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.db.models.job import JobRow
from coar_exchange.errors.exceptions import NotFoundError
from coar_exchange.models.enums import NotificationStatus
from coar_exchange.repositories.notification_repo import NotificationRepository
from coar_exchange.workers.base import BaseWorker

logger = logging.getLogger(__name__)


class ReceiveWorker(BaseWorker):
    async def process(self, job: JobRow, session: AsyncSession) -> None:
        record_id = job.payload["record_id"]
        repo = NotificationRepository(session, self.ctx.directory)
        record = await repo.get(record_id)
        if record is None:
            raise NotFoundError("Notification record", record_id)

        if record.status == NotificationStatus.PROCESSED:
            logger.info("Notification %s already processed; skipping", record.notification_id)
            return

        await repo.mark_processing(record)
        # Visible to status queries while the handler runs
        await session.commit()
        notification = record.to_domain_object()
        await self.ctx.dispatcher.dispatch(notification, record, self.ctx, repo)
