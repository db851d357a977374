"""Handler for Flag/Unprocessable: a service could not process our notification."""

import logging

from coar_exchange.handlers.base import BaseHandler
from coar_exchange.models.enums import Direction

logger = logging.getLogger(__name__)


class UnprocessableHandler(BaseHandler):
    async def handle(self) -> None:
        summary = self.notification.summary
        failed_id = self.notification.in_reply_to or self.notification.object.id

        await self.post_result(self.build_message(
            f"⚠️ {self.service_label} couldn't process our notification",
            summary=summary,
            details=f"**Failed Notification:** `{failed_id}`" if failed_id else None,
        ))

        for candidate in dict.fromkeys(filter(None, (self.notification.in_reply_to, self.notification.object.id))):
            original = await self.repo.find_by_notification_id_and_direction(candidate, Direction.SENT)
            if original is not None:
                await self.repo.mark_failed(original, f"Service reported: {summary}")
                logger.info("Marked sent notification %s failed after Unprocessable", candidate)
                return
        logger.info("No sent notification matches Unprocessable %s", self.notification.id)
