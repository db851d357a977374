"""Fallback for notifications no handler recognises."""

import logging

from coar_exchange.handlers.base import BaseHandler

logger = logging.getLogger(__name__)


class UnknownHandler(BaseHandler):
    async def handle(self) -> None:
        types = ", ".join(self.notification.types)
        logger.warning("Unknown notification type: %s", types)
        await self.post_result(self.build_message(
            "ℹ️ COAR Notification received",
            summary=self.notification.summary,
            details=f"**Type:** {types}",
        ))
