"""Handlers for responses to our offers: Accept, Reject and the tentative forms."""

from coar_exchange.handlers.base import BaseHandler


class _ResponseHandler(BaseHandler):
    icon = ""
    verb = ""
    details: str | None = None

    async def handle(self) -> None:
        message = self.build_message(
            f"{self.icon} {self.service_label} {self.verb} the request",
            summary=self.notification.summary,
            details=self.details,
        )
        await self.post_result(message)


class AcceptHandler(_ResponseHandler):
    icon = "✅"
    verb = "accepted"


class RejectHandler(_ResponseHandler):
    icon = "❌"
    verb = "declined"
    details = "The service has declined to process this request."


class TentativeAcceptHandler(_ResponseHandler):
    icon = "🟡"
    verb = "tentatively accepted"
    details = "The service has provisionally accepted. Awaiting confirmation."


class TentativeRejectHandler(_ResponseHandler):
    icon = "🟡"
    verb = "tentatively declined"
    details = "The service has provisionally declined but may reconsider."
