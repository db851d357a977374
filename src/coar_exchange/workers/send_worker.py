"""Worker that sends a review or endorsement request for a tracking issue."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.db.models.job import JobRow
from coar_exchange.errors.exceptions import (
    NotFoundError,
    PeerRejectedError,
    TransmissionError,
    ValidationError,
)
from coar_exchange.models.enums import SendAction
from coar_exchange.models.responses import SendResult
from coar_exchange.services.sender import NotificationSender
from coar_exchange.workers.base import BaseWorker

logger = logging.getLogger(__name__)

ACTION_LABELS = {
    SendAction.REQUEST_REVIEW: "review request",
    SendAction.REQUEST_ENDORSEMENT: "endorsement request",
}


def error_message(title: str, details: str) -> str:
    return "\n".join([
        f"### {title}",
        "",
        details,
        "",
        "_If this error persists, please contact the editorial team._",
    ])


def format_field_errors(details) -> str:
    if isinstance(details, dict):
        return "\n".join(f"{field}: {', '.join(map(str, errs))}" for field, errs in details.items())
    return str(details)


class SendWorker(BaseWorker):
    async def _post(self, issue_id: int, message: str) -> None:
        await self.ctx.collaborator.post_comment(issue_id, message)

    async def process(self, job: JobRow, session: AsyncSession) -> None:
        issue_id = job.payload["issue_id"]
        service_key = job.payload["service"]
        action = job.payload.get("action", SendAction.REQUEST_REVIEW)

        paper = await self.ctx.collaborator.fetch_paper_by_issue(issue_id)
        if paper is None:
            await self._post(issue_id, error_message(
                f"❌ Could not fetch paper data for issue #{issue_id}",
                f"Unable to send COAR notification to {service_key}.",
            ))
            raise NotFoundError("Paper for issue", str(issue_id))

        sender = NotificationSender(session, self.ctx)
        try:
            if action == SendAction.REQUEST_REVIEW:
                result = await sender.send_request_review(paper, service_key)
            elif action == SendAction.REQUEST_ENDORSEMENT:
                result = await sender.send_request_endorsement(paper, service_key)
            else:
                raise ValidationError(f"Unknown action: {action}", details={"action": [str(action)]})
        except ValidationError as exc:
            await self._post(issue_id, error_message(
                "❌ COAR notification validation failed",
                f"{exc.message}\n\n**Details:**\n```\n{format_field_errors(exc.details)}\n```",
            ))
            raise

        if not result.success:
            if result.retryable:
                raise TransmissionError(result.error or "Delivery failed")
            await self._post(issue_id, error_message(
                f"❌ {self.ctx.directory.display_name(service_key)} rejected the COAR notification",
                f"**Error:** {result.error}",
            ))
            raise PeerRejectedError(result.error or "Delivery rejected")

        await self._post(issue_id, self.success_message(result, service_key, action))
        logger.info("Sent %s to %s for issue #%s", action, service_key, issue_id)

    def success_message(self, result: SendResult, service_key: str, action: str) -> str:
        display = self.ctx.directory.display_name(service_key) or service_key
        lines = [
            "### ✅ COAR Notification Sent",
            "",
            f"Successfully sent {ACTION_LABELS.get(action, action)} to **{display}**.",
            "",
            "<details>",
            "<summary>Notification Details</summary>",
            "",
            f"**Notification ID:** `{result.notification_id}`",
            "",
            f"**Response Status:** {result.response_action}",
            "",
        ]
        if result.response_location:
            lines.extend([f"**Location:** {result.response_location}", ""])
        lines.extend([
            "_This notification was sent via the COAR Notify protocol._",
            "",
            "The service may respond with an acceptance or rejection notification.",
            "</details>",
        ])
        return "\n".join(lines)

    async def on_exhausted(self, job: JobRow, session: AsyncSession, exc: Exception) -> None:
        service_key = job.payload.get("service")
        await self._post(job.payload["issue_id"], error_message(
            "❌ COAR notification could not be delivered",
            f"Sending to **{service_key}** failed after {job.attempts} attempts.\n\n**Last error:** {exc}",
        ))
