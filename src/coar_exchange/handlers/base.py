"""Base handler for received notifications."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from coar_exchange.db.models.notification import NotificationRow
from coar_exchange.models.enums import Direction
from coar_exchange.models.notification import Notification
from coar_exchange.repositories.notification_repo import NotificationRepository

if TYPE_CHECKING:
    from coar_exchange.context import ExchangeContext

logger = logging.getLogger(__name__)


class BaseHandler(ABC):
    """Processes one received notification.

    Subclasses implement :meth:`handle`; :meth:`process` wraps it with the
    record's status transitions.
    """

    def __init__(
        self,
        notification: Notification,
        record: NotificationRow,
        ctx: "ExchangeContext",
        repo: NotificationRepository,
    ):
        self.notification = notification
        self.record = record
        self.ctx = ctx
        self.repo = repo

    @abstractmethod
    async def handle(self) -> None:
        ...

    async def process(self) -> None:
        try:
            await self.handle()
        except Exception as exc:
            await self.repo.mark_failed(self.record, exc)
            raise
        await self.repo.mark_processed(self.record)

    @property
    def service_label(self) -> str:
        key = self.record.service_name
        if not key:
            return "External service"
        return self.ctx.directory.display_name(key) or key

    def build_message(
        self,
        title: str,
        summary: str | None = None,
        details: str | None = None,
    ) -> str:
        """Markdown comment with a collapsible block naming the notification."""
        parts = [f"### {title}", ""]
        if summary:
            parts.append(summary)
        if details:
            parts.append(details)
        parts.extend([
            "",
            "<details>",
            "<summary>Notification Details</summary>",
            "",
            f"**Notification ID:** `{self.notification.id}`",
            "",
            "_Via COAR Notify protocol._",
            "</details>",
        ])
        return "\n".join(parts)

    async def find_issue_id(self) -> int | None:
        """Resolve the tracking issue; first strategy that succeeds wins.

        1. the record's own issue id
        2. the sent request this one replies to
        3. a DOI lookup on the record's paper DOI, cached onto the record
        4. a DOI lookup on a DOI found in ``context.id``, cached likewise
        """
        record = self.record
        if record.issue_id:
            return record.issue_id

        if record.in_reply_to:
            sent = await self.repo.find_by_notification_id_and_direction(record.in_reply_to, Direction.SENT)
            if sent is not None and sent.issue_id:
                return sent.issue_id

        collaborator = self.ctx.collaborator
        if record.paper_doi:
            issue_id = await collaborator.lookup_issue_by_doi(record.paper_doi)
            if issue_id:
                await self.repo.set_issue_id(record, issue_id)
                return issue_id

        context = self.notification.context
        doi = self.repo.derive_doi(context.id) if context and context.id else None
        if doi and doi != record.paper_doi:
            issue_id = await collaborator.lookup_issue_by_doi(doi)
            if issue_id:
                await self.repo.set_issue_id(record, issue_id, paper_doi=doi)
                return issue_id

        return None

    async def post_result(self, message: str) -> bool:
        issue_id = await self.find_issue_id()
        if not issue_id:
            logger.warning("Could not find issue id for notification %s", self.record.record_id)
            return False
        return await self.ctx.collaborator.post_comment(issue_id, message)

    async def update_paper_metadata(self, metadata: dict) -> None:
        """Best-effort metadata push; failures are logged only."""
        if not self.record.paper_doi:
            return
        metadata.setdefault("service", self.record.service_name)
        metadata.setdefault("notification_id", self.notification.id)
        metadata.setdefault("received_at", datetime.now(timezone.utc).isoformat())
        try:
            ok = await self.ctx.collaborator.update_external_metadata(self.record.paper_doi, metadata)
        except Exception as exc:
            logger.warning("Failed to update paper metadata for %s: %s", self.record.paper_doi, exc)
            return
        if not ok:
            logger.warning("Paper metadata update for %s was not accepted", self.record.paper_doi)
