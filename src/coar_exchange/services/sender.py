"""Outbound notifications: build, validate, transmit, persist."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.context import ExchangeContext
from coar_exchange.errors.exceptions import (
    DuplicateNotificationError,
    MissingDataError,
    TransmissionError,
    UnknownServiceError,
    ValidationError,
)
from coar_exchange.models.enums import Direction, NotificationStatus
from coar_exchange.models.notification import (
    Notification,
    NotifyActor,
    NotifyItem,
    NotifyObject,
    NotifyService,
)
from coar_exchange.models.paper import PaperRecord
from coar_exchange.models.responses import SendResult
from coar_exchange.repositories.notification_repo import NotificationRepository
from coar_exchange.services.directory import ServiceEntry
from coar_exchange.services.id_generator import generate_notification_uri

logger = logging.getLogger(__name__)

REQUIRED_PAPER_FIELDS = ["doi", "issue_id"]


def _doi_url(doi: str) -> str:
    return f"https://doi.org/{doi}"


def _orcid_url(orcid: str) -> str:
    return orcid if orcid.startswith("http") else f"https://orcid.org/{orcid}"


class NotificationSender:
    def __init__(self, session: AsyncSession, ctx: ExchangeContext):
        self.session = session
        self.ctx = ctx
        self.repo = NotificationRepository(session, ctx.directory)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _base(self, paper: PaperRecord, service: ServiceEntry, domain_type: str) -> dict:
        missing = paper.missing(REQUIRED_PAPER_FIELDS)
        if missing:
            raise MissingDataError(missing)

        settings = self.ctx.settings
        fields = {
            "id": generate_notification_uri(settings.inbox_url),
            "type": ["Offer", domain_type],
            "origin": NotifyService(id=settings.service_id, inbox=settings.inbox_url),
            "target": NotifyService(id=service.remote_id, inbox=service.inbox_url),
        }
        if paper.editor_orcid or paper.editor_name:
            fields["actor"] = NotifyActor(
                id=_orcid_url(paper.editor_orcid) if paper.editor_orcid else None,
                name=paper.editor_name,
                type="Person",
            )
        return fields

    def build_request_review(self, paper: PaperRecord, service: ServiceEntry) -> Notification:
        """Offer a preprint for review to ``service``.

        Raises:
            MissingDataError: the paper has no DOI or tracking issue.
        """
        fields = self._base(paper, service, "coar-notify:ReviewAction")
        object_id = _doi_url(paper.doi)
        fields["object"] = NotifyObject(
            id=object_id,
            cite_as=object_id,
            type=["ScholarlyArticle"],
            item=NotifyItem(
                id=paper.repository_url or paper.url or object_id,
                media_type="text/html",
                type="WebPage",
            ),
        )
        return Notification(**fields)

    def build_request_endorsement(self, paper: PaperRecord, service: ServiceEntry) -> Notification:
        """Offer a preprint for endorsement to ``service``."""
        fields = self._base(paper, service, "coar-notify:EndorsementAction")
        object_id = _doi_url(paper.doi)
        fields["object"] = NotifyObject(id=object_id, cite_as=object_id, type=["ScholarlyArticle"])
        return Notification(**fields)

    # ------------------------------------------------------------------
    # Transmission
    # ------------------------------------------------------------------

    async def send(
        self,
        notification: Notification,
        issue_id: int | None = None,
        service: str | None = None,
    ) -> SendResult:
        """Validate, deliver and record one notification.

        Validation problems raise before anything is sent. Delivery failures
        do not raise: they are recorded as a ``failed`` sent record and
        reported in the result together with whether a retry may help.
        """
        payload = notification.to_payload()
        pattern = self.ctx.patterns.find_by_types(notification.types)
        self.ctx.validator.validate_or_raise(payload, pattern.name if pattern else None)

        inbox = notification.target.inbox
        if not inbox:
            raise ValidationError("Notification target has no inbox", details={"target.inbox": ["is required"]})

        service = service or self.repo.derive_service_name(Direction.SENT, None, notification.target.id)

        try:
            response = await self.ctx.transport.post(inbox, payload)
        except TransmissionError as exc:
            logger.warning(
                "Sending %s to %s failed (retryable=%s): %s",
                notification.id,
                service,
                exc.retryable,
                exc.message,
            )
            record = await self._record_failure(notification, payload, issue_id, exc)
            return SendResult(
                success=False,
                notification_id=notification.id,
                service=service,
                record_id=record.record_id if record else None,
                error=exc.message,
                retryable=exc.retryable,
            )

        record = await self._record(notification, payload, issue_id, NotificationStatus.PROCESSED)
        logger.info(
            "Sent %s to %s (status=%s, action=%s)",
            notification.id,
            service,
            response.status,
            response.action,
        )
        return SendResult(
            success=True,
            notification_id=notification.id,
            service=service,
            response_action=response.action,
            response_location=response.location,
            record_id=record.record_id,
        )

    async def _record(self, notification, payload, issue_id, status):
        try:
            return await self.repo.create_from_notification(
                notification, Direction.SENT, issue_id=issue_id, status=status, payload=payload
            )
        except DuplicateNotificationError:
            existing = await self.repo.find_by_notification_id_and_direction(notification.id, Direction.SENT)
            if existing is None:
                raise
            return await self.repo.update(existing, status=str(status))

    async def _record_failure(self, notification, payload, issue_id, exc):
        try:
            record = await self._record(notification, payload, issue_id, NotificationStatus.FAILED)
            return await self.repo.mark_failed(record, exc)
        except Exception:
            logger.exception("Could not record failed send of %s", notification.id)
            return None

    def _service(self, service_key: str) -> ServiceEntry:
        entry = self.ctx.directory.get(service_key)
        if entry is None:
            raise UnknownServiceError(service_key, self.ctx.directory.service_names())
        return entry

    async def send_request_review(self, paper: PaperRecord, service_key: str) -> SendResult:
        service = self._service(service_key)
        if not service.supports("RequestReview"):
            logger.warning("Service %s does not list RequestReview as supported", service_key)
        notification = self.build_request_review(paper, service)
        return await self.send(notification, issue_id=paper.issue_id, service=service_key)

    async def send_request_endorsement(self, paper: PaperRecord, service_key: str) -> SendResult:
        service = self._service(service_key)
        if not service.supports("RequestEndorsement"):
            logger.warning("Service %s does not list RequestEndorsement as supported", service_key)
        notification = self.build_request_endorsement(paper, service)
        return await self.send(notification, issue_id=paper.issue_id, service=service_key)

    async def send_generic(self, notification: Notification | dict, issue_id: int | None = None) -> SendResult:
        """Send any pattern, e.g. an UndoOffer, from a prepared notification."""
        if isinstance(notification, dict):
            self.ctx.validator.validate_or_raise(notification)
            notification = Notification.from_payload(notification)
        return await self.send(notification, issue_id=issue_id)
