"""Inbound notifications: validate, dedupe, persist, enqueue."""

import ipaddress
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.context import ExchangeContext
from coar_exchange.errors.exceptions import DuplicateNotificationError, ForbiddenError, ValidationError
from coar_exchange.models.enums import Direction, JobType
from coar_exchange.models.notification import Notification
from coar_exchange.models.responses import ReceiveResult
from coar_exchange.repositories.notification_repo import NotificationRepository
from coar_exchange.workers.queue import enqueue_job

logger = logging.getLogger(__name__)

ALREADY_RECEIVED = "already received"


def _address_allowed(address: str | None, allowed: list[str]) -> bool:
    if not address:
        return False
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return address in allowed
    for entry in allowed:
        try:
            if ip in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            if entry == address:
                return True
    return False


class NotificationReceiver:
    """The LDN inbox. The caller owns the transaction and commits it."""

    def __init__(self, session: AsyncSession, ctx: ExchangeContext):
        self.session = session
        self.ctx = ctx
        self.repo = NotificationRepository(session, ctx.directory)

    def check_source(self, source_address: str | None) -> None:
        settings = self.ctx.settings
        if not settings.ip_allowlist_enabled:
            return
        if not _address_allowed(source_address, settings.allowed_ip_list):
            raise ForbiddenError(f"Unauthorized source address: {source_address}")

    async def receive(
        self,
        raw_body: bytes | str,
        source_address: str | None = None,
        trace_id: str | None = None,
    ) -> ReceiveResult:
        """Accept one delivery.

        A redelivery of a known notification id is acknowledged with status
        ``ok`` and neither stored nor processed again.

        Raises:
            ForbiddenError: the source address is not allow-listed.
            ValidationError: the body is not a valid notification.
        """
        self.check_source(source_address)

        payload = self.ctx.validator.parse(raw_body)
        self.ctx.validator.validate_or_raise(payload)
        try:
            notification = Notification.from_payload(payload)
        except ValueError as exc:
            raise ValidationError("Invalid notification", details={"$": [str(exc)]}) from exc

        existing = await self.repo.find_by_notification_id_and_direction(notification.id, Direction.RECEIVED)
        if existing is not None:
            logger.info("Notification %s already received as %s", notification.id, existing.record_id)
            return ReceiveResult(
                status="ok",
                location=notification.id,
                record_id=existing.record_id,
                message=ALREADY_RECEIVED,
            )

        try:
            record = await self.repo.create_from_notification(notification, Direction.RECEIVED, payload=payload)
        except DuplicateNotificationError:
            logger.info("Notification %s stored by a concurrent delivery", notification.id)
            return ReceiveResult(status="ok", location=notification.id, message=ALREADY_RECEIVED)

        await enqueue_job(
            self.session,
            JobType.PROCESS_RECEIVED,
            trace_id=trace_id or record.record_id,
            payload={"record_id": record.record_id},
            max_retries=self.ctx.settings.job_max_retries,
            redis=self.ctx.redis,
        )
        logger.info(
            "Received %s (types=%s, service=%s, record=%s)",
            notification.id,
            ",".join(notification.types),
            record.service_name,
            record.record_id,
        )
        return ReceiveResult(
            status="created",
            location=notification.id,
            record_id=record.record_id,
            message="Notification received",
        )

    async def list_notifications(self, limit: int = 100, offset: int = 0):
        return await self.repo.query(direction=Direction.RECEIVED, limit=limit, offset=offset)

    async def get_notification(self, notification_id: str):
        return await self.repo.find_by_notification_id_and_direction(notification_id, Direction.RECEIVED)
