"""Notification store: durable records of sent and received notifications."""

import logging
import re
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.db.base import utcnow
from coar_exchange.db.models.notification import NotificationRow
from coar_exchange.errors.exceptions import DuplicateNotificationError, ValidationError
from coar_exchange.models.enums import Direction, NotificationStatus
from coar_exchange.models.notification import Notification, as_type_list
from coar_exchange.repositories.base import BaseRepository
from coar_exchange.services.directory import ServiceDirectory
from coar_exchange.services.id_generator import generate_id

logger = logging.getLogger(__name__)

DOI_PATTERN = re.compile(r"(10\.\d+/[\w.\-]+)")

_REQUIRED = ("notification_id", "notification_types", "origin_id", "target_id", "object_id", "payload")


class NotificationRepository(BaseRepository[NotificationRow]):
    model = NotificationRow

    def __init__(self, session: AsyncSession, directory: ServiceDirectory | None = None):
        super().__init__(session)
        self.directory = directory

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(self, direction: str, **fields: Any) -> NotificationRow:
        """Validate and insert a record.

        Raises:
            ValidationError: a required field is blank or an enum is invalid.
            DuplicateNotificationError: ``(notification_id, direction)`` exists,
                detected up front or by the unique constraint.
        """
        fields.setdefault("status", NotificationStatus.PENDING)
        errors: dict[str, list[str]] = {}
        for name in _REQUIRED:
            if fields.get(name) in (None, "", [], {}):
                errors.setdefault(name, []).append("is not present")
        if direction not in set(Direction):
            errors.setdefault("direction", []).append(f"is not in range or set: {list(map(str, Direction))}")
        if fields["status"] not in set(NotificationStatus):
            errors.setdefault("status", []).append(
                f"is not in range or set: {list(map(str, NotificationStatus))}"
            )
        if errors:
            raise ValidationError("Invalid notification record", details=errors)

        notification_id = fields["notification_id"]
        if await self.find_by_notification_id_and_direction(notification_id, direction):
            raise DuplicateNotificationError(notification_id, direction)

        try:
            row = await self.add(
                record_id=generate_id("ntf_"),
                direction=str(direction),
                **{k: str(v) if k == "status" else v for k, v in fields.items()},
            )
        except IntegrityError as exc:
            # A concurrent delivery won the race for the unique constraint
            await self.session.rollback()
            raise DuplicateNotificationError(notification_id, direction) from exc
        return row

    async def create_from_notification(
        self,
        notification: Notification,
        direction: str,
        issue_id: int | None = None,
        status: str = NotificationStatus.PENDING,
        payload: dict | None = None,
    ) -> NotificationRow:
        """Project a domain notification into a stored record.

        ``payload`` is stored verbatim when given, otherwise the notification
        is dumped to its wire form.
        """
        context = notification.context
        actor = notification.actor
        return await self.create(
            direction,
            notification_id=notification.id,
            notification_types=notification.types,
            origin_id=notification.origin.id,
            origin_inbox=notification.origin.inbox,
            target_id=notification.target.id,
            target_inbox=notification.target.inbox,
            object_id=notification.object.id,
            object_type=as_type_list(notification.object.type) or None,
            context_id=context.id if context else None,
            context_type=(as_type_list(context.type) or None) if context else None,
            in_reply_to=notification.in_reply_to,
            actor_id=actor.id if actor else None,
            actor_name=actor.name if actor else None,
            summary=notification.summary,
            payload=payload if payload is not None else notification.to_payload(),
            paper_doi=self.derive_doi(notification.object.id, context.id if context else None),
            service_name=self.derive_service_name(direction, notification.origin.id, notification.target.id),
            issue_id=issue_id,
            status=status,
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def find_by_notification_id_and_direction(
        self, notification_id: str, direction: str
    ) -> NotificationRow | None:
        return await self.first_by(notification_id=notification_id, direction=str(direction))

    def _filtered(self, stmt, direction=None, status=None, service_name=None, paper_doi=None, issue_id=None):
        if direction:
            stmt = stmt.where(NotificationRow.direction == str(direction))
        if status:
            stmt = stmt.where(NotificationRow.status == str(status))
        if service_name:
            stmt = stmt.where(NotificationRow.service_name == service_name)
        if paper_doi:
            stmt = stmt.where(NotificationRow.paper_doi == paper_doi)
        if issue_id is not None:
            stmt = stmt.where(NotificationRow.issue_id == issue_id)
        return stmt

    async def query(
        self,
        direction: str | None = None,
        status: str | None = None,
        service_name: str | None = None,
        paper_doi: str | None = None,
        issue_id: int | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[NotificationRow]:
        """Filtered records, newest first."""
        stmt = self._filtered(select(NotificationRow), direction, status, service_name, paper_doi, issue_id)
        stmt = stmt.order_by(NotificationRow.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(
        self,
        direction: str | None = None,
        status: str | None = None,
        service_name: str | None = None,
        paper_doi: str | None = None,
        issue_id: int | None = None,
    ) -> int:
        stmt = self._filtered(
            select(func.count()).select_from(NotificationRow),
            direction, status, service_name, paper_doi, issue_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def status_summary(self, paper_doi: str | None = None, issue_id: int | None = None) -> dict:
        """Counts per direction and status, optionally for one paper."""
        stmt = self._filtered(
            select(NotificationRow.direction, NotificationRow.status, func.count()),
            paper_doi=paper_doi,
            issue_id=issue_id,
        ).group_by(NotificationRow.direction, NotificationRow.status)
        result = await self.session.execute(stmt)

        summary = {
            str(d): {str(s): 0 for s in NotificationStatus} | {"total": 0} for d in Direction
        }
        for direction, status, n in result.all():
            bucket = summary.setdefault(direction, {"total": 0})
            bucket[status] = bucket.get(status, 0) + n
            bucket["total"] += n
        return summary

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def mark_processing(self, row: NotificationRow) -> NotificationRow:
        return await self.update(row, status=NotificationStatus.PROCESSING.value)

    async def mark_processed(self, row: NotificationRow) -> NotificationRow:
        return await self.update(
            row,
            status=NotificationStatus.PROCESSED.value,
            processed_at=utcnow(),
            error_message=None,
        )

    async def mark_failed(self, row: NotificationRow, error: BaseException | str) -> NotificationRow:
        if isinstance(error, BaseException):
            message = f"{type(error).__name__}: {error}"
        else:
            message = str(error)
        return await self.update(row, status=NotificationStatus.FAILED.value, error_message=message)

    async def set_issue_id(
        self, row: NotificationRow, issue_id: int, paper_doi: str | None = None
    ) -> NotificationRow:
        values: dict[str, Any] = {"issue_id": issue_id}
        if paper_doi:
            values["paper_doi"] = paper_doi
        return await self.update(row, **values)

    # ------------------------------------------------------------------
    # Derivations
    # ------------------------------------------------------------------

    def derive_service_name(self, direction: str, origin_id: str | None, target_id: str | None) -> str | None:
        """The counterpart's directory key, or its raw id if unknown.

        The counterpart is the target of a sent notification and the origin
        of a received one.
        """
        remote_id = target_id if str(direction) == Direction.SENT else origin_id
        if not remote_id:
            return None
        if self.directory is not None:
            return self.directory.name_from_remote_id(remote_id) or remote_id
        return remote_id

    @staticmethod
    def derive_doi(object_id: str | None, context_id: str | None = None) -> str | None:
        """First DOI found in the object id, then the context id."""
        for candidate in (object_id, context_id):
            if not candidate:
                continue
            match = DOI_PATTERN.search(candidate)
            if match:
                return match.group(1)
        return None
