"""COAR notification storage table."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from coar_exchange.db.base import Base, TimestampMixin


class NotificationRow(Base, TimestampMixin):
    __tablename__ = "coar_notifications"
    __table_args__ = (
        # The same notification may exist once as sent and once as received
        UniqueConstraint("notification_id", "direction", name="uq_coar_notifications_id_direction"),
        Index("ix_coar_notifications_direction_status", "direction", "status"),
    )

    record_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    notification_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    notification_types: Mapped[list] = mapped_column(JSON, nullable=False)

    origin_id: Mapped[str] = mapped_column(String(500), nullable=False)
    origin_inbox: Mapped[str | None] = mapped_column(String(500), nullable=True)
    target_id: Mapped[str] = mapped_column(String(500), nullable=False)
    target_inbox: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Object and context ids may be arbitrarily long URLs
    object_id: Mapped[str] = mapped_column(Text, nullable=False)
    object_type: Mapped[list | None] = mapped_column(JSON, nullable=True)
    context_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    context_type: Mapped[list | None] = mapped_column(JSON, nullable=True)
    in_reply_to: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    actor_id: Mapped[str | None] = mapped_column(String(500), nullable=True)
    actor_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    paper_doi: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    issue_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    service_name: Mapped[str | None] = mapped_column(String(500), nullable=True, index=True)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def primary_type(self) -> str | None:
        # COAR patterns put the generic activity first, the specific type last
        return self.notification_types[-1] if self.notification_types else None

    def to_domain_object(self):
        """Re-parse the stored payload into a domain notification."""
        from coar_exchange.models.notification import Notification

        return Notification.from_payload(self.payload)
