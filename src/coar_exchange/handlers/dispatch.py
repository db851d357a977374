"""Tag-keyed handler lookup for received notifications."""

import logging
from typing import TYPE_CHECKING

from coar_exchange.db.models.notification import NotificationRow
from coar_exchange.handlers.announcements import (
    AnnounceEndorsementHandler,
    AnnounceRelationshipHandler,
    AnnounceResourceHandler,
    AnnounceReviewHandler,
)
from coar_exchange.handlers.base import BaseHandler
from coar_exchange.handlers.responses import (
    AcceptHandler,
    RejectHandler,
    TentativeAcceptHandler,
    TentativeRejectHandler,
)
from coar_exchange.handlers.unknown import UnknownHandler
from coar_exchange.handlers.unprocessable import UnprocessableHandler
from coar_exchange.models.notification import Notification, as_type_list
from coar_exchange.patterns.registry import is_domain_type
from coar_exchange.repositories.notification_repo import NotificationRepository

if TYPE_CHECKING:
    from coar_exchange.context import ExchangeContext

logger = logging.getLogger(__name__)

HANDLERS: dict[str, type[BaseHandler]] = {
    "Accept": AcceptHandler,
    "Reject": RejectHandler,
    "TentativeAccept": TentativeAcceptHandler,
    "TentativeReject": TentativeRejectHandler,
    "coar-notify:ReviewAction": AnnounceReviewHandler,
    "coar-notify:EndorsementAction": AnnounceEndorsementHandler,
    "coar-notify:RelationshipAction": AnnounceRelationshipHandler,
    "Announce": AnnounceResourceHandler,
    "coar-notify:UnprocessableNotification": UnprocessableHandler,
    "Flag": UnprocessableHandler,
}


class HandlerDispatcher:
    """Chooses a handler from a notification's type tags.

    Namespaced ``coar-notify:`` tags are tried before Activity Streams tags,
    so ``["Announce", "coar-notify:ReviewAction"]`` reaches the review handler
    rather than the generic resource one.
    """

    def __init__(
        self,
        handlers: dict[str, type[BaseHandler]] | None = None,
        fallback: type[BaseHandler] = UnknownHandler,
    ):
        self.handlers = dict(HANDLERS if handlers is None else handlers)
        self.fallback = fallback

    def resolve(self, types: list[str] | str | None) -> type[BaseHandler]:
        tags = as_type_list(types)
        ordered = [t for t in tags if is_domain_type(t)] + [t for t in tags if not is_domain_type(t)]
        for tag in ordered:
            handler_cls = self.handlers.get(tag)
            if handler_cls is not None:
                return handler_cls
        return self.fallback

    async def dispatch(
        self,
        notification: Notification,
        record: NotificationRow,
        ctx: "ExchangeContext",
        repo: NotificationRepository,
    ) -> BaseHandler:
        handler_cls = self.resolve(notification.types)
        logger.info("Dispatching %s to %s", notification.id, handler_cls.__name__)
        handler = handler_cls(notification, record, ctx, repo)
        await handler.process()
        return handler
