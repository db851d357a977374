"""Handlers for Announce notifications: reviews, endorsements, relationships, resources."""

import logging

from coar_exchange.handlers.base import BaseHandler
from coar_exchange.models.notification import as_type_list

logger = logging.getLogger(__name__)


def relationship_label(uri: str | None) -> str | None:
    """Short name of a relationship URI, e.g. ``...frbr/core#supplement`` -> ``supplement``."""
    if not uri:
        return uri
    if "#" in uri:
        return uri.rsplit("#", 1)[-1]
    if "/" in uri:
        return uri.rstrip("/").rsplit("/", 1)[-1]
    return uri


class AnnounceReviewHandler(BaseHandler):
    async def handle(self) -> None:
        review_url = self.notification.object.id
        if not review_url:
            logger.warning("AnnounceReview %s has no object id (review URL)", self.notification.id)
            return

        await self.post_result(self.build_message(
            f"📝 Review published by {self.service_label}",
            summary=self.notification.summary,
            details=f"**Review URL:** {review_url}",
        ))
        await self.update_paper_metadata({"review_url": review_url})


class AnnounceEndorsementHandler(BaseHandler):
    async def handle(self) -> None:
        endorsement_url = self.notification.object.id
        if not endorsement_url:
            logger.warning("AnnounceEndorsement %s has no object id (endorsement URL)", self.notification.id)
            return

        await self.post_result(self.build_message(
            f"⭐ Endorsement published by {self.service_label}",
            summary=self.notification.summary,
            details=f"**Endorsement URL:** {endorsement_url}",
        ))
        await self.update_paper_metadata({"endorsement_url": endorsement_url})


class AnnounceRelationshipHandler(BaseHandler):
    async def handle(self) -> None:
        relationship = self.notification.object
        subject = relationship.subject
        label = relationship_label(relationship.relationship)
        related = relationship.related_object

        details = "\n".join([
            f"**Relationship Type:** {label}",
            f"**Subject Resource:** {subject}",
            f"**Related Resource:** {related}",
        ])
        await self.post_result(self.build_message(
            f"🔗 Related resource announced by {self.service_label}",
            summary=self.notification.summary,
            details=details,
        ))
        await self.update_paper_metadata({
            "relationship": {"subject": subject, "type": label, "object": related},
        })


class AnnounceResourceHandler(BaseHandler):
    async def handle(self) -> None:
        resource_url = self.notification.object.id
        if not resource_url:
            logger.warning("AnnounceResource %s has no object id", self.notification.id)
            return
        resource_type = ", ".join(as_type_list(self.notification.object.type))

        await self.post_result(self.build_message(
            f"📦 Service result published by {self.service_label}",
            summary=self.notification.summary,
            details=f"**Resource URL:** {resource_url}\n**Type:** {resource_type}",
        ))
        await self.update_paper_metadata({"resource_url": resource_url, "resource_type": resource_type})
