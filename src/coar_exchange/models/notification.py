"""Pydantic models for COAR Notify notifications.

Field names follow Python conventions; aliases carry the JSON-LD keys used
on the wire (``inReplyTo``, ``ietf:cite-as``, ...). Unknown keys are kept so
a parsed notification dumps back to an equivalent payload.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ACTIVITY_STREAMS_CONTEXT = "https://www.w3.org/ns/activitystreams"
COAR_NOTIFY_CONTEXT = "https://coar-notify.net"
DEFAULT_CONTEXT = [ACTIVITY_STREAMS_CONTEXT, COAR_NOTIFY_CONTEXT]

TypeValue = str | list[str] | None


def as_type_list(value: TypeValue) -> list[str]:
    """Normalise a JSON-LD ``type`` value (string or list) to a list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


class _NotifyModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def types(self) -> list[str]:
        return as_type_list(getattr(self, "type", None))


class NotifyService(_NotifyModel):
    id: str
    inbox: str | None = None
    type: TypeValue = "Service"


class NotifyActor(_NotifyModel):
    id: str | None = None
    name: str | None = None
    type: TypeValue = None


class NotifyItem(_NotifyModel):
    id: str
    media_type: str | None = Field(None, alias="mediaType")
    type: TypeValue = None


class NotifyObject(_NotifyModel):
    id: str | None = None
    type: TypeValue = None
    cite_as: str | None = Field(None, alias="ietf:cite-as")
    item: NotifyItem | None = Field(None, alias="ietf:item")
    # Relationship triple (AnnounceRelationship)
    subject: str | None = Field(None, alias="as:subject")
    relationship: str | None = Field(None, alias="as:relationship")
    related_object: str | None = Field(None, alias="as:object")


class Notification(_NotifyModel):
    ld_context: Any = Field(default_factory=lambda: list(DEFAULT_CONTEXT), alias="@context")
    id: str
    type: TypeValue = None
    origin: NotifyService
    target: NotifyService
    object: NotifyObject
    actor: NotifyActor | None = None
    context: NotifyObject | None = None
    in_reply_to: str | None = Field(None, alias="inReplyTo")
    summary: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Notification":
        return cls.model_validate(payload)

    def to_payload(self) -> dict:
        """Dump to the JSON-LD wire representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
