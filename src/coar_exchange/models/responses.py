"""Result and response models for the inbox and outbox."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error body returned by the inbox: error class plus detail."""

    model_config = ConfigDict(extra="forbid")

    error: str
    code: str
    details: dict[str, Any] | list[Any] | str | None = None
    trace_id: str | None = None


class ReceiveResult(BaseModel):
    status: Literal["created", "ok"]
    location: str
    record_id: str | None = None
    message: str


class SendResult(BaseModel):
    success: bool
    notification_id: str
    service: str | None = None
    response_action: str | None = None
    response_location: str | None = None
    record_id: str | None = None
    error: str | None = None
    retryable: bool = False


class InboxContainer(BaseModel):
    """LDP container listing received notification ids."""

    model_config = ConfigDict(populate_by_name=True)

    context: str = Field("http://www.w3.org/ns/ldp", alias="@context")
    id: str = Field(..., alias="@id")
    type: str = Field("ldp:Container", alias="@type")
    contains: list[str]
