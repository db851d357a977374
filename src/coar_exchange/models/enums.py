"""String enums shared by the store, registry and workers."""

from enum import StrEnum


class Direction(StrEnum):
    SENT = "sent"
    RECEIVED = "received"


class PatternDirection(StrEnum):
    SEND = "send"
    RECEIVE = "receive"


class NotificationStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class JobStatus(StrEnum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class JobType(StrEnum):
    PROCESS_RECEIVED = "process_received"
    SEND_NOTIFICATION = "send_notification"


class SendAction(StrEnum):
    REQUEST_REVIEW = "request_review"
    REQUEST_ENDORSEMENT = "request_endorsement"
