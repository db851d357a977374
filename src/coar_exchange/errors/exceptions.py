"""Exception taxonomy for the notification exchange.

Every error carries ``retryable``: the job runner retries only errors where
it is True. Anything that is not a ``CoarExchangeError`` counts as retryable.
"""


class CoarExchangeError(Exception):
    """Base exception for the exchange."""

    retryable: bool = False

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(CoarExchangeError):
    """Protocol schema or store invariant violation. Never retried."""

    def __init__(self, message: str, details=None, code: str = "VALIDATION_ERROR"):
        super().__init__(code, message, details, status_code=400)


class DuplicateNotificationError(ValidationError):
    """A record with the same (notification_id, direction) already exists."""

    def __init__(self, notification_id: str, direction: str):
        self.notification_id = notification_id
        self.direction = direction
        super().__init__(
            f"Notification '{notification_id}' already stored as {direction}",
            details={"notification_id": ["already exists for direction " + direction]},
            code="DUPLICATE_NOTIFICATION",
        )


class MissingDataError(ValidationError):
    """Domain record lacks data required to build an outbound notification."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"Missing required paper data: {', '.join(missing)}",
            details={name: ["is required"] for name in missing},
            code="MISSING_DATA",
        )


class UnknownServiceError(ValidationError):
    """Service key is not in the service directory."""

    def __init__(self, service_key: str, available: list[str]):
        self.service_key = service_key
        self.available = available
        super().__init__(
            f"Unknown service: {service_key}",
            details={"service": [f"available services: {', '.join(available)}"]},
            code="UNKNOWN_SERVICE",
        )


class ForbiddenError(CoarExchangeError):
    """Source address rejected by the allow-list policy."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__("FORBIDDEN", message, status_code=403)


class NotFoundError(CoarExchangeError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class ServiceDisabledError(CoarExchangeError):
    """The notification subsystem is administratively disabled."""

    def __init__(self):
        super().__init__(
            "SERVICE_DISABLED",
            "COAR Notify is not enabled",
            details="Set COAR_ENABLED=true to enable this feature",
            status_code=503,
        )


class TransmissionError(CoarExchangeError):
    """Network-layer failure talking to a remote inbox. Retried."""

    retryable = True

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__("TRANSMISSION_ERROR", message, status_code=502)


class PeerRejectedError(TransmissionError):
    """The remote inbox refused the notification (4xx). Not retried."""

    retryable = False

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message, status=status)
        self.code = "PEER_REJECTED"
