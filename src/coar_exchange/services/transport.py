"""LDN transport: POST a notification to a remote inbox."""

import logging
from dataclasses import dataclass

import httpx

from coar_exchange.errors.exceptions import PeerRejectedError, TransmissionError

logger = logging.getLogger(__name__)

LD_JSON = "application/ld+json"


@dataclass(frozen=True)
class TransportResponse:
    """Acknowledgement from a remote inbox.

    ``action`` is ``created`` for a fresh delivery and ``ok`` when the peer
    already had the notification.
    """

    status: int
    action: str
    location: str | None = None


class LdnTransport:
    def __init__(self, timeout: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self._transport = transport

    async def post(self, inbox_url: str, payload: dict) -> TransportResponse:
        """Deliver a payload.

        Raises:
            TransmissionError: network failure, timeout or 5xx. Retryable.
            PeerRejectedError: any other non-success status. Terminal.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    inbox_url,
                    json=payload,
                    headers={"Content-Type": LD_JSON, "Accept": LD_JSON},
                )
        except httpx.TimeoutException as exc:
            raise TransmissionError(f"Timed out posting to {inbox_url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransmissionError(f"Network error posting to {inbox_url}: {exc}") from exc

        status = response.status_code
        location = response.headers.get("location")
        if status in (201, 202):
            return TransportResponse(status=status, action="created", location=location)
        if status == 200:
            return TransportResponse(status=status, action="ok", location=location)

        body = response.text[:500]
        if status >= 500:
            raise TransmissionError(f"{inbox_url} answered {status}: {body}", status=status)
        raise PeerRejectedError(f"{inbox_url} rejected the notification with {status}: {body}", status=status)
