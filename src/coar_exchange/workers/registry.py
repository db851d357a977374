"""Worker registry mapping job types to worker classes."""

from typing import TYPE_CHECKING

from coar_exchange.models.enums import JobType
from coar_exchange.workers.base import BaseWorker
from coar_exchange.workers.receive_worker import ReceiveWorker
from coar_exchange.workers.send_worker import SendWorker

if TYPE_CHECKING:
    from coar_exchange.context import ExchangeContext

_registry: dict[str, type[BaseWorker]] = {
    JobType.PROCESS_RECEIVED: ReceiveWorker,
    JobType.SEND_NOTIFICATION: SendWorker,
}


def get_worker(job_type: str, ctx: "ExchangeContext") -> BaseWorker | None:
    """Get a worker instance for a job type."""
    cls = _registry.get(job_type)
    return cls(ctx) if cls else None
