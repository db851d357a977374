"""structlog rendering for stdlib logging, plus per-request and per-job context."""

import logging
import sys

import structlog

# Event keys whose values never reach the logs
REDACTED_KEYS = frozenset({"secret", "token", "authorization", "github_token", "neurolibre_secret"})

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


def redact_secrets(logger, method_name, event_dict):
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging(log_level: str = "info", json_output: bool = False) -> None:
    """Route every stdlib logger through structlog.

    Modules keep using ``logging.getLogger(__name__)``; bound context such
    as ``trace_id`` or ``job_id`` is merged into each record.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        json_output: JSON lines for deployments, colored console otherwise.
    """
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info if json_output else structlog.processors.StackInfoRenderer(),
            renderer,
        ],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # httpx logs full URLs, which carry the NeuroLibre secret as a query parameter
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(trace_id: str, source_address: str | None = None) -> None:
    """Tag log lines of one inbound delivery."""
    values = {"trace_id": trace_id}
    if source_address:
        values["source_address"] = source_address
    structlog.contextvars.bind_contextvars(**values)


def bind_job_context(job_id: str, job_type: str, attempt: int) -> None:
    structlog.contextvars.bind_contextvars(job_id=job_id, job_type=job_type, attempt=attempt)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
