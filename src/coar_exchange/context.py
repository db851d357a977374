"""Process-wide collaborators, built once at startup and passed explicitly."""

from dataclasses import dataclass, field
from typing import Any

from coar_exchange.config import Settings
from coar_exchange.handlers.dispatch import HandlerDispatcher
from coar_exchange.integrations.base import ReviewCollaborator
from coar_exchange.integrations.neurolibre import NeurolibreCollaborator
from coar_exchange.patterns.definitions import build_default_registry
from coar_exchange.patterns.registry import PatternRegistry
from coar_exchange.schemas.validator import NotificationValidator
from coar_exchange.services.directory import ServiceDirectory
from coar_exchange.services.transport import LdnTransport


@dataclass
class ExchangeContext:
    settings: Settings
    patterns: PatternRegistry
    directory: ServiceDirectory
    validator: NotificationValidator
    collaborator: ReviewCollaborator
    transport: LdnTransport
    dispatcher: HandlerDispatcher = field(default_factory=HandlerDispatcher)
    # Optional job wake-up channel; the job table works without it
    redis: Any = None


def build_context(
    settings: Settings,
    collaborator: ReviewCollaborator | None = None,
    transport: LdnTransport | None = None,
    directory: ServiceDirectory | None = None,
) -> ExchangeContext:
    """Assemble the default context; any collaborator can be overridden."""
    patterns = build_default_registry()
    return ExchangeContext(
        settings=settings,
        patterns=patterns,
        directory=directory or ServiceDirectory.from_yaml(settings.services_file or None),
        validator=NotificationValidator(patterns),
        collaborator=collaborator or NeurolibreCollaborator.from_settings(settings),
        transport=transport or LdnTransport(timeout=settings.http_timeout),
    )
