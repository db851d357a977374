"""Pattern registry: lookup of COAR Notify pattern definitions.

A pattern is plain data. The registry stores definitions by name and resolves
a notification's ``type`` tags to the definition it most likely follows.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from coar_exchange.models.enums import PatternDirection

logger = logging.getLogger(__name__)

# Tags carrying this namespace are more discriminating than Activity Streams tags
DOMAIN_TYPE_PREFIX = "coar-notify"


@dataclass(frozen=True)
class PatternField:
    """One field (or nested property) of a pattern schema."""

    name: str
    type: str = "string"
    required: bool = False
    description: str = ""
    default: Any = None
    properties: tuple["PatternField", ...] = ()

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.type, "required": self.required}
        if self.description:
            data["description"] = self.description
        if self.default is not None:
            data["default"] = self.default
        if self.properties:
            data["properties"] = {p.name: p.to_dict() for p in self.properties}
        return data


@dataclass(frozen=True)
class PatternDefinition:
    name: str
    direction: PatternDirection
    activity_type: str
    domain_type: str | None = None
    description: str = ""
    fields: tuple[PatternField, ...] = field(default_factory=tuple)

    @property
    def required_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.required]

    @property
    def optional_fields(self) -> list[str]:
        return [f.name for f in self.fields if not f.required]

    @property
    def notification_types(self) -> list[str]:
        """Type tags a notification of this pattern carries."""
        types = [self.activity_type]
        if self.domain_type:
            types.append(self.domain_type)
        return types

    def schema(self) -> dict:
        return {
            "name": self.name,
            "direction": str(self.direction),
            "activity_type": self.activity_type,
            "domain_type": self.domain_type,
            "description": self.description,
            "fields": {f.name: f.to_dict() for f in self.fields},
            "required_fields": self.required_fields,
            "optional_fields": self.optional_fields,
        }


def is_domain_type(tag: str) -> bool:
    return DOMAIN_TYPE_PREFIX in tag


class PatternRegistry:
    """In-memory registry of pattern definitions, in registration order."""

    def __init__(self) -> None:
        self._patterns: dict[str, PatternDefinition] = {}

    def register(self, definition: PatternDefinition) -> bool:
        """Register a definition. Returns False if it was skipped."""
        if not definition.name:
            logger.warning(
                "Pattern definition has no name (activity_type=%s, domain_type=%s); skipped",
                definition.activity_type,
                definition.domain_type,
            )
            return False
        if definition.name in self._patterns:
            logger.warning("Pattern %s registered twice; keeping the latest definition", definition.name)
        self._patterns[definition.name] = definition
        return True

    def lookup(self, name: str) -> PatternDefinition | None:
        return self._patterns.get(str(name))

    def schema_for(self, name: str) -> dict | None:
        pattern = self.lookup(name)
        return pattern.schema() if pattern else None

    def pattern_names(self) -> list[str]:
        return list(self._patterns)

    def send_patterns(self) -> list[PatternDefinition]:
        return [p for p in self._patterns.values() if p.direction == PatternDirection.SEND]

    def receive_patterns(self) -> list[PatternDefinition]:
        return [p for p in self._patterns.values() if p.direction == PatternDirection.RECEIVE]

    def find_by_types(self, types: list[str] | str | None) -> PatternDefinition | None:
        """Resolve type tags to a pattern.

        Domain tags are matched against ``domain_type`` first. Several patterns
        share a domain tag (Offer and Announce of a ReviewAction), so among
        those the one whose activity tag is also present wins. Remaining tags
        are then matched against ``activity_type``.
        """
        if types is None:
            return None
        tags = [types] if isinstance(types, str) else [str(t) for t in types]

        domain_tags = [t for t in tags if is_domain_type(t)]
        activity_tags = [t for t in tags if not is_domain_type(t)]

        for tag in domain_tags:
            candidates = [p for p in self._patterns.values() if p.domain_type == tag]
            if not candidates:
                continue
            for candidate in candidates:
                if candidate.activity_type in activity_tags:
                    return candidate
            return candidates[0]

        for tag in activity_tags:
            # Prefer the pattern with no domain type: a bare "Announce" is an
            # AnnounceResource, not an AnnounceReview
            candidates = [p for p in self._patterns.values() if p.activity_type == tag]
            if not candidates:
                continue
            generic = [p for p in candidates if p.domain_type is None]
            return (generic or candidates)[0]

        return None
