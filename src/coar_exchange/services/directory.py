"""Service directory: the external services this instance can notify.

Loaded from a YAML file of the form::

    services:
      prereview:
        name: PREreview
        id: https://prereview.org
        inbox_url: https://coar-notify.prereview.org/inbox
        supported_patterns: [RequestReview]
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from coar_exchange.errors.exceptions import ValidationError
from coar_exchange.schemas.validator import schema_errors

logger = logging.getLogger(__name__)

DEFAULT_SERVICES_FILE = Path(__file__).resolve().parent.parent / "data" / "services.yml"


@dataclass(frozen=True)
class ServiceEntry:
    key: str
    display_name: str
    remote_id: str
    inbox_url: str
    supported_patterns: frozenset[str] = field(default_factory=frozenset)

    def supports(self, pattern_name: str) -> bool:
        return pattern_name in self.supported_patterns


def _load_entries(path: Path) -> dict[str, ServiceEntry]:
    if not path.exists():
        logger.warning("Service directory file not found at %s; no services configured", path)
        return {}

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    errors = schema_errors(data, "service-directory")
    if errors:
        raise ValidationError(f"Invalid service directory file {path}", details=errors)

    entries = {}
    for key, config in (data.get("services") or {}).items():
        entries[key] = ServiceEntry(
            key=key,
            display_name=config.get("name") or key,
            remote_id=config["id"],
            inbox_url=config["inbox_url"],
            supported_patterns=frozenset(config.get("supported_patterns") or ()),
        )
    return entries


class ServiceDirectory:
    """Read-only lookup of configured services by short key or remote id."""

    def __init__(self, entries: dict[str, ServiceEntry] | None = None, path: Path | None = None):
        self._entries: dict[str, ServiceEntry] = dict(entries or {})
        self._path = path

    @classmethod
    def from_yaml(cls, path: str | Path | None = None) -> "ServiceDirectory":
        """Load and schema-check a directory file; defaults to the packaged one."""
        resolved = Path(path) if path else DEFAULT_SERVICES_FILE
        entries = _load_entries(resolved)
        logger.info("Loaded %d COAR services from %s", len(entries), resolved)
        return cls(entries, path=resolved)

    def get(self, key: str) -> ServiceEntry | None:
        return self._entries.get(str(key))

    def name_from_remote_id(self, remote_id: str | None) -> str | None:
        """Map a remote service identity URI back to its short key."""
        if not remote_id:
            return None
        for key, entry in self._entries.items():
            if entry.remote_id == remote_id:
                return key
        return None

    def supports_pattern(self, key: str, pattern_name: str) -> bool:
        entry = self.get(key)
        return entry.supports(pattern_name) if entry else False

    def service_names(self) -> list[str]:
        return list(self._entries)

    def display_name(self, key: str) -> str | None:
        entry = self.get(key)
        return entry.display_name if entry else None

    def inbox_url(self, key: str) -> str | None:
        entry = self.get(key)
        return entry.inbox_url if entry else None

    def reload(self) -> None:
        """Re-read the backing file, replacing all entries."""
        if self._path is None:
            return
        self._entries = _load_entries(self._path)
        logger.info("Reloaded %d COAR services from %s", len(self._entries), self._path)

    def __len__(self) -> int:
        return len(self._entries)
