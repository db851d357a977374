"""Protocol validation for COAR Notify payloads.

Two layers: the structural JSON Schema shared by every notification, then the
required fields of the pattern the notification's type tags resolve to.
Errors are returned as a field-keyed map, e.g. ``{"target.id": [...]}``.
"""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema

from coar_exchange.errors.exceptions import ValidationError
from coar_exchange.patterns.registry import PatternDefinition, PatternField, PatternRegistry
from coar_exchange.schemas.loader import SCHEMA_DIR, load_schema
from coar_exchange.schemas.registry import SCHEMA_REGISTRY

FieldErrors = dict[str, list[str]]


@lru_cache(maxsize=8)
def _schema_validator(schema_rel: str, schema_dir: Path) -> jsonschema.Draft202012Validator:
    schema = load_schema(schema_rel, schema_dir)
    jsonschema.Draft202012Validator.check_schema(schema)
    return jsonschema.Draft202012Validator(schema)


def _add(errors: FieldErrors, key: str, message: str) -> None:
    messages = errors.setdefault(key or "$", [])
    if message not in messages:
        messages.append(message)


def schema_errors(instance: object, schema_name: str, schema_dir: Path = SCHEMA_DIR) -> FieldErrors:
    """Validate an instance against a named schema and key errors by field path."""
    validator = _schema_validator(SCHEMA_REGISTRY[schema_name], schema_dir)
    errors: FieldErrors = {}
    for error in validator.iter_errors(instance):
        path = [str(p) for p in error.absolute_path]
        if error.validator == "required" and isinstance(error.instance, dict):
            for name in error.validator_value:
                if name not in error.instance:
                    _add(errors, ".".join(path + [name]), "is a required property")
            continue
        _add(errors, ".".join(path), error.message)
    return errors


class NotificationValidator:
    """Validates notification payloads against the protocol's structural rules."""

    def __init__(self, patterns: PatternRegistry, schema_dir: str | Path = SCHEMA_DIR):
        self.patterns = patterns
        self.schema_dir = Path(schema_dir).resolve()

    def parse(self, raw: bytes | str) -> dict:
        """Decode a raw request body into a JSON object."""
        try:
            payload = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError("Invalid JSON", details={"$": [str(exc)]}) from exc
        if not isinstance(payload, dict):
            raise ValidationError("Invalid notification", details={"$": ["must be a JSON object"]})
        return payload

    def validate(self, payload: dict, pattern_name: str | None = None) -> FieldErrors:
        """Return field-keyed errors; an empty dict means the payload is valid.

        Args:
            payload: The notification as a JSON object.
            pattern_name: Check against this pattern instead of resolving
                one from the payload's type tags.
        """
        errors = schema_errors(payload, "notification", self.schema_dir)

        if pattern_name:
            pattern = self.patterns.lookup(pattern_name)
            if pattern is None:
                raise KeyError(f"Unknown pattern: {pattern_name}")
            missing_types = [t for t in pattern.notification_types if t not in _types_of(payload)]
            if missing_types:
                _add(errors, "type", f"must include {', '.join(missing_types)} for {pattern.name}")
        else:
            pattern = self.patterns.find_by_types(_types_of(payload))

        if pattern is not None:
            self._check_pattern_fields(payload, pattern, errors)
        return errors

    def validate_or_raise(self, payload: dict, pattern_name: str | None = None) -> None:
        errors = self.validate(payload, pattern_name)
        if errors:
            raise ValidationError("Invalid notification", details=errors)

    def _check_pattern_fields(self, payload: dict, pattern: PatternDefinition, errors: FieldErrors) -> None:
        for field in pattern.fields:
            self._check_field(payload, field, prefix="", pattern=pattern, errors=errors)

    def _check_field(
        self,
        container: dict,
        field: PatternField,
        prefix: str,
        pattern: PatternDefinition,
        errors: FieldErrors,
    ) -> None:
        key = f"{prefix}{field.name}"
        value = container.get(field.name)
        if value in (None, "", [], {}):
            if field.required:
                _add(errors, key, f"is required by pattern {pattern.name}")
            return
        if field.properties and isinstance(value, dict):
            for prop in field.properties:
                self._check_field(value, prop, prefix=f"{key}.", pattern=pattern, errors=errors)


def _types_of(payload: dict) -> list[str]:
    value = payload.get("type")
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value]
    return []
