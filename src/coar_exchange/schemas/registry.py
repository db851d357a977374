"""Schema registry mapping logical names to file paths."""

# Maps logical schema names to relative paths under schemas/json/
SCHEMA_REGISTRY: dict[str, str] = {
    "notification": "notification.schema.json",
    "service-directory": "service-directory.schema.json",
}
