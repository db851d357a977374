"""JSON Schema file loading for the packaged schemas."""

import json
from pathlib import Path

SCHEMA_DIR = Path(__file__).resolve().parent / "json"


def load_json(path: Path) -> dict:
    """Load a JSON file and return parsed dict."""
    return json.loads(path.read_text(encoding="utf-8"))


def load_schema(schema_rel: str, schema_dir: Path = SCHEMA_DIR) -> dict:
    """Load a schema by its file name under the schema directory."""
    return load_json(schema_dir / schema_rel)
