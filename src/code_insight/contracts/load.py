"""Load and validate JSON instances against the bundled payload schemas.

Usage::

    from code_insight.contracts.load import validate_instance, validate_payload

    validate_instance(payload, "security_result.schema.json")
    validate_payload("bug_detector", payload)
"""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import jsonschema

SCHEMA_DIR = "data/schemas"

# tool name → schema describing its payload
TOOL_SCHEMAS = {
    "complexity_analyzer": "complexity_result.schema.json",
    "security_scanner": "security_result.schema.json",
    "bug_detector": "bug_result.schema.json",
    "test_generator": "test_generation_result.schema.json",
}


def _schema_path(name: str) -> Path:
    """Resolve a bundled schema.

    Priority:
    1. ``src/code_insight/data/schemas/`` relative to this file
    2. package data via importlib.resources (wheel / zip installs)
    """
    canonical = Path(__file__).resolve().parents[1] / SCHEMA_DIR / name
    if canonical.exists():
        return canonical
    with resources.as_file(resources.files("code_insight") / SCHEMA_DIR / name) as p:
        return p


def available_schemas() -> list[str]:
    directory = Path(__file__).resolve().parents[1] / SCHEMA_DIR
    return sorted(p.name for p in directory.glob("*.schema.json"))


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    """Load a bundled JSON schema by filename."""
    path = _schema_path(name)
    if not path.exists():
        raise FileNotFoundError(f"unknown schema: {name}")
    return json.loads(path.read_text(encoding="utf-8"))


def validate_instance(instance: Any, schema_name: str) -> None:
    """Validate *instance* against the named schema.

    Raises ``jsonschema.ValidationError`` on failure.
    """
    jsonschema.validate(instance=instance, schema=load_schema(schema_name))


def validate_file(instance_path: Path, schema_name: str) -> None:
    """Load a JSON file and validate it against the named schema."""
    instance = json.loads(instance_path.read_text(encoding="utf-8"))
    validate_instance(instance, schema_name)


def validate_payload(tool_name: str, payload: Any) -> None:
    """Validate a tool's payload (dict or JSON text) against its schema."""
    try:
        schema_name = TOOL_SCHEMAS[tool_name]
    except KeyError:
        raise ValueError(f"no schema registered for tool {tool_name!r}") from None
    if isinstance(payload, str):
        payload = json.loads(payload)
    validate_instance(payload, schema_name)
