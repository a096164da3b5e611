"""Registry of bundled JSON schemas for exported scan data."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from jsonschema import Draft7Validator, ValidationError

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

SchemaValidationError = ValidationError
"""Alias for jsonschema.ValidationError.
Keeps callers unaware of the implementation.
"""

SCHEMA_FILES = {
    "binary_report_v0.1": "binary_report_schema_v0.1.json",
    "scan_payload_v0.1": "scan_payload_schema_v0.1.json",
}

_VALIDATORS: dict[str, Draft7Validator] = {}


def _load_json_file(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def get_schema(name: str) -> Mapping[str, Any]:
    """Return the JSON schema with the given registry name."""

    return _load_json_file(SCHEMA_DIR / SCHEMA_FILES[name])


def _validator(name: str) -> Draft7Validator:
    if name not in _VALIDATORS:
        schema = get_schema(name)
        Draft7Validator.check_schema(schema)
        _VALIDATORS[name] = Draft7Validator(schema)
    return _VALIDATORS[name]


def validate(name: str, instance: Any) -> None:
    """Validate an instance against a named schema."""

    _validator(name).validate(instance)
