"""Schema validation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from ..config import SCHEMA_DIR
from ..errors import GradeFileInvalidError

_VALIDATORS: dict[str, Draft202012Validator] = {}


def _load_validator(name: str) -> Draft202012Validator:
    validator = _VALIDATORS.get(name)
    if validator is None:
        schema_path = Path(SCHEMA_DIR) / name
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        validator = Draft202012Validator(schema)
        _VALIDATORS[name] = validator
    return validator


def mood_payload_errors(payload: Any) -> dict[str, list[str]]:
    """Return validation messages for *payload* keyed by the offending field.

    Problems with the payload as a whole (for example a JSON list instead of an
    object) are reported under the empty key.
    """

    validator = _load_validator("mood_params.schema.json")
    problems: dict[str, list[str]] = {}
    for error in validator.iter_errors(payload):
        key = str(error.path[0]) if error.path else ""
        problems.setdefault(key, []).append(error.message)
    return problems


def validate_grade_document(document: dict[str, Any]) -> None:
    """Validate a grade sidecar and raise :class:`GradeFileInvalidError` on failure."""

    validator = _load_validator("grade.schema.json")
    errors = sorted(validator.iter_errors(document), key=lambda err: [str(part) for part in err.path])
    if errors:
        messages = "; ".join(error.message for error in errors)
        raise GradeFileInvalidError(messages)


__all__ = ["mood_payload_errors", "validate_grade_document"]
