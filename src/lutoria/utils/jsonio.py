"""Small JSON helpers used by the grade sidecars."""

from __future__ import annotations

import json
import math
import os
from pathlib import Path
from typing import Any

from ..errors import GradeFileInvalidError


def _finite_float(token: str) -> float:
    value = float(token)
    if not math.isfinite(value):
        raise ValueError(f"non-finite number {token}")
    return value


def _reject_constant(token: str) -> float:
    raise ValueError(f"non-finite number {token}")


def read_json(path: Path) -> dict[str, Any]:
    """Return the JSON object stored at *path*.

    Missing files, malformed JSON, non-finite numbers (``NaN``, ``Infinity``,
    overflowing literals) and documents whose top level is not an object
    raise :class:`GradeFileInvalidError`.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise GradeFileInvalidError(f"Grade file not found: {path}") from exc
    try:
        document = json.loads(text, parse_float=_finite_float, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise GradeFileInvalidError(f"{path} is not valid JSON (line {exc.lineno})") from exc
    except ValueError as exc:
        raise GradeFileInvalidError(f"{path} contains a {exc}") from exc
    if not isinstance(document, dict):
        raise GradeFileInvalidError(f"{path} must contain a JSON object")
    return document


def atomic_write_text(path: Path, data: str) -> None:
    """Replace *path* with *data* without ever exposing a partial file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        with staging.open("w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staging, path)
    finally:
        staging.unlink(missing_ok=True)


def write_json(path: Path, data: dict[str, Any]) -> None:
    """Serialise *data* with stable key order and write it atomically.

    Non-finite floats raise :class:`ValueError` before anything is written.
    """

    text = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True, allow_nan=False)
    atomic_write_text(path, text + "\n")
