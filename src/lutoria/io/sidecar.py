"""Read/write helpers for ``.grade.json`` sidecar files.

A sidecar records the exact parameters behind an export so the same grade can
be re-applied to another photograph later.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from ..config import SIDECAR_SCHEMA, SIDECAR_SUFFIX
from ..errors import GradeFileInvalidError
from ..models.types import GradeMode, GradeParameters
from ..schemas import validate_grade_document
from ..utils.jsonio import read_json, write_json


def sidecar_path_for_export(export_path: Path) -> Path:
    """Return the expected sidecar path for *export_path*."""

    return Path(export_path).with_suffix(SIDECAR_SUFFIX)


def save_grade(
    path: Path,
    params: GradeParameters,
    *,
    mode: GradeMode,
    preset: Optional[str] = None,
    source: Optional[str] = None,
) -> Path:
    """Persist *params* to *path* and return it."""

    document: dict[str, Any] = {
        "schema": SIDECAR_SCHEMA,
        "mode": mode.value,
        "preset": preset,
        "source": source,
        "params": params.to_dict(),
    }
    validate_grade_document(document)
    write_json(Path(path), document)
    return Path(path)


def load_grade(path: Path) -> GradeParameters:
    """Return the parameters stored in the sidecar at *path*."""

    document = read_json(Path(path))
    validate_grade_document(document)
    try:
        return GradeParameters.from_dict(document["params"])
    except (TypeError, ValueError) as exc:
        raise GradeFileInvalidError(f"Invalid grade parameters in {path}: {exc}") from exc


__all__ = ["load_grade", "save_grade", "sidecar_path_for_export"]
