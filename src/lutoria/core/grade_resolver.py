"""Assemble :class:`GradeParameters` from presets, references and mood payloads.

Every grading request starts from the documented pipeline defaults and overlays
only what its source provides.  The assemblers never fail on odd values; they
log the problems as warnings and let the pipeline clamp.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Mapping, Optional

from ..models.types import (
    SCALAR_FIELDS,
    VECTOR_FIELDS,
    ColorStats,
    GradeParameters,
    Preset,
    as_vector3,
)
from ..schemas import mood_payload_errors

_LOGGER = logging.getLogger(__name__)

# Fields the mood service is allowed to drive.  Anything else in its answer is
# ignored so a creative model cannot switch on grain or vignette by accident.
MOOD_KEYS = ("lift", "gamma", "gain", "saturation", "temperature", "tint")

# Typical working ranges; values outside them are legal but worth a warning.
TYPICAL_RANGES: dict[str, tuple[float, float]] = {
    "lift": (-0.2, 0.2),
    "gamma": (0.5, 1.5),
    "gain": (0.5, 1.5),
    "saturation": (0.0, 2.0),
    "temperature": (-1.0, 1.0),
    "tint": (-1.0, 1.0),
    "contrast": (0.0, 1.0),
    "vignette": (0.0, 2.0),
    "grain": (0.0, 1.0),
    "crosstalk": (0.0, 1.0),
    "sat_rolloff": (0.0, 1.0),
    "mix": (0.0, 1.0),
}


def default_parameters(source_stats: Optional[ColorStats] = None) -> GradeParameters:
    """Return the neutral starting point for every grade."""

    return GradeParameters(source_stats=source_stats)


def parameters_for_preset(
    preset: Preset,
    source_stats: Optional[ColorStats] = None,
) -> GradeParameters:
    """Overlay *preset* on the defaults; presets never use statistical transfer."""

    params = default_parameters(source_stats).with_overrides(preset.overrides)
    return replace(params, mix=0.0)


def parameters_for_reference(
    source_stats: ColorStats,
    target_stats: ColorStats,
    *,
    mix: float = 1.0,
) -> GradeParameters:
    """Return parameters that statistically match *source_stats* to *target_stats*."""

    return replace(
        default_parameters(source_stats),
        target_stats=target_stats,
        mix=mix,
    )


def sanitize_mood_payload(payload: Any) -> dict[str, Any]:
    """Return the usable subset of a mood service answer.

    Fields that are missing, malformed or non-finite are dropped so the
    defaults apply.  A payload that is not a JSON object yields ``{}``.
    """

    if not isinstance(payload, Mapping):
        if payload is not None:
            _LOGGER.warning("Ignoring mood parameters of type %s", type(payload).__name__)
        return {}

    problems = mood_payload_errors(dict(payload))
    clean: dict[str, Any] = {}
    for key in MOOD_KEYS:
        if key not in payload:
            continue
        if key in problems:
            _LOGGER.warning("Ignoring mood parameter %s: %s", key, "; ".join(problems[key]))
            continue
        value = payload[key]
        try:
            coerced = as_vector3(value) if key in VECTOR_FIELDS else float(value)
        except (TypeError, ValueError) as exc:
            _LOGGER.warning("Ignoring mood parameter %s: %s", key, exc)
            continue
        channels = coerced if isinstance(coerced, tuple) else (coerced,)
        if not all(math.isfinite(channel) for channel in channels):
            _LOGGER.warning("Ignoring non-finite mood parameter %s=%r", key, value)
            continue
        clean[key] = coerced
    return clean


def parameters_for_mood(
    payload: Any,
    source_stats: Optional[ColorStats] = None,
) -> GradeParameters:
    """Return parameters derived from a mood service answer."""

    params = default_parameters(source_stats).with_overrides(sanitize_mood_payload(payload))
    params = replace(params, mix=0.0)
    validate_parameters(params)
    return params


def validate_parameters(params: GradeParameters) -> list[str]:
    """Return (and log) the out-of-range findings for *params*.

    The pipeline clamps everything it cannot use, so the findings are
    warnings for whoever assembled the parameters, never errors.
    """

    issues: list[str] = []
    for name in VECTOR_FIELDS + SCALAR_FIELDS:
        value = getattr(params, name)
        channels = value if isinstance(value, tuple) else (value,)
        if not all(math.isfinite(channel) for channel in channels):
            issues.append(f"{name} has non-finite values {value}")
            continue
        if name == "gamma" and any(channel <= 0.0 for channel in channels):
            issues.append(f"gamma {value} must be positive; it will be floored")
            continue
        bounds = TYPICAL_RANGES.get(name)
        if bounds is None:
            continue
        low, high = bounds
        if any(channel < low or channel > high for channel in channels):
            issues.append(f"{name} {value} is outside the typical range [{low}, {high}]")

    for issue in issues:
        _LOGGER.warning("Invalid grade parameter: %s", issue)
    return issues


__all__ = [
    "MOOD_KEYS",
    "TYPICAL_RANGES",
    "default_parameters",
    "parameters_for_mood",
    "parameters_for_preset",
    "parameters_for_reference",
    "sanitize_mood_payload",
    "validate_parameters",
]
