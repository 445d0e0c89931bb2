"""Data models used by Lutoria."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from PySide6.QtGui import QImage

Vector3 = tuple[float, float, float]


def as_vector3(value: Any) -> Vector3:
    """Return *value* as an ``(r, g, b)`` tuple of floats.

    Raises :class:`ValueError` when *value* is not a sequence of exactly three
    numbers.
    """

    if isinstance(value, (str, bytes)):
        raise ValueError(f"Expected three numbers, got {value!r}")
    try:
        items = [float(item) for item in value]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected three numbers, got {value!r}") from exc
    if len(items) != 3:
        raise ValueError(f"Expected exactly three channels, got {len(items)}")
    return items[0], items[1], items[2]


@dataclass(frozen=True, slots=True)
class ColorStats:
    """Per-channel mean and population standard deviation in ``[0, 1]``."""

    mean: Vector3
    std: Vector3

    def __post_init__(self) -> None:
        object.__setattr__(self, "mean", as_vector3(self.mean))
        std = as_vector3(self.std)
        if any(channel < 0.0 or math.isnan(channel) for channel in std):
            raise ValueError(f"Standard deviation must be non-negative: {std}")
        object.__setattr__(self, "std", std)

    def to_dict(self) -> dict[str, list[float]]:
        return {"mean": list(self.mean), "std": list(self.std)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ColorStats":
        return cls(mean=as_vector3(payload["mean"]), std=as_vector3(payload["std"]))


# Wire names (camelCase) for the fields whose Python name differs.
_WIRE_NAMES = {
    "sat_rolloff": "satRolloff",
    "shadow_tint": "shadowTint",
    "highlight_tint": "highlightTint",
    "source_stats": "sourceStats",
    "target_stats": "targetStats",
}
_FIELD_FOR_WIRE = {wire: name for name, wire in _WIRE_NAMES.items()}

VECTOR_FIELDS = ("lift", "gamma", "gain", "shadow_tint", "highlight_tint")
SCALAR_FIELDS = (
    "saturation",
    "temperature",
    "tint",
    "contrast",
    "vignette",
    "grain",
    "crosstalk",
    "sat_rolloff",
    "mix",
)
STATS_FIELDS = ("source_stats", "target_stats")


def field_name(key: str) -> str:
    """Return the dataclass attribute for a wire or attribute *key*."""

    return _FIELD_FOR_WIRE.get(key, key)


@dataclass(frozen=True, slots=True)
class GradeParameters:
    """Everything the grading pipeline needs for one render.

    Defaults are the documented pipeline defaults, so ``GradeParameters()`` is
    the neutral starting point that presets and other sources overlay.
    """

    # Primary CDL
    lift: Vector3 = (0.0, 0.0, 0.0)
    gamma: Vector3 = (1.0, 1.0, 1.0)
    gain: Vector3 = (1.0, 1.0, 1.0)
    # Basic
    saturation: float = 1.0
    temperature: float = 0.0
    tint: float = 0.0
    # Filmic
    contrast: float = 0.1
    vignette: float = 0.0
    grain: float = 0.0
    crosstalk: float = 0.1
    sat_rolloff: float = 0.0
    # Split tone
    shadow_tint: Vector3 = (0.0, 0.0, 0.0)
    highlight_tint: Vector3 = (0.0, 0.0, 0.0)
    # Statistical transfer
    source_stats: Optional[ColorStats] = None
    target_stats: Optional[ColorStats] = None
    mix: float = 0.0

    def __post_init__(self) -> None:
        for name in VECTOR_FIELDS:
            object.__setattr__(self, name, as_vector3(getattr(self, name)))
        for name in SCALAR_FIELDS:
            object.__setattr__(self, name, float(getattr(self, name)))
        for name in STATS_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, ColorStats):
                object.__setattr__(self, name, ColorStats.from_dict(value))

    @property
    def transfer_enabled(self) -> bool:
        """Return ``True`` when the statistical transfer stage will run."""

        return self.target_stats is not None and self.mix > 0.0

    def with_overrides(self, overrides: Mapping[str, Any]) -> "GradeParameters":
        """Return a copy with the keys of *overrides* applied.

        Keys may use either attribute names or the camelCase wire names.
        Unknown keys are ignored.
        """

        known = {item.name for item in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            name = field_name(key)
            if name in known:
                changes[name] = value
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON friendly mapping using the wire names."""

        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, ColorStats):
                value = value.to_dict()
            elif isinstance(value, tuple):
                value = list(value)
            payload[_WIRE_NAMES.get(item.name, item.name)] = value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GradeParameters":
        """Build parameters from *payload*, overlaying the defaults."""

        return cls().with_overrides(payload)


@dataclass(frozen=True)
class Preset:
    """Named look with display metadata and a partial parameter override."""

    id: str
    name: str
    description: str
    gradient_colors: tuple[str, str]
    overrides: Mapping[str, Any] = field(default_factory=dict)


class GradeMode(str, Enum):
    """How the parameters of a grade were produced."""

    PRESET = "preset"
    REFERENCE = "reference"
    MOOD = "mood"
    SIDECAR = "sidecar"


@dataclass
class GradeResult:
    """A finished render together with the parameters that produced it."""

    image: "QImage"
    params: GradeParameters
    mode: GradeMode
    active_preset: str


__all__ = [
    "ColorStats",
    "GradeMode",
    "GradeParameters",
    "GradeResult",
    "Preset",
    "SCALAR_FIELDS",
    "STATS_FIELDS",
    "VECTOR_FIELDS",
    "Vector3",
    "as_vector3",
    "field_name",
]
