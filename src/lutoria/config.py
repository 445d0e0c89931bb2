"""Default configuration values for Lutoria."""

from __future__ import annotations

from pathlib import Path
from typing import Final

# ---------------------------------------------------------------------------
# Colour statistics
# ---------------------------------------------------------------------------

STATS_SAMPLE_WIDTH: Final[int] = 100
DEFAULT_STATS_MEAN: Final[tuple[float, float, float]] = (0.5, 0.5, 0.5)
DEFAULT_STATS_STD: Final[tuple[float, float, float]] = (0.2, 0.2, 0.2)

# Denominator clamp for the statistical transfer; a flat source channel would
# otherwise blow the std ratio up.
TRANSFER_STD_EPSILON: Final[float] = 1e-3

# ---------------------------------------------------------------------------
# Grading pipeline constants (mirrored in core/shaders/grade.frag)
# ---------------------------------------------------------------------------

GAMMA_FLOOR: Final[float] = 0.01
CROSSTALK_COUPLING: Final[float] = 0.15
LUMA_WEIGHTS: Final[tuple[float, float, float]] = (0.2126, 0.7152, 0.0722)
SPLIT_TONE_STRENGTH: Final[float] = 0.25
SAT_ROLLOFF_STRENGTH: Final[float] = 0.6
SKIN_PROTECTION: Final[float] = 0.8
CONTRAST_SCALE: Final[float] = 0.6
CONTRAST_BLEND: Final[float] = 0.8
VIGNETTE_SCALE: Final[float] = 15.0
GRAIN_AMPLITUDE: Final[float] = 0.2

# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

JPEG_QUALITY: Final[int] = 90
EXPORT_NAME_PREFIX: Final[str] = "Lutoria_Export_"
SIDECAR_SUFFIX: Final[str] = ".grade.json"
SIDECAR_SCHEMA: Final[str] = "lutoria/grade@1"

SCHEMA_DIR: Final[Path] = Path(__file__).resolve().parent / "schemas"
SHADER_DIR: Final[Path] = Path(__file__).resolve().parent / "core" / "shaders"

# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------

API_KEY_ENV_VARS: Final[tuple[str, ...]] = ("GEMINI_API_KEY", "API_KEY")
GEMINI_MODEL: Final[str] = "gemini-2.5-flash"
RATE_LIMIT_RETRIES: Final[int] = 4
RATE_LIMIT_INITIAL_DELAY_SEC: Final[float] = 4.0
