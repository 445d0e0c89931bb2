"""CPU implementation of the cinematic grading pipeline.

Every stage mirrors the GLSL fragment program in ``shaders/grade.frag`` so the
CPU fallback and the OpenGL renderer agree on the look.  Stages operate on
float arrays whose last axis holds RGB in the display ``[0, 1]`` range, although
intermediate values are free to leave that range until the filmic tone curve
compresses them.
"""

from __future__ import annotations

import numpy as np
from PySide6.QtGui import QImage

from ..config import (
    CONTRAST_BLEND,
    CONTRAST_SCALE,
    CROSSTALK_COUPLING,
    DEFAULT_STATS_MEAN,
    DEFAULT_STATS_STD,
    GAMMA_FLOOR,
    GRAIN_AMPLITUDE,
    LUMA_WEIGHTS,
    SAT_ROLLOFF_STRENGTH,
    SKIN_PROTECTION,
    SPLIT_TONE_STRENGTH,
    VIGNETTE_SCALE,
)
from ..models.types import ColorStats, GradeParameters
from .color_transfer import transfer_colors
from .image_buffers import qimage_to_rgba, rgba_to_qimage, to_float

_LUMA = np.asarray(LUMA_WEIGHTS, dtype=np.float32)

# Stand-in fingerprint bound when no source statistics were supplied.
DEFAULT_SOURCE_STATS = ColorStats(mean=DEFAULT_STATS_MEAN, std=DEFAULT_STATS_STD)


def _mix(x: np.ndarray, y: np.ndarray, a) -> np.ndarray:
    """GLSL ``mix``: ``x * (1 - a) + y * a``."""

    return x * (1.0 - a) + y * a


def smoothstep(edge0: float, edge1: float, x: np.ndarray) -> np.ndarray:
    """Cubic Hermite interpolation clamped outside ``[edge0, edge1]``."""

    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def luminance(color: np.ndarray) -> np.ndarray:
    """Return Rec.709 luma for the RGB values in the last axis of *color*."""

    return color @ _LUMA


def apply_crosstalk(color: np.ndarray, amount: float) -> np.ndarray:
    """Bleed G into R, B into G and R into B, blended in by *amount*."""

    coupling = CROSSTALK_COUPLING * amount
    coupled = np.empty_like(color)
    coupled[..., 0] = color[..., 0] + color[..., 1] * coupling
    coupled[..., 1] = color[..., 1] + color[..., 2] * coupling
    coupled[..., 2] = color[..., 2] + color[..., 0] * coupling
    return _mix(color, coupled, amount)


def apply_white_balance(color: np.ndarray, temperature: float, tint: float) -> np.ndarray:
    """Additive white balance: warmth trades blue for red, tint pushes green."""

    balanced = color.copy()
    balanced[..., 0] += temperature
    balanced[..., 2] -= temperature
    balanced[..., 1] += tint
    return balanced


def apply_cdl(color: np.ndarray, lift, gamma, gain) -> np.ndarray:
    """Primary lift/gamma/gain grade.

    Negative values are clamped before the power curve and gamma is floored at
    :data:`~lutoria.config.GAMMA_FLOOR`, so the stage never produces NaN.
    """

    dtype = color.dtype
    gain_v = np.asarray(gain, dtype=dtype)
    lift_v = np.asarray(lift, dtype=dtype)
    gamma_v = np.maximum(np.asarray(gamma, dtype=dtype), GAMMA_FLOOR)
    return np.power(np.maximum(color * gain_v + lift_v, 0.0), 1.0 / gamma_v)


def apply_split_tone(color: np.ndarray, shadow_tint, highlight_tint) -> np.ndarray:
    """Push *shadow_tint* into the darks and *highlight_tint* into the brights."""

    dtype = color.dtype
    lum = luminance(color)[..., None]
    shadows = (1.0 - smoothstep(0.0, 0.6, lum)) * SPLIT_TONE_STRENGTH
    highlights = smoothstep(0.4, 1.0, lum) * SPLIT_TONE_STRENGTH
    return (
        color
        + np.asarray(shadow_tint, dtype=dtype) * shadows
        + np.asarray(highlight_tint, dtype=dtype) * highlights
    )


def skin_factor(color: np.ndarray) -> np.ndarray:
    """Return the ``[0, 1]`` skin likelihood for pixels ordered ``r > g > b``."""

    r, g, b = color[..., 0], color[..., 1], color[..., 2]
    ordered = (r > g) & (g > b)
    raw = np.where(ordered, (r - b) * (r - g), 0.0)
    return np.clip(raw * 10.0, 0.0, 1.0)


def saturation_factor(color: np.ndarray, saturation: float, sat_rolloff: float) -> np.ndarray:
    """Return the effective per-pixel saturation used by :func:`apply_saturation`.

    Highlights lose saturation according to *sat_rolloff*; skin tones are
    shielded from that rolloff.
    """

    lum = luminance(color)
    mask = 1.0 - smoothstep(0.6, 1.0, lum) * sat_rolloff * SAT_ROLLOFF_STRENGTH
    skin = skin_factor(color)
    return saturation * _mix(mask, 1.0, skin * SKIN_PROTECTION)


def apply_saturation(color: np.ndarray, saturation: float, sat_rolloff: float) -> np.ndarray:
    """Luma weighted saturation with highlight rolloff and skin protection."""

    gray = luminance(color)[..., None]
    factor = saturation_factor(color, saturation, sat_rolloff)[..., None]
    return _mix(gray, color, factor)


def apply_contrast(color: np.ndarray, contrast: float) -> np.ndarray:
    """Pivot around mid grey and blend 80% of the result back in."""

    contrasted = (color - 0.5) * (1.0 + contrast * CONTRAST_SCALE) + 0.5
    return _mix(color, contrasted, CONTRAST_BLEND)


def aces_filmic(color: np.ndarray) -> np.ndarray:
    """Narkowicz ACES approximation, clamped to ``[0, 1]``."""

    a, b, c, d, e = 2.51, 0.03, 2.43, 0.59, 0.14
    return np.clip((color * (a * color + b)) / (color * (c * color + d) + e), 0.0, 1.0)


def vignette_factor(u: np.ndarray, v: np.ndarray, amount: float) -> np.ndarray:
    """Return the lens falloff multiplier for texture coordinates ``(u, v)``.

    *amount* is an exponent applied to a value in ``[0, 1]``.
    """

    # uv = texcoord * (1 - texcoord.yx)
    uv_x = u * (1.0 - v)
    uv_y = v * (1.0 - u)
    return np.power(np.clip(uv_x * uv_y * VIGNETTE_SCALE, 0.0, 1.0), amount)


def grain_noise(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Uniform ``[0, 1)`` hash noise of the texture coordinates."""

    seed = np.sin(u.astype(np.float64) * 12.9898 + v.astype(np.float64) * 78.233) * 43758.5453
    return (seed - np.floor(seed)).astype(np.float32)


def apply_grain(color: np.ndarray, u: np.ndarray, v: np.ndarray, amount: float) -> np.ndarray:
    """Add monochrome film grain scaled by *amount*."""

    noise = grain_noise(u, v)[..., None]
    return color + (noise - 0.5) * GRAIN_AMPLITUDE * (amount * 0.5)


def texture_coordinates(width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
    """Return per-pixel ``(u, v)`` sample positions at pixel centres.

    Row ``0`` of the image maps to ``v`` close to ``0``, matching the layout
    the OpenGL backend uploads and reads back.
    """

    u = (np.arange(width, dtype=np.float32) + 0.5) / float(width)
    v = (np.arange(height, dtype=np.float32) + 0.5) / float(height)
    return np.meshgrid(u, v)


def grade_pixels(
    color: np.ndarray,
    params: GradeParameters,
    u: np.ndarray,
    v: np.ndarray,
) -> np.ndarray:
    """Run the full operator chain over RGB *color* sampled at ``(u, v)``."""

    color = color.astype(np.float32, copy=True)

    # 1. Statistical transfer
    if params.transfer_enabled:
        source = params.source_stats or DEFAULT_SOURCE_STATS
        color = transfer_colors(color, source, params.target_stats, params.mix)

    # 2. Crosstalk
    color = apply_crosstalk(color, params.crosstalk)
    # 3. White balance
    color = apply_white_balance(color, params.temperature, params.tint)
    # 4. Primary CDL
    color = apply_cdl(color, params.lift, params.gamma, params.gain)
    # 5. Split toning
    color = apply_split_tone(color, params.shadow_tint, params.highlight_tint)
    # 6. Saturation
    color = apply_saturation(color, params.saturation, params.sat_rolloff)
    # 7. Contrast
    color = apply_contrast(color, params.contrast)
    # 8. Filmic tone mapping
    color = aces_filmic(color)
    # 9. Vignette
    if params.vignette > 0.0:
        color = color * vignette_factor(u, v, params.vignette)[..., None]
    # 10. Grain
    if params.grain > 0.0:
        color = apply_grain(color, u, v, params.grain)

    return color.astype(np.float32, copy=False)


def apply_grade_array(pixels: np.ndarray, params: GradeParameters) -> np.ndarray:
    """Grade an ``(H, W, 4)`` RGBA array and return normalised ``float32`` RGBA.

    ``uint8`` input is normalised first.  Alpha passes through untouched.
    """

    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) array, got shape {pixels.shape}")
    rgba = to_float(pixels) if pixels.dtype == np.uint8 else pixels.astype(np.float32)
    height, width = rgba.shape[:2]
    u, v = texture_coordinates(width, height)

    result = np.empty_like(rgba)
    result[..., :3] = grade_pixels(rgba[..., :3], params, u, v)
    result[..., 3] = rgba[..., 3]
    return result


def apply_grade(image: QImage, params: GradeParameters) -> QImage:
    """Return a graded copy of *image*."""

    if image.isNull():
        return QImage()
    graded = apply_grade_array(qimage_to_rgba(image), params)
    return rgba_to_qimage(graded)


__all__ = [
    "aces_filmic",
    "apply_cdl",
    "apply_contrast",
    "apply_crosstalk",
    "apply_grade",
    "apply_grade_array",
    "apply_grain",
    "apply_saturation",
    "apply_split_tone",
    "apply_white_balance",
    "grade_pixels",
    "grain_noise",
    "luminance",
    "saturation_factor",
    "skin_factor",
    "smoothstep",
    "texture_coordinates",
    "vignette_factor",
]
