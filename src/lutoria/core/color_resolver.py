"""Compute the low-order colour fingerprint used for reference matching.

The fingerprint is the per-channel mean and population standard deviation of
a small downsampled copy of the image.  Exact statistics are not needed, only
a stable summary of the image's "mood", so the image is resampled once to a
width of :data:`~lutoria.config.STATS_SAMPLE_WIDTH` pixels before the
reduction runs.
"""

from __future__ import annotations

import logging

import numpy as np
from PySide6.QtCore import Qt
from PySide6.QtGui import QImage

from ..config import STATS_SAMPLE_WIDTH
from ..errors import RenderingContextUnavailable
from ..models.types import ColorStats
from .image_buffers import qimage_to_rgba

_LOGGER = logging.getLogger(__name__)


def sample_size(width: int, height: int) -> tuple[int, int]:
    """Return the working resolution used to sample a ``width``x``height`` image."""

    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size {width}x{height}")
    sample_height = max(1, int(STATS_SAMPLE_WIDTH * (height / width)))
    return STATS_SAMPLE_WIDTH, sample_height


def downsample(image: QImage) -> QImage:
    """Return a private, smoothly resampled copy of *image* for statistics."""

    if image.isNull():
        raise RenderingContextUnavailable("Cannot sample a null image")
    width, height = sample_size(image.width(), image.height())
    # ``scaled`` always allocates a new surface so concurrent callers never
    # share the downsample buffer.
    scaled = image.scaled(
        width,
        height,
        Qt.AspectRatioMode.IgnoreAspectRatio,
        Qt.TransformationMode.SmoothTransformation,
    )
    if scaled.isNull():
        raise RenderingContextUnavailable(
            f"Failed to allocate a {width}x{height} surface for colour statistics"
        )
    return scaled


def compute_stats_from_array(pixels: np.ndarray) -> ColorStats:
    """Return :class:`ColorStats` for an ``(H, W, 3|4)`` ``uint8`` array.

    The array is used as-is; callers wanting the fingerprint of a full image
    should go through :func:`compute_color_statistics`, which downsamples
    first.
    """

    if pixels.ndim != 3 or pixels.shape[2] < 3:
        raise ValueError(f"Expected an (H, W, 3|4) array, got shape {pixels.shape}")
    rgb = pixels[..., :3].reshape(-1, 3).astype(np.float64) / 255.0
    if rgb.shape[0] == 0:
        raise ValueError("Cannot compute statistics of an empty image")
    mean = rgb.mean(axis=0)
    # Population variance (divide by N), not the Bessel corrected sample one.
    std = np.sqrt(np.mean((rgb - mean) ** 2, axis=0))
    return ColorStats(
        mean=(float(mean[0]), float(mean[1]), float(mean[2])),
        std=(float(std[0]), float(std[1]), float(std[2])),
    )


def compute_color_statistics(image: QImage) -> ColorStats:
    """Return the colour fingerprint of *image*."""

    sample = downsample(image)
    stats = compute_stats_from_array(qimage_to_rgba(sample))
    _LOGGER.debug(
        "Colour stats for %dx%d image: mean=%s std=%s",
        image.width(),
        image.height(),
        stats.mean,
        stats.std,
    )
    return stats


__all__ = [
    "compute_color_statistics",
    "compute_stats_from_array",
    "downsample",
    "sample_size",
]
