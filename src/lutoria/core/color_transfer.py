"""Statistical colour transfer (per-channel mean/variance matching)."""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..config import TRANSFER_STD_EPSILON
from ..models.types import ColorStats


def transfer_colors(
    color: np.ndarray,
    source: ColorStats,
    target: Optional[ColorStats],
    mix: float,
) -> np.ndarray:
    """Remap *color* from the *source* distribution toward *target*.

    *color* is any array whose last axis holds the RGB channels in ``[0, 1]``.
    The result is ``lerp(color, transferred, mix)`` where ``transferred``
    shifts each channel to the target mean and scales its spread by the ratio
    of standard deviations.  The source deviation is clamped to
    :data:`~lutoria.config.TRANSFER_STD_EPSILON` so flat channels stay finite.

    When *target* is ``None`` or *mix* is not positive the input is returned
    unchanged (the very same array object).
    """

    if target is None or mix <= 0.0:
        return color

    src_mean = np.asarray(source.mean, dtype=color.dtype)
    src_std = np.maximum(np.asarray(source.std, dtype=color.dtype), TRANSFER_STD_EPSILON)
    tgt_mean = np.asarray(target.mean, dtype=color.dtype)
    tgt_std = np.asarray(target.std, dtype=color.dtype)

    transferred = (color - src_mean) * (tgt_std / src_std) + tgt_mean
    if mix == 1.0:
        return transferred
    return color + (transferred - color) * np.asarray(mix, dtype=color.dtype)


__all__ = ["transfer_colors"]
