import numpy as np
import pytest

from lutoria.config import TRANSFER_STD_EPSILON
from lutoria.core.color_transfer import transfer_colors
from lutoria.models.types import ColorStats

SOURCE = ColorStats(mean=(0.4, 0.5, 0.6), std=(0.1, 0.2, 0.15))
TARGET = ColorStats(mean=(0.7, 0.45, 0.3), std=(0.05, 0.25, 0.1))


def _pixels() -> np.ndarray:
    rng = np.random.default_rng(7)
    return rng.random((8, 8, 3), dtype=np.float32)


def test_transfer_is_skipped_without_target_or_weight() -> None:
    pixels = _pixels()
    assert transfer_colors(pixels, SOURCE, None, 1.0) is pixels
    assert transfer_colors(pixels, SOURCE, TARGET, 0.0) is pixels


def test_source_mean_lands_on_target_mean() -> None:
    pixel = np.array([SOURCE.mean], dtype=np.float32)
    result = transfer_colors(pixel, SOURCE, TARGET, 1.0)
    np.testing.assert_allclose(result[0], TARGET.mean, atol=1e-6)


def test_transfer_scales_deviation_by_ratio() -> None:
    pixel = np.array([[0.5, 0.7, 0.75]], dtype=np.float32)  # one std above the mean
    result = transfer_colors(pixel, SOURCE, TARGET, 1.0)
    expected = np.array(TARGET.mean) + np.array(TARGET.std)
    np.testing.assert_allclose(result[0], expected, atol=1e-5)


def test_matching_back_restores_the_original() -> None:
    pixels = _pixels()
    there = transfer_colors(pixels, SOURCE, TARGET, 1.0)
    back = transfer_colors(there, TARGET, SOURCE, 1.0)
    np.testing.assert_allclose(back, pixels, atol=1e-5)


def test_partial_weight_interpolates_linearly() -> None:
    pixels = _pixels()
    full = transfer_colors(pixels, SOURCE, TARGET, 1.0)
    half = transfer_colors(pixels, SOURCE, TARGET, 0.5)
    np.testing.assert_allclose(half, (pixels + full) / 2.0, atol=1e-5)


def test_flat_source_channel_stays_finite() -> None:
    flat = ColorStats(mean=(0.5, 0.5, 0.5), std=(0.0, 0.0, 0.0))
    pixels = np.array([[0.5, 0.5, 0.5], [0.5005, 0.5, 0.5]], dtype=np.float32)
    result = transfer_colors(pixels, flat, TARGET, 1.0)
    assert np.all(np.isfinite(result))
    np.testing.assert_allclose(result[0], TARGET.mean, atol=1e-6)
    # The deviation is divided by the epsilon, not by zero.
    expected_red = (0.0005 / TRANSFER_STD_EPSILON) * TARGET.std[0] + TARGET.mean[0]
    assert result[1, 0] == pytest.approx(expected_red, abs=1e-3)
