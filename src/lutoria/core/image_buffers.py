"""Conversions between :class:`QImage` surfaces and numpy pixel arrays."""

from __future__ import annotations

import numpy as np
from PySide6.QtGui import QImage


def qimage_to_rgba(image: QImage) -> np.ndarray:
    """Return *image* as a ``(height, width, 4)`` ``uint8`` RGBA array.

    The returned array owns its memory so it stays valid after *image* is
    released.
    """

    if image.isNull():
        raise ValueError("Cannot convert a null QImage")

    converted = image.convertToFormat(QImage.Format.Format_RGBA8888)
    width, height = converted.width(), converted.height()
    bytes_per_line = converted.bytesPerLine()
    buffer = converted.constBits()
    byte_count = converted.sizeInBytes()
    if hasattr(buffer, "setsize"):
        buffer.setsize(byte_count)
    raw = np.frombuffer(buffer, dtype=np.uint8, count=byte_count)
    # Scanlines are padded to 32-bit boundaries; drop the padding per row.
    rows = raw.reshape(height, bytes_per_line)[:, : width * 4]
    return rows.reshape(height, width, 4).copy()


def rgba_to_qimage(pixels: np.ndarray) -> QImage:
    """Return a detached ``Format_RGBA8888`` image for an RGBA array.

    Float arrays are interpreted as normalised ``[0, 1]`` values and are
    clamped and rounded to 8 bits.
    """

    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) array, got shape {pixels.shape}")
    if pixels.dtype != np.uint8:
        pixels = to_uint8(pixels)
    data = np.ascontiguousarray(pixels)
    height, width = data.shape[:2]
    image = QImage(data.data, width, height, width * 4, QImage.Format.Format_RGBA8888)
    # ``copy`` detaches the image from the numpy buffer, which goes away with
    # this frame.
    return image.copy()


def to_float(pixels: np.ndarray) -> np.ndarray:
    """Return 8-bit *pixels* as ``float32`` values in ``[0, 1]``."""

    return pixels.astype(np.float32) / 255.0


def to_uint8(pixels: np.ndarray) -> np.ndarray:
    """Clamp normalised *pixels* and quantise them to 8 bits."""

    finite = np.nan_to_num(pixels, nan=0.0, posinf=1.0, neginf=0.0)
    return np.clip(np.rint(np.clip(finite, 0.0, 1.0) * 255.0), 0, 255).astype(np.uint8)


__all__ = ["qimage_to_rgba", "rgba_to_qimage", "to_float", "to_uint8"]
