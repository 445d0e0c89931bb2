"""Decode source images and encode graded results."""

from __future__ import annotations

import io
import logging
import time
from pathlib import Path

import numpy as np
from PySide6.QtCore import QBuffer, QByteArray, QIODevice
from PySide6.QtGui import QImage, QImageReader

from ..config import EXPORT_NAME_PREFIX, JPEG_QUALITY
from ..core.image_buffers import rgba_to_qimage
from ..errors import ImageDecodeFailed
from .deps import load_pillow

_LOGGER = logging.getLogger(__name__)


def _read_with_qt(reader: QImageReader) -> QImage:
    reader.setAutoTransform(True)
    image = reader.read()
    if image.isNull():
        _LOGGER.debug("Qt could not decode image: %s", reader.errorString())
    return image


def _read_with_pillow(source: Path | io.BytesIO) -> QImage:
    support = load_pillow()
    if support is None:
        return QImage()
    try:
        with support.Image.open(source) as handle:
            oriented = support.ImageOps.exif_transpose(handle)
            rgba = np.asarray(oriented.convert("RGBA"), dtype=np.uint8)
    except (support.UnidentifiedImageError, OSError, ValueError) as exc:
        _LOGGER.debug("Pillow could not decode image: %s", exc)
        return QImage()
    return rgba_to_qimage(rgba)


def load_image(path: Path) -> QImage:
    """Decode the image stored at *path*."""

    path = Path(path)
    if not path.is_file():
        raise ImageDecodeFailed(f"Image file not found: {path}")
    image = _read_with_qt(QImageReader(str(path)))
    if image.isNull():
        image = _read_with_pillow(path)
    if image.isNull():
        raise ImageDecodeFailed(f"Unsupported or corrupt image: {path}")
    _LOGGER.debug("Loaded %s (%dx%d)", path, image.width(), image.height())
    return image


def load_image_bytes(data: bytes) -> QImage:
    """Decode an in-memory encoded image."""

    if not data:
        raise ImageDecodeFailed("Cannot decode empty image data")
    payload = QByteArray(data)
    buffer = QBuffer(payload)
    buffer.open(QIODevice.OpenModeFlag.ReadOnly)
    try:
        image = _read_with_qt(QImageReader(buffer))
    finally:
        buffer.close()
    if image.isNull():
        image = _read_with_pillow(io.BytesIO(data))
    if image.isNull():
        raise ImageDecodeFailed("Unsupported or corrupt image data")
    return image


def encode_image(image: QImage, fmt: str = "JPEG", *, quality: int = JPEG_QUALITY) -> bytes:
    """Return *image* encoded as *fmt* bytes."""

    if image.isNull():
        raise ValueError("Cannot encode a null image")
    payload = QByteArray()
    buffer = QBuffer(payload)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    try:
        if not image.save(buffer, fmt.upper(), quality):
            raise OSError(f"Failed to encode image as {fmt}")
    finally:
        buffer.close()
    return bytes(payload.data())


def save_image(image: QImage, path: Path, *, quality: int = JPEG_QUALITY) -> Path:
    """Write *image* to *path*; the suffix picks the format."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fmt = path.suffix.lstrip(".").upper() or "JPEG"
    if fmt == "JPG":
        fmt = "JPEG"
    data = encode_image(image, fmt, quality=quality)
    path.write_bytes(data)
    _LOGGER.info("Exported %s (%d bytes)", path, len(data))
    return path


def export_file_name(timestamp_ms: int | None = None) -> str:
    """Return the default download name, ``Lutoria_Export_<ms>.jpg``."""

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{EXPORT_NAME_PREFIX}{timestamp_ms}.jpg"


__all__ = [
    "encode_image",
    "export_file_name",
    "load_image",
    "load_image_bytes",
    "save_image",
]
