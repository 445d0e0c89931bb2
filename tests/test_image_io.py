from pathlib import Path

import numpy as np
import pytest

from lutoria.core.image_buffers import qimage_to_rgba, rgba_to_qimage, to_uint8
from lutoria.errors import ImageDecodeFailed
from lutoria.utils import image_io


def _pattern() -> np.ndarray:
    pixels = np.zeros((6, 10, 4), dtype=np.uint8)
    pixels[..., 0] = np.arange(10, dtype=np.uint8) * 25
    pixels[..., 1] = (np.arange(6, dtype=np.uint8) * 40)[:, None]
    pixels[..., 2] = 77
    pixels[..., 3] = 255
    return pixels


def test_array_conversion_strips_row_padding(qapp) -> None:
    from PySide6.QtGui import QColor, QImage

    image = QImage(3, 2, QImage.Format.Format_RGB888)
    image.fill(QColor(10, 20, 30))
    pixels = qimage_to_rgba(image)
    assert pixels.shape == (2, 3, 4)
    assert pixels[1, 2].tolist() == [10, 20, 30, 255]


def test_float_pixels_are_clamped_when_quantised() -> None:
    values = np.array([-0.5, 0.0, 0.5, 1.0, 7.0, np.nan], dtype=np.float32)
    assert to_uint8(values).tolist() == [0, 0, 128, 255, 255, 0]


def test_png_round_trip_is_lossless(qapp, tmp_path: Path) -> None:
    pixels = _pattern()
    target = image_io.save_image(rgba_to_qimage(pixels), tmp_path / "out.png")
    loaded = image_io.load_image(target)
    np.testing.assert_array_equal(qimage_to_rgba(loaded), pixels)


def test_jpeg_export_keeps_dimensions(qapp, tmp_path: Path) -> None:
    target = image_io.save_image(rgba_to_qimage(_pattern()), tmp_path / "nested" / "out.JPG")
    assert target.read_bytes()[:2] == b"\xff\xd8"
    loaded = image_io.load_image(target)
    assert (loaded.width(), loaded.height()) == (10, 6)


def test_encoded_bytes_decode_again(qapp) -> None:
    data = image_io.encode_image(rgba_to_qimage(_pattern()), "PNG")
    image = image_io.load_image_bytes(data)
    np.testing.assert_array_equal(qimage_to_rgba(image), _pattern())


def test_missing_and_corrupt_files_raise(qapp, tmp_path: Path) -> None:
    with pytest.raises(ImageDecodeFailed):
        image_io.load_image(tmp_path / "missing.jpg")
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"definitely not an image")
    with pytest.raises(ImageDecodeFailed):
        image_io.load_image(broken)
    with pytest.raises(ImageDecodeFailed):
        image_io.load_image_bytes(b"")


def test_pillow_decoder_produces_rgba(qapp, tmp_path: Path) -> None:
    Image = pytest.importorskip("PIL.Image")

    path = tmp_path / "pillow.png"
    Image.new("RGB", (5, 4), color=(200, 100, 50)).save(path)
    image = image_io._read_with_pillow(path)
    pixels = qimage_to_rgba(image)
    assert pixels.shape == (4, 5, 4)
    assert pixels[0, 0].tolist() == [200, 100, 50, 255]


def test_export_file_name_uses_timestamp() -> None:
    assert image_io.export_file_name(1700000000000) == "Lutoria_Export_1700000000000.jpg"
    assert image_io.export_file_name().startswith("Lutoria_Export_")
