"""Optional third-party decoders behind Qt's own image readers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PillowSupport:
    """Pillow modules needed for fallback decoding."""

    Image: Any
    ImageOps: Any
    UnidentifiedImageError: Any
    heif_enabled: bool


def _register_heif() -> bool:
    try:  # pragma: no cover - pillow-heif optional
        from pillow_heif import register_heif_opener
    except ImportError:
        _LOGGER.debug("pillow-heif not installed; HEIF/HEIC sources need Qt plugins")
        return False
    register_heif_opener()
    return True


@lru_cache(maxsize=1)
def load_pillow() -> Optional[PillowSupport]:
    """Return the Pillow fallback, or ``None`` when Pillow cannot be imported."""

    try:
        from PIL import Image, ImageOps, UnidentifiedImageError
    except ImportError as exc:  # pragma: no cover - dependency missing
        _LOGGER.info("Pillow unavailable, fallback decoding disabled: %s", exc)
        return None

    return PillowSupport(
        Image=Image,
        ImageOps=ImageOps,
        UnidentifiedImageError=UnidentifiedImageError,
        heif_enabled=_register_heif(),
    )
