"""Built-in cinematic looks calibrated for the filmic pipeline."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterator

from ..errors import PresetNotFoundError
from ..models.types import Preset


def _preset(
    preset_id: str,
    name: str,
    description: str,
    gradient_colors: tuple[str, str],
    **overrides: object,
) -> Preset:
    return Preset(
        id=preset_id,
        name=name,
        description=description,
        gradient_colors=gradient_colors,
        overrides=MappingProxyType(dict(overrides)),
    )


PRESETS: tuple[Preset, ...] = (
    _preset(
        "dune_arrakis",
        "Dune (Arrakis)",
        "Desert heat. Golden highlights, muted cyan shadows, soft rolloff. High dynamic range.",
        ("#ad8a58", "#425861"),
        lift=(-0.02, 0.0, 0.02),  # teal-ish deep blacks
        gamma=(1.0, 1.0, 1.0),
        gain=(1.15, 1.08, 0.9),  # amber highlights
        saturation=0.85,
        temperature=0.15,
        tint=0.0,
        contrast=0.15,
        vignette=0.3,
        grain=0.35,
        crosstalk=0.25,
        sat_rolloff=0.6,
        shadow_tint=(0.0, 0.04, 0.06),
        highlight_tint=(0.08, 0.04, 0.0),
    ),
    _preset(
        "nolan_classic",
        "Tenet",
        "Blockbuster Teal & Orange. Deep clean blacks, amber highlights, sharp contrast.",
        ("#0f3945", "#ea8635"),
        lift=(-0.04, -0.02, 0.0),
        gamma=(0.98, 0.98, 0.98),
        gain=(1.05, 1.02, 0.95),
        saturation=1.1,
        temperature=0.0,
        tint=0.0,
        contrast=0.2,
        vignette=0.25,
        grain=0.2,
        crosstalk=0.15,
        sat_rolloff=0.4,
        shadow_tint=(0.0, 0.05, 0.1),  # teal
        highlight_tint=(0.1, 0.08, 0.0),  # orange
    ),
    _preset(
        "joker_2019",
        "Joker",
        "Psychological thriller. Unsettling greens, industrial lighting, dirty shadows.",
        ("#2b4a3b", "#d1b06b"),
        lift=(-0.03, -0.01, -0.03),
        gamma=(0.95, 1.02, 0.95),
        gain=(1.05, 1.02, 0.9),
        saturation=0.9,
        temperature=-0.05,
        tint=-0.25,
        contrast=0.25,
        vignette=0.45,
        grain=0.5,
        crosstalk=0.4,
        sat_rolloff=0.2,
        shadow_tint=(0.0, 0.08, 0.06),
        highlight_tint=(0.05, 0.05, 0.0),
    ),
    _preset(
        "the_batman",
        "The Batman",
        "Noir Gothic. Deep blacks, muted colors, red-toned highlights. Stylized and dark.",
        ("#0a0a0a", "#7f1d1d"),
        lift=(-0.05, -0.05, -0.02),
        gamma=(0.95, 0.95, 0.95),
        gain=(1.1, 0.9, 0.9),
        saturation=0.7,
        temperature=0.0,
        tint=0.1,
        contrast=0.4,
        vignette=0.5,
        grain=0.6,
        crosstalk=0.1,
        sat_rolloff=0.8,
        shadow_tint=(0.0, 0.0, 0.1),
        highlight_tint=(0.15, 0.0, 0.0),
    ),
    _preset(
        "golden_hour",
        "Golden Hour",
        "Magic Hour. Rich oranges, soft shadows, bloom simulation.",
        ("#7c2d12", "#fcd34d"),
        lift=(0.0, 0.0, 0.0),
        gamma=(1.05, 1.0, 0.95),
        gain=(1.2, 1.1, 0.9),
        saturation=1.3,
        temperature=0.2,
        tint=0.0,
        contrast=0.1,
        vignette=0.3,
        grain=0.2,
        crosstalk=0.2,
        sat_rolloff=0.9,
        shadow_tint=(0.05, 0.02, 0.0),
        highlight_tint=(0.2, 0.1, 0.0),
    ),
)

_BY_ID = {preset.id: preset for preset in PRESETS}


def iter_presets() -> Iterator[Preset]:
    """Yield the catalog in display order."""

    return iter(PRESETS)


def get_preset(preset_id: str) -> Preset:
    """Return the preset named *preset_id*."""

    try:
        return _BY_ID[preset_id]
    except KeyError:
        known = ", ".join(_BY_ID)
        raise PresetNotFoundError(f"Unknown preset '{preset_id}' (known: {known})") from None


__all__ = ["PRESETS", "get_preset", "iter_presets"]
