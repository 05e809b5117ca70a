from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from exo_enricher.classification import GAS_GIANT_CLASSES, TERRESTRIAL_CLASSES, classify_radius
from exo_enricher.schema import CANONICAL_COLUMNS, CanonicalRecord

DEFAULT_TIDAL_LOCK_PERIOD_DAYS = 10.0
NEUTRAL_CONTRAST = 0.5
NOT_AVAILABLE = "N/A"

NEGATIVE_PROMPT = (
    "no visible continents, no text, no watermarks, no rings unless specified, "
    "photorealistic astronomical style"
)
SQUARE_SUFFIX = "Generate a square image (1:1)."


class Palette(str, Enum):
    HOT_GRAY_RED = "hot-gray-red"
    WARM_GRAY = "warm-gray"
    BLUE_WHITE = "blue-white"
    ICE_WHITE_BLUE = "ice-white-blue"
    NEUTRAL = "neutral"


class Texture(str, Enum):
    BANDED_CLOUDS = "banded-clouds"
    CLOUDS_OR_ROCKY = "clouds-or-rocky"
    SMOOTH = "smooth"


# Lower bounds in kelvin, checked hottest first.
PALETTE_THRESHOLDS: list[tuple[float, Palette]] = [
    (1500.0, Palette.HOT_GRAY_RED),
    (800.0, Palette.WARM_GRAY),
    (250.0, Palette.BLUE_WHITE),
]

PALETTE_HINTS = {
    Palette.HOT_GRAY_RED: "dark gray tones with reddish hues on the day-side limb",
    Palette.WARM_GRAY: "warm gray palette with scattered clouds",
    Palette.BLUE_WHITE: "cyan-blue palette with white methane or water clouds",
    Palette.ICE_WHITE_BLUE: "very cold palette of whites and pale blues",
}

TEXTURE_HINTS = {
    Texture.BANDED_CLOUDS: "visible zonal bands and stratified cloud decks",
    Texture.CLOUDS_OR_ROCKY: "broken clouds or a dark rocky surface",
}

TIDAL_LOCK_HINT = "bright day hemisphere and dark night hemisphere (likely tidally locked)"


@dataclass(frozen=True)
class VisualParams:
    palette: Palette
    texture: Texture
    day_night_contrast: float
    tidally_locked_likely: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "palette": self.palette.value,
            "texture": self.texture.value,
            "day_night_contrast": self.day_night_contrast,
            "tidally_locked_likely": self.tidally_locked_likely,
        }


def palette_for_teq(teq_k: float | None) -> Palette:
    if teq_k is None:
        return Palette.NEUTRAL
    for lower_bound, palette in PALETTE_THRESHOLDS:
        if teq_k >= lower_bound:
            return palette
    return Palette.ICE_WHITE_BLUE


def texture_for_class(size_class: str) -> Texture:
    if size_class in GAS_GIANT_CLASSES:
        return Texture.BANDED_CLOUDS
    if size_class in TERRESTRIAL_CLASSES:
        return Texture.CLOUDS_OR_ROCKY
    return Texture.SMOOTH


def suggest_visual_params(
    record: CanonicalRecord,
    tidal_lock_period_days: float = DEFAULT_TIDAL_LOCK_PERIOD_DAYS,
) -> VisualParams:
    size_class = classify_radius(record.radius_rearth)
    contrast = NEUTRAL_CONTRAST
    if record.insol_earth is not None:
        contrast = math.tanh(record.insol_earth / 10.0)
    period = record.period_days
    tidally_locked = period is not None and 0 < period < tidal_lock_period_days
    return VisualParams(
        palette=palette_for_teq(record.teq_k),
        texture=texture_for_class(size_class),
        day_night_contrast=contrast,
        tidally_locked_likely=tidally_locked,
    )


def _fmt(value: float | None, template: str) -> str:
    if value is None:
        return NOT_AVAILABLE
    return template.format(value)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def build_description(
    record: CanonicalRecord,
    tidal_lock_period_days: float = DEFAULT_TIDAL_LOCK_PERIOD_DAYS,
) -> str:
    """Render the deterministic text prompt for one record.

    Missing quantities are written as ``N/A``.
    """
    visual = suggest_visual_params(record, tidal_lock_period_days=tidal_lock_period_days)
    size_class = classify_radius(record.radius_rearth)
    teq = NOT_AVAILABLE if record.teq_k is None else f"{_round_half_up(record.teq_k)} K"

    parts = [
        f'Render a "{size_class}" exoplanet in the foreground, 3D, realistic.',
        (
            f"Radius ~ {_fmt(record.radius_rearth, '{:.2f} R_earth')}, "
            f"semi-major axis {_fmt(record.sma_au, '{:.3f} AU')}, "
            f"T_eq {teq}, "
            f"insolation {_fmt(record.insol_earth, '{:.2f} S_earth')}."
        ),
        (
            f"Use {visual.palette.value.replace('-', ' ')} and {visual.texture.value.replace('-', ' ')}; "
            f"day/night contrast {visual.day_night_contrast:.2f}."
        ),
    ]

    hints: list[str] = []
    if visual.palette in PALETTE_HINTS:
        hints.append(PALETTE_HINTS[visual.palette])
    if visual.texture in TEXTURE_HINTS:
        hints.append(TEXTURE_HINTS[visual.texture])
    if visual.tidally_locked_likely:
        hints.append(TIDAL_LOCK_HINT)
    if hints:
        parts.append("Suggested details: " + "; ".join(hints) + ".")
    return " ".join(parts)


def build_image_prompt(description: str, force_square: bool = True) -> str:
    if not force_square:
        return description
    return f"{description} {SQUARE_SUFFIX}"


@dataclass(frozen=True)
class EnrichedRecord:
    record: CanonicalRecord
    visual_params: VisualParams
    description: str
    negative_prompt: str = NEGATIVE_PROMPT

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = dict(self.record.to_dict())
        payload.update(self.visual_params.to_dict())
        payload["description"] = self.description
        payload["negative_prompt"] = self.negative_prompt
        return payload


ENRICHED_COLUMNS = CANONICAL_COLUMNS + [
    "palette",
    "texture",
    "day_night_contrast",
    "tidally_locked_likely",
    "description",
    "negative_prompt",
]


def enrich_record(
    record: CanonicalRecord,
    tidal_lock_period_days: float = DEFAULT_TIDAL_LOCK_PERIOD_DAYS,
) -> EnrichedRecord:
    return EnrichedRecord(
        record=record,
        visual_params=suggest_visual_params(record, tidal_lock_period_days=tidal_lock_period_days),
        description=build_description(record, tidal_lock_period_days=tidal_lock_period_days),
    )
