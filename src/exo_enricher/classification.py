from __future__ import annotations

from typing import Any

from exo_enricher.normalization import normalize_label_text, safe_float
from exo_enricher.schema import UNCLASSIFIED, CanonicalRecord

SIZE_ROCKY = "rocky/small-super-Earth"
SIZE_SUPER_EARTH = "super-Earth/mini-Neptune"
SIZE_MINI_NEPTUNE = "mini-Neptune"
SIZE_NEPTUNE = "Neptune/sub-Jupiter"
SIZE_JUPITER = "Jupiter-like"

SIZE_CLASS_ORDER = [SIZE_ROCKY, SIZE_SUPER_EARTH, SIZE_MINI_NEPTUNE, SIZE_NEPTUNE, SIZE_JUPITER]

# Upper bounds in Earth radii, exclusive. Anything at or above the last bound is Jupiter-like.
RADIUS_THRESHOLDS: list[tuple[float, str]] = list(zip((1.5, 2.5, 4.0, 8.0), SIZE_CLASS_ORDER))

GAS_GIANT_CLASSES = {SIZE_NEPTUNE, SIZE_JUPITER}
TERRESTRIAL_CLASSES = {SIZE_ROCKY}

# KOI / K2 dispositions plus TFOPWG codes; PC counts as confirmed.
CONFIRMED_TOKENS = {"CONFIRMED", "CP", "KP", "PC"}
FALSE_POSITIVE_TOKENS = {"FALSE POSITIVE", "FP"}


def classify_radius(radius_rearth: Any) -> str:
    radius = safe_float(radius_rearth)
    if radius is None:
        return UNCLASSIFIED
    for upper_bound, label in RADIUS_THRESHOLDS:
        if radius < upper_bound:
            return label
    return SIZE_JUPITER


def map_disposition(label_raw: Any) -> bool | None:
    """True for confirmed, False for false positive, None otherwise."""
    token = normalize_label_text(label_raw)
    if token is None:
        return None
    if token in CONFIRMED_TOKENS:
        return True
    if token in FALSE_POSITIVE_TOKENS:
        return False
    return None


def classify(record: CanonicalRecord) -> tuple[str, bool | None]:
    return classify_radius(record.radius_rearth), map_disposition(record.label_raw)


def annotate(record: CanonicalRecord) -> CanonicalRecord:
    class_radius, label_binary = classify(record)
    return record.with_values(class_radius=class_radius, label_binary=label_binary)
