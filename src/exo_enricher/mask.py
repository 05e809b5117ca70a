from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Sequence, TypeVar

import numpy as np

from exo_enricher.normalization import safe_float

T = TypeVar("T")

EXCLUDE = 0
INCLUDE = 1

_TRUE_TEXT = {"1", "true", "yes", "y", "t"}


def _to_bit(value: Any) -> int:
    if isinstance(value, (bool, np.bool_)):
        return INCLUDE if value else EXCLUDE
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return INCLUDE
        number = safe_float(text)
        return INCLUDE if number == 1.0 else EXCLUDE
    return INCLUDE if safe_float(value) == 1.0 else EXCLUDE


def parse_mask(values: Iterable[Any] | None) -> list[int]:
    """Normalize arbitrary truthy/falsy entries into a 0/1 list."""
    if values is None:
        return []
    return [_to_bit(value) for value in values]


def mask_bit(mask: Sequence[int] | None, index: int, default: int = EXCLUDE) -> int:
    """Bit for ``index``; positions past the end of the mask take ``default``."""
    if mask is None or index < 0 or index >= len(mask):
        return default
    return INCLUDE if mask[index] == INCLUDE else EXCLUDE


def apply_mask(items: Sequence[T], mask: Sequence[int] | None, default: int = EXCLUDE) -> list[T]:
    return [item for index, item in enumerate(items) if mask_bit(mask, index, default) == INCLUDE]


def load_mask(path: Path) -> list[int]:
    """Read a mask from a JSON array or a text/CSV file of 0/1 tokens."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        payload = json.loads(text)
        if not isinstance(payload, list):
            raise ValueError(f"Mask file must contain a JSON array: {path}")
        return parse_mask(payload)
    tokens = text.replace(",", " ").split()
    return parse_mask(tokens)
