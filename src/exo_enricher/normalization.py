from __future__ import annotations

import math
import re
from typing import Any, Iterable, Mapping

import numpy as np


_SPACE_RE = re.compile(r"\s+")
_NUMERIC_TEXT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def _compact_spaces(value: str) -> str:
    return _SPACE_RE.sub(" ", value.replace("\u00a0", " ").strip())


def is_blank(value: Any) -> bool:
    """True for None, empty/whitespace strings and float NaN cells."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (float, np.floating)):
        return bool(np.isnan(value))
    return False


def safe_float(value: Any) -> float | None:
    """Coerce a raw cell to a finite float, or None.

    Booleans are rejected; strings must look like a plain decimal/exponent
    literal so that values like ``"nan"`` or ``"inf"`` never slip through.
    """
    if value is None or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text or not _NUMERIC_TEXT_RE.match(text):
            return None
        value = text
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return number


def safe_text(value: Any) -> str | None:
    if is_blank(value):
        return None
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        value = int(value)
    text = _compact_spaces(str(value))
    return text or None


def normalize_label_text(value: Any) -> str | None:
    """Uppercase, trim and collapse whitespace of a disposition string."""
    if not isinstance(value, str):
        return None
    text = _compact_spaces(value).upper()
    return text or None


def first_present(mapping: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key not in mapping:
            continue
        value = mapping[key]
        if not is_blank(value):
            return value
    return None
