from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any


UNCLASSIFIED = "unclassified"


class SourceKind(str, Enum):
    DS1 = "DS1"
    DS2 = "DS2"
    DS3 = "DS3"
    UNKNOWN = "UNKNOWN"


NUMERIC_FIELDS = [
    "period_days",
    "depth_ppm",
    "radius_rearth",
    "sma_au",
    "teq_k",
    "insol_earth",
    "ecc",
    "st_teff_k",
    "st_rad_rsun",
    "st_mass_msun",
    "mass_mearth",
]

TEXT_FIELDS = ["planet_name", "host_name", "label_raw"]

ANNOTATION_FIELDS = ["class_radius", "label_binary"]

CANONICAL_COLUMNS = TEXT_FIELDS[:2] + NUMERIC_FIELDS + TEXT_FIELDS[2:] + ANNOTATION_FIELDS


def _finite_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class CanonicalRecord:
    """Unified physical view of one catalog row.

    Every numeric field is either a finite float or ``None``; NaN and
    infinities are normalized to ``None`` on construction.
    """

    planet_name: str | None = None
    host_name: str | None = None
    period_days: float | None = None
    depth_ppm: float | None = None
    radius_rearth: float | None = None
    sma_au: float | None = None
    teq_k: float | None = None
    insol_earth: float | None = None
    ecc: float | None = None
    st_teff_k: float | None = None
    st_rad_rsun: float | None = None
    st_mass_msun: float | None = None
    mass_mearth: float | None = None
    label_raw: str | None = None
    class_radius: str = UNCLASSIFIED
    label_binary: bool | None = None

    def __post_init__(self) -> None:
        for name in NUMERIC_FIELDS:
            object.__setattr__(self, name, _finite_or_none(getattr(self, name)))

    def with_values(self, **changes: Any) -> CanonicalRecord:
        return replace(self, **changes)

    def missing_fields(self) -> list[str]:
        return [name for name in NUMERIC_FIELDS if getattr(self, name) is None]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def serialize_record(payload: dict[str, Any], columns: list[str]) -> dict[str, Any]:
    """Flatten a record dict for CSV output.

    Missing values become empty cells, nested structures are JSON-encoded.
    """
    serialized: dict[str, Any] = {}
    for column in columns:
        value = payload.get(column)
        if value is None:
            serialized[column] = ""
        elif isinstance(value, bool):
            serialized[column] = int(value)
        elif isinstance(value, (dict, list)):
            serialized[column] = json.dumps(value, ensure_ascii=True, sort_keys=True)
        elif isinstance(value, Enum):
            serialized[column] = value.value
        else:
            serialized[column] = value
    return serialized
