from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from exo_enricher.normalization import first_present, safe_float, safe_text
from exo_enricher.schema import CanonicalRecord, SourceKind


# Marker keys per catalog, checked in this order; first hit wins.
SOURCE_MARKERS: list[tuple[SourceKind, tuple[str, ...]]] = [
    (SourceKind.DS1, ("pl_name", "st_mass")),
    (SourceKind.DS2, ("toi", "pl_trandep")),
    (SourceKind.DS3, ("koi_period", "koi_prad", "kepid")),
]


@dataclass(frozen=True)
class FieldRule:
    keys: tuple[str, ...]
    coerce: Callable[[Any], Any] = safe_float


def _num(*keys: str) -> FieldRule:
    return FieldRule(keys=keys, coerce=safe_float)


def _text(*keys: str) -> FieldRule:
    return FieldRule(keys=keys, coerce=safe_text)


FIELD_MAPS: dict[SourceKind, dict[str, FieldRule]] = {
    # NASA Exoplanet Archive planetary systems / K2 tables
    SourceKind.DS1: {
        "planet_name": _text("pl_name"),
        "host_name": _text("hostname"),
        "period_days": _num("pl_orbper"),
        "radius_rearth": _num("pl_rade"),
        "sma_au": _num("pl_orbsmax"),
        "teq_k": _num("pl_eqt"),
        "insol_earth": _num("pl_insol"),
        "ecc": _num("pl_orbeccen"),
        "st_teff_k": _num("st_teff"),
        "st_rad_rsun": _num("st_rad"),
        "st_mass_msun": _num("st_mass"),
        "mass_mearth": _num("pl_bmasse"),
        "label_raw": _text("disposition"),
    },
    # TESS Objects of Interest
    SourceKind.DS2: {
        "planet_name": _text("toi"),
        "period_days": _num("pl_orbper"),
        "depth_ppm": _num("pl_trandep"),
        "radius_rearth": _num("pl_rade"),
        "teq_k": _num("pl_eqt"),
        "insol_earth": _num("pl_insol"),
        "st_teff_k": _num("st_teff"),
        "st_rad_rsun": _num("st_rad"),
        "label_raw": _text("tfopwg_disp"),
    },
    # Kepler Objects of Interest
    SourceKind.DS3: {
        "planet_name": _text("kepler_name", "kepoi_name"),
        "period_days": _num("koi_period"),
        "depth_ppm": _num("koi_depth"),
        "radius_rearth": _num("koi_prad"),
        "teq_k": _num("koi_teq"),
        "insol_earth": _num("koi_insol"),
        "st_teff_k": _num("koi_steff"),
        "st_rad_rsun": _num("koi_srad"),
        "st_mass_msun": _num("koi_smass"),
        "label_raw": _text("koi_disposition"),
    },
    SourceKind.UNKNOWN: {
        "planet_name": _text("pl_name", "toi", "kepler_name", "kepoi_name"),
        "host_name": _text("hostname"),
        "period_days": _num("pl_orbper", "koi_period"),
        "depth_ppm": _num("pl_trandep", "koi_depth", "depth_ppm"),
        "radius_rearth": _num("pl_rade", "koi_prad"),
        "sma_au": _num("pl_orbsmax"),
        "teq_k": _num("pl_eqt", "koi_teq"),
        "insol_earth": _num("pl_insol", "koi_insol"),
        "ecc": _num("pl_orbeccen"),
        "st_teff_k": _num("st_teff", "koi_steff"),
        "st_rad_rsun": _num("st_rad", "koi_srad"),
        "st_mass_msun": _num("st_mass", "koi_smass"),
        "mass_mearth": _num("pl_bmasse"),
        "label_raw": _text("disposition", "tfopwg_disp", "koi_disposition"),
    },
}


def detect_source(record: Mapping[str, Any] | None) -> SourceKind:
    if not record:
        return SourceKind.UNKNOWN
    keys = set(record.keys())
    for kind, markers in SOURCE_MARKERS:
        if any(marker in keys for marker in markers):
            return kind
    return SourceKind.UNKNOWN


def coerce_source_kind(value: SourceKind | str) -> SourceKind:
    if isinstance(value, SourceKind):
        return value
    try:
        return SourceKind(str(value).strip().upper())
    except ValueError:
        return SourceKind.UNKNOWN


def harmonize_record(
    record: Mapping[str, Any] | None,
    kind: SourceKind | str | None = None,
) -> CanonicalRecord:
    """Map one raw catalog row onto the canonical schema.

    Fields the source table does not provide, or whose value cannot be
    coerced, are left as ``None``.
    """
    row: Mapping[str, Any] = record or {}
    kind = coerce_source_kind(kind) if kind is not None else detect_source(row)

    values: dict[str, Any] = {}
    for field_name, rule in FIELD_MAPS[kind].items():
        raw = first_present(row, rule.keys)
        values[field_name] = rule.coerce(raw) if raw is not None else None
    return CanonicalRecord(**values)
