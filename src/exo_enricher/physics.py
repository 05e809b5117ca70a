from __future__ import annotations

import math

import astropy.units as u

from exo_enricher.schema import CanonicalRecord

RSUN_AU = float((1.0 * u.R_sun).to_value(u.AU))
REARTH_PER_RSUN = 109.1
DAYS_PER_YEAR = 365.25
SOLAR_TEFF_K = 5777.0
DEFAULT_ALBEDO = 0.3


def _positive(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def estimate_radius_from_depth(depth_ppm: float | None, st_rad_rsun: float | None) -> float | None:
    """Planet radius in Earth radii from transit depth, R_p = R_* sqrt(depth)."""
    if not _positive(depth_ppm) or not _positive(st_rad_rsun):
        return None
    return st_rad_rsun * math.sqrt(depth_ppm / 1e6) * REARTH_PER_RSUN


def estimate_sma_from_period(period_days: float | None, st_mass_msun: float | None) -> float | None:
    """Kepler's third law in solar-mass / AU / year units."""
    if not _positive(period_days) or not _positive(st_mass_msun):
        return None
    return st_mass_msun ** (1.0 / 3.0) * (period_days / DAYS_PER_YEAR) ** (2.0 / 3.0)


def estimate_teq(
    st_teff_k: float | None,
    st_rad_rsun: float | None,
    sma_au: float | None,
    albedo: float = DEFAULT_ALBEDO,
) -> float | None:
    if st_teff_k is None or not math.isfinite(st_teff_k):
        return None
    if not _positive(st_rad_rsun) or not _positive(sma_au):
        return None
    if not 0.0 <= albedo <= 1.0:
        return None
    st_rad_au = st_rad_rsun * RSUN_AU
    return st_teff_k * math.sqrt(st_rad_au / (2.0 * sma_au)) * (1.0 - albedo) ** 0.25


def estimate_insolation(
    st_teff_k: float | None,
    st_rad_rsun: float | None,
    sma_au: float | None,
) -> float | None:
    """Stellar flux at the planet relative to Earth's."""
    if st_teff_k is None or not math.isfinite(st_teff_k):
        return None
    if not _positive(st_rad_rsun) or not _positive(sma_au):
        return None
    st_rad_au = st_rad_rsun * RSUN_AU
    try:
        flux = (st_rad_au / sma_au) ** 2 * (st_teff_k / SOLAR_TEFF_K) ** 4
    except OverflowError:
        return None
    return flux if math.isfinite(flux) else None


def derive_physical(record: CanonicalRecord, albedo: float = DEFAULT_ALBEDO) -> CanonicalRecord:
    """Fill missing radius, semi-major axis, T_eq and insolation.

    Present values are never overwritten. The semi-major axis runs before
    T_eq and insolation so a derived value feeds both in the same pass.
    """
    updates: dict[str, float] = {}

    if record.radius_rearth is None:
        radius = estimate_radius_from_depth(record.depth_ppm, record.st_rad_rsun)
        if radius is not None:
            updates["radius_rearth"] = radius

    sma = record.sma_au
    if sma is None:
        sma = estimate_sma_from_period(record.period_days, record.st_mass_msun)
        if sma is not None:
            updates["sma_au"] = sma

    if record.teq_k is None:
        teq = estimate_teq(record.st_teff_k, record.st_rad_rsun, sma, albedo=albedo)
        if teq is not None:
            updates["teq_k"] = teq

    if record.insol_earth is None:
        insol = estimate_insolation(record.st_teff_k, record.st_rad_rsun, sma)
        if insol is not None:
            updates["insol_earth"] = insol

    if not updates:
        return record
    return record.with_values(**updates)
