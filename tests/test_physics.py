import math
import unittest

from exo_enricher.physics import (
    RSUN_AU,
    derive_physical,
    estimate_insolation,
    estimate_radius_from_depth,
    estimate_sma_from_period,
    estimate_teq,
)
from exo_enricher.schema import NUMERIC_FIELDS, CanonicalRecord


class EstimatorTests(unittest.TestCase):
    def test_solar_radius_in_au(self) -> None:
        self.assertAlmostEqual(RSUN_AU, 0.00465047, places=6)

    def test_radius_from_depth(self) -> None:
        self.assertAlmostEqual(estimate_radius_from_depth(1000, 1.0), 3.45, places=2)
        self.assertIsNone(estimate_radius_from_depth(0, 1.0))
        self.assertIsNone(estimate_radius_from_depth(1000, -1.0))
        self.assertIsNone(estimate_radius_from_depth(None, 1.0))

    def test_sma_from_period(self) -> None:
        self.assertAlmostEqual(estimate_sma_from_period(365.25, 1.0), 1.0)
        self.assertIsNone(estimate_sma_from_period(0, 1.0))
        self.assertIsNone(estimate_sma_from_period(10, None))

    def test_teq_and_insolation_for_earth_analogue(self) -> None:
        teq = estimate_teq(5777.0, 1.0, 1.0, albedo=0.3)
        self.assertAlmostEqual(teq, 254.6, delta=1.0)
        self.assertAlmostEqual(estimate_insolation(5777.0, 1.0, 1.0), RSUN_AU**2)
        self.assertIsNone(estimate_teq(5777.0, 1.0, 0.0))
        self.assertIsNone(estimate_insolation(None, 1.0, 1.0))
        self.assertIsNone(estimate_teq(5777.0, 1.0, 1.0, albedo=1.5))


class DeriveTests(unittest.TestCase):
    def test_sma_feeds_teq_and_insolation_in_one_pass(self) -> None:
        record = CanonicalRecord(period_days=33.0, st_mass_msun=0.5, st_teff_k=3457.0, st_rad_rsun=0.44)
        derived = derive_physical(record)
        expected_sma = 0.5 ** (1 / 3) * (33 / 365.25) ** (2 / 3)
        self.assertAlmostEqual(derived.sma_au, expected_sma)
        self.assertIsNotNone(derived.teq_k)
        self.assertIsNotNone(derived.insol_earth)
        self.assertAlmostEqual(derived.teq_k, estimate_teq(3457.0, 0.44, expected_sma))

    def test_present_values_are_not_overwritten(self) -> None:
        record = CanonicalRecord(
            radius_rearth=1.0,
            depth_ppm=5000.0,
            st_rad_rsun=1.0,
            sma_au=2.0,
            period_days=10.0,
            st_mass_msun=1.0,
            teq_k=300.0,
            st_teff_k=6000.0,
            insol_earth=3.0,
        )
        derived = derive_physical(record)
        for name in NUMERIC_FIELDS:
            self.assertEqual(getattr(derived, name), getattr(record, name))

    def test_derive_is_idempotent(self) -> None:
        samples = [
            CanonicalRecord(),
            CanonicalRecord(depth_ppm=1000.0, st_rad_rsun=1.0),
            CanonicalRecord(period_days=3.0, st_mass_msun=1.1, st_teff_k=6100.0, st_rad_rsun=1.2),
            CanonicalRecord(period_days=-3.0, st_mass_msun=1.1, depth_ppm=0.0, st_rad_rsun=1.2),
        ]
        for record in samples:
            with self.subTest(record=record):
                once = derive_physical(record)
                self.assertEqual(derive_physical(once), once)

    def test_insufficient_inputs_leave_fields_missing(self) -> None:
        derived = derive_physical(CanonicalRecord(st_teff_k=5000.0))
        self.assertIsNone(derived.radius_rearth)
        self.assertIsNone(derived.sma_au)
        self.assertIsNone(derived.teq_k)
        self.assertIsNone(derived.insol_earth)

    def test_derived_values_are_finite(self) -> None:
        derived = derive_physical(CanonicalRecord(period_days=1e-300, st_mass_msun=1e-300, st_teff_k=5000.0, st_rad_rsun=1.0))
        for name in NUMERIC_FIELDS:
            value = getattr(derived, name)
            self.assertTrue(value is None or math.isfinite(value))


if __name__ == "__main__":
    unittest.main()
