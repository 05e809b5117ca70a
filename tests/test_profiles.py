import unittest

from exo_enricher.job_queue import CancellationToken, JobQueue
from exo_enricher.mask import EXCLUDE
from exo_enricher.profiles import NOT_AN_EXOPLANET, build_profiles, schedule_image_jobs
from exo_enricher.schema import CanonicalRecord
from exo_enricher.visuals import SQUARE_SUFFIX, enrich_record


def _sample_records() -> list:
    return [
        enrich_record(CanonicalRecord(planet_name="K2-18 b", radius_rearth=2.61, teq_k=254.6, class_radius="mini-Neptune")),
        enrich_record(CanonicalRecord(planet_name="KOI-123.01")),
        enrich_record(CanonicalRecord(radius_rearth=1.0)),
    ]


class BuildProfilesTests(unittest.TestCase):
    def test_mask_marks_excluded_rows(self) -> None:
        profiles = build_profiles(_sample_records(), [1, 0])

        self.assertEqual([profile.included for profile in profiles], [True, False, True])
        self.assertEqual(profiles[0].name, "K2-18 b")
        self.assertEqual(profiles[1].name, NOT_AN_EXOPLANET)
        self.assertEqual(profiles[2].name, "OBJ-3")
        self.assertEqual(profiles[2].id, "OBJ-3-2")

    def test_default_for_rows_past_mask(self) -> None:
        profiles = build_profiles(_sample_records(), [1], default=EXCLUDE)
        self.assertEqual([profile.included for profile in profiles], [True, False, False])

    def test_bio_and_tags(self) -> None:
        profile = build_profiles(_sample_records(), None)[0]
        self.assertEqual(profile.bio, "Class: mini-Neptune · T_eq~255 K · Radius~2.6 R_earth")
        self.assertEqual(profile.tags, ["blue-white", "smooth"])
        self.assertEqual(build_profiles(_sample_records(), None)[1].bio, "")
        payload = profile.to_dict()
        self.assertEqual(payload["record"]["planet_name"], "K2-18 b")
        self.assertEqual(payload["photos"], [])


class ScheduleImageJobsTests(unittest.TestCase):
    def test_only_included_profiles_without_photos_are_queued(self) -> None:
        profiles = build_profiles(_sample_records(), [1, 0, 1])
        profiles[2].photos.append("data:image/png;base64,old")
        prompts: list[str] = []

        def generate(prompt: str, token: CancellationToken | None) -> str:
            prompts.append(prompt)
            return "data:image/png;base64,new"

        queue = JobQueue(min_interval_s=0.0)
        futures = schedule_image_jobs(profiles, queue, generate)
        for future in futures.values():
            future.result(timeout=5)
        queue.wait_idle(timeout=5)

        self.assertEqual(list(futures), [profiles[0].id])
        self.assertEqual(profiles[0].photos, ["data:image/png;base64,new"])
        self.assertEqual(profiles[1].photos, [])
        self.assertEqual(len(prompts), 1)
        self.assertTrue(prompts[0].endswith(SQUARE_SUFFIX))

    def test_failed_generation_leaves_photos_empty(self) -> None:
        profiles = build_profiles(_sample_records()[:1], None)

        def generate(prompt: str, token: CancellationToken | None) -> str:
            raise RuntimeError("service down")

        queue = JobQueue(min_interval_s=0.0)
        futures = schedule_image_jobs(profiles, queue, generate, force_square=False)
        self.assertIsInstance(futures[profiles[0].id].exception(timeout=5), RuntimeError)
        queue.wait_idle(timeout=5)
        self.assertEqual(profiles[0].photos, [])


if __name__ == "__main__":
    unittest.main()
