import tempfile
import unittest
from pathlib import Path

import numpy as np

from exo_enricher.mask import EXCLUDE, INCLUDE, apply_mask, load_mask, mask_bit, parse_mask


class MaskTests(unittest.TestCase):
    def test_parse_mask_normalizes_entries(self) -> None:
        self.assertEqual(parse_mask([1, 0, "1", "0", True, False, "yes", 1.0, 2, None]), [1, 0, 1, 0, 1, 0, 1, 1, 0, 0])
        self.assertEqual(parse_mask(None), [])

    def test_parse_mask_accepts_numpy_arrays(self) -> None:
        self.assertEqual(parse_mask(np.array([True, False, True])), [1, 0, 1])
        self.assertEqual(parse_mask(np.array([1, 0, 1])), [1, 0, 1])
        self.assertEqual(parse_mask(np.array([0.0, 1.0])), [0, 1])

    def test_mask_bit_defaults_past_the_end(self) -> None:
        mask = [1, 0]
        self.assertEqual(mask_bit(mask, 0), INCLUDE)
        self.assertEqual(mask_bit(mask, 1), EXCLUDE)
        self.assertEqual(mask_bit(mask, 5), EXCLUDE)
        self.assertEqual(mask_bit(mask, 5, default=INCLUDE), INCLUDE)
        self.assertEqual(mask_bit(None, 0, default=INCLUDE), INCLUDE)

    def test_apply_mask_keeps_order(self) -> None:
        items = ["a", "b", "c", "d"]
        self.assertEqual(apply_mask(items, [1, 0, 1]), ["a", "c"])
        self.assertEqual(apply_mask(items, [1, 0, 1], default=INCLUDE), ["a", "c", "d"])
        self.assertEqual(apply_mask(items, []), [])

    def test_load_mask_from_json_and_text(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            json_path = Path(temp_dir) / "mask.json"
            json_path.write_text("[1, 0, 1]", encoding="utf-8")
            self.assertEqual(load_mask(json_path), [1, 0, 1])

            text_path = Path(temp_dir) / "mask.txt"
            text_path.write_text("1,0\n0 1\n", encoding="utf-8")
            self.assertEqual(load_mask(text_path), [1, 0, 0, 1])

            bad_path = Path(temp_dir) / "bad.json"
            bad_path.write_text('{"mask": [1]}', encoding="utf-8")
            with self.assertRaises(ValueError):
                load_mask(bad_path)


if __name__ == "__main__":
    unittest.main()
