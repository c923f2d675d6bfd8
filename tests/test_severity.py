import unittest

from api.severity import (
    BUCKET_NAMES,
    SEVERITY_BUCKETS,
    buckets_to_raw_values,
    merge_bucket_counts,
    raw_to_bucket,
)


class TestRawToBucket(unittest.TestCase):
    def test_every_raw_code_maps_to_its_bucket(self):
        for bucket, codes in SEVERITY_BUCKETS.items():
            for raw in codes:
                self.assertEqual(raw_to_bucket(raw), bucket)

    def test_death_codes(self):
        self.assertEqual(raw_to_bucket("Dead at Scene"), "Death")
        self.assertEqual(raw_to_bucket("Died in Hospital"), "Death")
        self.assertEqual(raw_to_bucket("Dead on Arrival"), "Death")

    def test_unknown_is_no_injury_bucket(self):
        self.assertEqual(raw_to_bucket("Unknown"), "None")

    def test_unmapped_code_passes_through(self):
        self.assertEqual(raw_to_bucket("Something New"), "Something New")

    def test_missing_value_is_none(self):
        self.assertIsNone(raw_to_bucket(None))
        self.assertIsNone(raw_to_bucket(""))


class TestBucketsToRawValues(unittest.TestCase):
    def test_expands_in_declaration_order(self):
        self.assertEqual(
            buckets_to_raw_values(["Death", "Minor Injury"]),
            ["Dead at Scene", "Died in Hospital", "Dead on Arrival",
             "Suspected Minor Injury", "Possible Injury"],
        )

    def test_follows_input_order(self):
        self.assertEqual(
            buckets_to_raw_values(["Major Injury", "Death"]),
            ["Suspected Serious Injury", "Dead at Scene", "Died in Hospital", "Dead on Arrival"],
        )

    def test_unknown_name_passes_through(self):
        self.assertEqual(buckets_to_raw_values(["Nope"]), ["Nope"])

    def test_none_entries_skipped(self):
        self.assertEqual(buckets_to_raw_values([None, "None"]), ["No Apparent Injury", "Unknown"])

    def test_empty(self):
        self.assertEqual(buckets_to_raw_values([]), [])

    def test_round_trip_through_buckets(self):
        for bucket in BUCKET_NAMES:
            raws = buckets_to_raw_values([bucket])
            self.assertEqual({raw_to_bucket(r) for r in raws}, {bucket})


class TestMergeBucketCounts(unittest.TestCase):
    def test_merges_codes_of_one_bucket(self):
        rows = [("Dead at Scene", 2), ("Died in Hospital", 3), ("Possible Injury", 4), (None, 9)]
        self.assertEqual(
            merge_bucket_counts(rows),
            [{"severity": "Death", "count": 5}, {"severity": "Minor Injury", "count": 4}],
        )


if __name__ == "__main__":
    unittest.main()
