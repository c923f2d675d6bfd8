import datetime as dt
import unittest
from unittest import mock

from api import config, queries
from api.models import BBox, CrashFilter
from fixtures import CrashData

_data = None
_patch = None


def setUpModule():
    global _data, _patch
    _data = CrashData()
    _patch = mock.patch.object(queries, "_CRASHES", _data.path)
    _patch.start()


def tearDownModule():
    _patch.stop()
    _data.cleanup()


def ids(result):
    return [c["colli_rpt_num"] for c in result["items"]]


class TestGetCrashes(unittest.TestCase):
    def test_default_excludes_no_injury_newest_first(self):
        res = queries.get_crashes()
        self.assertEqual(ids(res), ["C1", "C2", "C4", "C5"])
        self.assertEqual(res["total_count"], 4)

    def test_include_no_injury_undated_last(self):
        res = queries.get_crashes({"includeNoInjury": True})
        self.assertEqual(res["total_count"], 6)
        self.assertEqual(ids(res)[-1], "C6")

    def test_severity_bucket(self):
        res = queries.get_crashes(CrashFilter(severity=["Death"]))
        self.assertEqual(ids(res), ["C1", "C4"])
        self.assertEqual({c["severity"] for c in res["items"]}, {"Death"})
        self.assertEqual(res["items"][1]["injury_type"], "Died in Hospital")

    def test_year(self):
        self.assertEqual(ids(queries.get_crashes({"year": 2023})), ["C4"])
        self.assertEqual(
            ids(queries.get_crashes({"year": 2023, "includeNoInjury": True})), ["C3", "C4"],
        )

    def test_date_range(self):
        res = queries.get_crashes(CrashFilter(date_from=dt.date(2024, 1, 1), date_to=dt.date(2024, 2, 28)))
        self.assertEqual(ids(res), ["C2"])

    def test_geography(self):
        self.assertEqual(ids(queries.get_crashes({"county": "Pierce"})), ["C4"])
        self.assertEqual(ids(queries.get_crashes({"state": "Oregon", "mode": "Pedestrian"})), ["C5"])

    def test_bbox(self):
        box = BBox(min_lat=47.5, min_lng=-122.4, max_lat=47.7, max_lng=-122.25)
        self.assertEqual(ids(queries.get_crashes(CrashFilter(bbox=box))), ["C1", "C2"])

    def test_paging_keeps_total(self):
        res = queries.get_crashes(None, limit=1, offset=1)
        self.assertEqual(ids(res), ["C2"])
        self.assertEqual(res["total_count"], 4)

    def test_limit_capped(self):
        with mock.patch.object(config, "MAX_LIMIT", 2):
            res = queries.get_crashes(None, limit=10)
        self.assertEqual(len(res["items"]), 2)
        self.assertEqual(res["total_count"], 4)

    def test_crash_shape(self):
        crash = queries.get_crashes({"severity": ["Death"]}, limit=1)["items"][0]
        self.assertEqual(crash["crash_date"], "2024-03-01")
        self.assertEqual(crash["state"], "Washington")
        self.assertEqual(crash["city"], "Seattle")
        self.assertAlmostEqual(crash["latitude"], 47.61)


class TestGetCrash(unittest.TestCase):
    def test_found(self):
        crash = queries.get_crash("C3")
        self.assertEqual(crash["severity"], "None")
        self.assertEqual(crash["county"], "King")

    def test_missing(self):
        self.assertIsNone(queries.get_crash("nope"))


class TestStats(unittest.TestCase):
    def test_default(self):
        stats = queries.get_crash_stats()
        self.assertEqual(stats["total_crashes"], 4)
        self.assertEqual(stats["total_fatal"], 2)
        self.assertEqual(
            {s["severity"]: s["count"] for s in stats["by_severity"]},
            {"Death": 2, "Minor Injury": 1, "Major Injury": 1},
        )
        self.assertEqual({m["mode"]: m["count"] for m in stats["by_mode"]}, {"Pedestrian": 2, "Bicyclist": 2})
        self.assertEqual(stats["by_county"][0], {"county": "King", "count": 2})

    def test_no_injury_merged(self):
        stats = queries.get_crash_stats({"includeNoInjury": True, "state": "Washington"})
        by_severity = {s["severity"]: s["count"] for s in stats["by_severity"]}
        self.assertEqual(by_severity["None"], 2)
        self.assertEqual(stats["total_crashes"], 5)

    def test_empty_match(self):
        stats = queries.get_crash_stats({"county": "Nowhere"})
        self.assertEqual((stats["total_crashes"], stats["total_fatal"]), (0, 0))
        self.assertEqual(stats["by_severity"], [])


class TestFilterOptions(unittest.TestCase):
    def test_options(self):
        opts = queries.get_filter_options()
        self.assertEqual(opts["states"], ["Oregon", "Washington"])
        self.assertEqual(opts["years"], [2024, 2023, 2022])
        self.assertEqual(opts["severities"], ["Death", "Major Injury", "Minor Injury", "None"])
        self.assertEqual(opts["modes"], ["Bicyclist", "Pedestrian"])
        self.assertEqual((opts["min_date"], opts["max_date"]), ("2022-01-15", "2024-03-01"))

    def test_cascading_lookups(self):
        self.assertEqual(queries.get_counties("Washington"), ["King", "Pierce"])
        self.assertEqual(queries.get_counties(), ["King", "Multnomah", "Pierce"])
        self.assertEqual(queries.get_cities("Washington", "King"), ["Bellevue", "Seattle"])
        self.assertEqual(queries.get_cities(county="Multnomah"), ["Portland"])


if __name__ == "__main__":
    unittest.main()
