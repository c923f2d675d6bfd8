import unittest

from dashboard.state import FilterStore, SetCounty, SetMode, YearDate
from dashboard.url_sync import FilterUrlSync


class TestFilterUrlSync(unittest.TestCase):
    def _sync(self, params):
        store = FilterStore()
        writes = []
        sync = FilterUrlSync(store, lambda: params, writes.append)
        return store, sync, writes

    def test_deep_link_applied_and_not_overwritten(self):
        store, sync, writes = self._sync("year=2022&county=King")
        sync.start()
        self.assertEqual(store.state.date_filter, YearDate(2022))
        self.assertEqual(store.state.county, "King")
        # The only write reflects the decoded link, never the default view.
        self.assertNotIn("", writes)
        self.assertEqual(writes, ["year=2022&county=King"])

    def test_empty_url_writes_nothing(self):
        store, sync, writes = self._sync("")
        sync.start()
        self.assertEqual(writes, [])

    def test_later_changes_written(self):
        store, sync, writes = self._sync("")
        sync.start()
        store.dispatch(SetMode("Pedestrian"))
        store.dispatch(SetCounty("King"))
        self.assertEqual(writes, ["mode=Pedestrian", "mode=Pedestrian&county=King"])

    def test_unchanged_query_not_rewritten(self):
        store, sync, writes = self._sync("")
        sync.start()
        store.dispatch(SetMode("Pedestrian"))
        sync.sync(store.state)
        self.assertEqual(writes, ["mode=Pedestrian"])

    def test_stop(self):
        store, sync, writes = self._sync("")
        sync.start()
        sync.stop()
        store.dispatch(SetMode("Pedestrian"))
        self.assertEqual(writes, [])


if __name__ == "__main__":
    unittest.main()
