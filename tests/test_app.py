import unittest
from pathlib import Path
from unittest import mock

import streamlit as st
from streamlit.testing.v1 import AppTest

from api import config, queries
from fixtures import CrashData

APP = str(Path(__file__).resolve().parent.parent / "dashboard" / "app.py")

_data = None
_patches = []


def setUpModule():
    global _data
    _data = CrashData()
    _patches.extend([
        mock.patch.object(queries, "_CRASHES", _data.path),
        mock.patch.object(config, "API_URL", None),
    ])
    for p in _patches:
        p.start()


def tearDownModule():
    for p in _patches:
        p.stop()
    _data.cleanup()


def param(at, key):
    value = at.query_params.get(key)
    if isinstance(value, list):
        return value[0] if value else None
    return value


class TestDeepLinks(unittest.TestCase):
    def setUp(self):
        st.cache_data.clear()
        self.at = AppTest.from_file(APP, default_timeout=30)

    def test_year_outside_data_survives_first_render(self):
        self.at.query_params["year"] = "2005"
        self.at.run()
        self.assertFalse(self.at.exception)
        self.assertEqual(param(self.at, "year"), "2005")
        year_box = [sb for sb in self.at.selectbox if sb.label == "Year"][0]
        self.assertEqual(year_box.value, 2005)

    def test_year_in_data_kept(self):
        self.at.query_params["year"] = "2023"
        self.at.query_params["county"] = "King"
        self.at.run()
        self.assertFalse(self.at.exception)
        self.assertEqual(param(self.at, "year"), "2023")
        self.assertEqual(param(self.at, "county"), "King")

    def test_default_view_keeps_clean_url(self):
        self.at.run()
        self.assertFalse(self.at.exception)
        self.assertIsNone(param(self.at, "year"))
        self.assertIsNone(param(self.at, "state"))


class TestMissingData(unittest.TestCase):
    def test_app_starts_without_data(self):
        st.cache_data.clear()
        at = AppTest.from_file(APP, default_timeout=30)
        with mock.patch.object(queries, "_CRASHES", _data.path.with_name("missing.parquet")):
            at.query_params["year"] = "2022"
            at.run()
        self.assertFalse(at.exception)
        self.assertEqual(param(at, "year"), "2022")


if __name__ == "__main__":
    unittest.main()
