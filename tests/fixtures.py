"""Small crash parquet shared by the query and API tests."""

import tempfile
from pathlib import Path

import duckdb

ROWS = [
    # id, state, county, city, raw severity, mode, crash date, lat, lng
    ("C1", "Washington", "King", "Seattle", "Dead at Scene", "Pedestrian", "2024-03-01", 47.61, -122.33),
    ("C2", "Washington", "King", "Seattle", "Suspected Minor Injury", "Bicyclist", "2024-02-10", 47.65, -122.30),
    ("C3", "Washington", "King", "Bellevue", "No Apparent Injury", "Pedestrian", "2023-07-04", 47.61, -122.20),
    ("C4", "Washington", "Pierce", "Tacoma", "Died in Hospital", "Bicyclist", "2023-05-05", 47.25, -122.44),
    ("C5", "Oregon", "Multnomah", "Portland", "Suspected Serious Injury", "Pedestrian", "2022-01-15", 45.52, -122.68),
    ("C6", "Washington", "King", "Seattle", "Unknown", "Bicyclist", None, None, None),
]


def write_crashes(directory: str) -> Path:
    path = Path(directory) / "crashes.parquet"
    con = duckdb.connect()
    try:
        con.execute("""
            CREATE TABLE crashes (
                colli_rpt_num VARCHAR, jurisdiction VARCHAR, state_or_province_name VARCHAR,
                region_name VARCHAR, county_name VARCHAR, city_name VARCHAR,
                full_date VARCHAR, full_time VARCHAR, most_severe_injury_type VARCHAR,
                age_group VARCHAR, involved_persons INTEGER, latitude DOUBLE,
                longitude DOUBLE, mode VARCHAR, crash_date DATE
            )
        """)
        for rpt, state, county, city, raw, mode, day, lat, lng in ROWS:
            con.execute(
                "INSERT INTO crashes VALUES (?, 'City Street', ?, NULL, ?, ?, ?, '08:15', ?, "
                "'Adult', 2, ?, ?, ?, CAST(? AS DATE))",
                [rpt, state, county, city, day, raw, lat, lng, mode, day],
            )
        con.execute(f"COPY crashes TO '{path}' (FORMAT PARQUET)")
    finally:
        con.close()
    return path


class CrashData:
    """Temporary directory holding the fixture parquet."""

    def __init__(self):
        self._dir = tempfile.TemporaryDirectory()
        self.path = write_crashes(self._dir.name)

    def cleanup(self):
        self._dir.cleanup()
