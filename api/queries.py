"""Shared crash query layer for the API and MCP server."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import duckdb

from api import config
from api.filters import compile_filter, to_sql
from api.models import CrashFilter
from api.severity import BUCKET_NAMES, SEVERITY_BUCKETS, merge_bucket_counts, raw_to_bucket

logger = logging.getLogger("crashmap.queries")

_CRASHES = config.DATA_PATH

MODES = ["Bicyclist", "Pedestrian"]

_CRASH_COLUMNS = """
    colli_rpt_num, jurisdiction, state_or_province_name, region_name,
    county_name, city_name, full_date, full_time, most_severe_injury_type,
    age_group, involved_persons, latitude, longitude, mode, crash_date
"""

FilterArg = CrashFilter | Mapping[str, Any] | None


def _run(sql: str, params: list | None = None) -> list[dict]:
    con = duckdb.connect()
    try:
        cur = con.execute(sql, params or [])
        cols = [d[0] for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]
    finally:
        con.close()


def _scalar(sql: str, params: list | None = None):
    rows = _run(sql, params)
    return next(iter(rows[0].values())) if rows else None


def _q(where: str, condition: str) -> str:
    if not where:
        return f"WHERE {condition}"
    return f"{where} AND {condition}"


def _source() -> str:
    return f"'{_CRASHES}'"


def _where(filter: FilterArg) -> tuple[str, list]:
    return to_sql(compile_filter(filter))


def _to_crash(row: dict) -> dict:
    crash_date = row.get("crash_date")
    raw = row.get("most_severe_injury_type")
    return {
        "colli_rpt_num": row["colli_rpt_num"],
        "jurisdiction": row.get("jurisdiction"),
        "state": row.get("state_or_province_name"),
        "region": row.get("region_name"),
        "county": row.get("county_name"),
        "city": row.get("city_name"),
        "date": row.get("full_date"),
        "crash_date": crash_date.isoformat() if crash_date is not None else None,
        "time": row.get("full_time"),
        "severity": raw_to_bucket(raw),
        "injury_type": raw,
        "age_group": row.get("age_group"),
        "involved_persons": row.get("involved_persons"),
        "latitude": row.get("latitude"),
        "longitude": row.get("longitude"),
        "mode": row.get("mode"),
    }


# ── Crashes ──────────────────────────────────────────────────────────

def get_crashes(
    filter: FilterArg = None,
    limit: int = config.DEFAULT_LIMIT,
    offset: int = 0,
) -> dict:
    """Matching crashes plus the total count before paging."""
    limit = min(limit, config.MAX_LIMIT)
    where, params = _where(filter)
    items = _run(f"""
        SELECT {_CRASH_COLUMNS}
        FROM {_source()} {where}
        ORDER BY crash_date DESC NULLS LAST, colli_rpt_num
        LIMIT ? OFFSET ?
    """, params + [limit, offset])
    total = _scalar(f"SELECT COUNT(*) FROM {_source()} {where}", params)
    logger.debug("crashes: %d of %d (limit=%d offset=%d)", len(items), total, limit, offset)
    return {"items": [_to_crash(r) for r in items], "total_count": int(total or 0)}


def get_crash(colli_rpt_num: str) -> dict | None:
    rows = _run(
        f"SELECT {_CRASH_COLUMNS} FROM {_source()} WHERE colli_rpt_num = ?",
        [colli_rpt_num],
    )
    return _to_crash(rows[0]) if rows else None


# ── Stats ────────────────────────────────────────────────────────────

def get_crash_stats(filter: FilterArg = None) -> dict:
    where, params = _where(filter)
    death = list(SEVERITY_BUCKETS["Death"])
    marks = ", ".join("?" for _ in death)
    totals = _run(f"""
        SELECT COUNT(*) AS total_crashes,
               COALESCE(SUM(CASE WHEN most_severe_injury_type IN ({marks}) THEN 1 ELSE 0 END), 0)
                   AS total_fatal
        FROM {_source()} {where}
    """, death + params)[0]
    by_mode = _run(f"""
        SELECT mode, COUNT(*) AS count
        FROM {_source()} {_q(where, "mode IS NOT NULL")}
        GROUP BY mode ORDER BY count DESC
    """, params)
    by_raw = _run(f"""
        SELECT most_severe_injury_type, COUNT(*) AS count
        FROM {_source()} {where}
        GROUP BY most_severe_injury_type
    """, params)
    by_county = _run(f"""
        SELECT county_name AS county, COUNT(*) AS count
        FROM {_source()} {_q(where, "county_name IS NOT NULL")}
        GROUP BY county_name ORDER BY count DESC
    """, params)
    return {
        "total_crashes": int(totals["total_crashes"]),
        "total_fatal": int(totals["total_fatal"]),
        "by_mode": by_mode,
        "by_severity": merge_bucket_counts(
            (r["most_severe_injury_type"], r["count"]) for r in by_raw
        ),
        "by_county": by_county,
    }


# ── Filter options ───────────────────────────────────────────────────

def get_states() -> list[str]:
    return [r["state"] for r in _run(f"""
        SELECT DISTINCT state_or_province_name AS state FROM {_source()}
        WHERE state_or_province_name IS NOT NULL ORDER BY state
    """)]


def get_counties(state: str | None = None) -> list[str]:
    where, params = "WHERE county_name IS NOT NULL", []
    if state:
        where, params = _q(where, "state_or_province_name = ?"), [state]
    return [r["county"] for r in _run(f"""
        SELECT DISTINCT county_name AS county FROM {_source()} {where} ORDER BY county
    """, params)]


def get_cities(state: str | None = None, county: str | None = None) -> list[str]:
    where, params = "WHERE city_name IS NOT NULL", []
    if state:
        where = _q(where, "state_or_province_name = ?")
        params.append(state)
    if county:
        where = _q(where, "county_name = ?")
        params.append(county)
    return [r["city"] for r in _run(f"""
        SELECT DISTINCT city_name AS city FROM {_source()} {where} ORDER BY city
    """, params)]


def get_years() -> list[int]:
    return [int(r["year"]) for r in _run(f"""
        SELECT DISTINCT YEAR(crash_date) AS year FROM {_source()}
        WHERE crash_date IS NOT NULL ORDER BY year DESC
    """)]


def get_date_bounds() -> dict:
    row = _run(f"""
        SELECT MIN(crash_date) AS min_date, MAX(crash_date) AS max_date FROM {_source()}
    """)[0]
    return {
        k: (v.isoformat() if v is not None else None) for k, v in row.items()
    }


def get_filter_options() -> dict:
    """Available filter values; counties and cities have their own lookups."""
    return {
        "states": get_states(),
        "years": get_years(),
        "severities": list(BUCKET_NAMES),
        "modes": list(MODES),
        **get_date_bounds(),
    }
