"""MCP server exposing the crash query layer as tools."""

from __future__ import annotations

from fastmcp import FastMCP

from api import queries
from api.models import BBox, CrashFilter

mcp = FastMCP(
    "CrashMap",
    instructions=(
        "Bicyclist and pedestrian crash records. Call get_filter_options first "
        "to see available states, years and the data date range. Severity "
        "buckets are Death, Major Injury, Minor Injury and None; the None "
        "bucket is excluded unless include_no_injury is true. Modes are "
        "Bicyclist and Pedestrian."
    ),
)


def _filter(
    severity: list[str] | None = None,
    mode: str | None = None,
    state: str | None = None,
    county: str | None = None,
    city: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    year: int | None = None,
    include_no_injury: bool = False,
    bbox: list[float] | None = None,
) -> CrashFilter:
    box = None
    if bbox:
        min_lat, min_lng, max_lat, max_lng = bbox
        box = BBox(min_lat=min_lat, min_lng=min_lng, max_lat=max_lat, max_lng=max_lng)
    return CrashFilter(
        severity=severity, mode=mode, state=state, county=county, city=city,
        date_from=date_from, date_to=date_to, year=year,
        include_no_injury=include_no_injury, bbox=box,
    )


@mcp.tool()
def get_filter_options() -> dict:
    """Available states, years, severity buckets, modes and min/max crash date."""
    return queries.get_filter_options()


@mcp.tool()
def get_counties(state: str | None = None) -> list[str]:
    """Counties, optionally limited to one state."""
    return queries.get_counties(state)


@mcp.tool()
def get_cities(state: str | None = None, county: str | None = None) -> list[str]:
    """Cities, optionally limited to a state and county."""
    return queries.get_cities(state, county)


@mcp.tool()
def get_crashes(
    severity: list[str] | None = None,
    mode: str | None = None,
    state: str | None = None,
    county: str | None = None,
    city: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    year: int | None = None,
    include_no_injury: bool = False,
    bbox: list[float] | None = None,
    limit: int = 100,
    offset: int = 0,
) -> dict:
    """Crash records matching the filters. bbox is [min_lat, min_lng, max_lat, max_lng]."""
    f = _filter(severity, mode, state, county, city, date_from, date_to, year, include_no_injury, bbox)
    return queries.get_crashes(f, limit, offset)


@mcp.tool()
def get_crash(colli_rpt_num: str) -> dict | None:
    """One crash by collision report number."""
    return queries.get_crash(colli_rpt_num)


@mcp.tool()
def get_crash_stats(
    severity: list[str] | None = None,
    mode: str | None = None,
    state: str | None = None,
    county: str | None = None,
    city: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    year: int | None = None,
    include_no_injury: bool = False,
) -> dict:
    """Totals, fatal count and breakdowns by mode, severity bucket and county."""
    f = _filter(severity, mode, state, county, city, date_from, date_to, year, include_no_injury)
    return queries.get_crash_stats(f)


def main():
    mcp.run()


if __name__ == "__main__":
    main()
