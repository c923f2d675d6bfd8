"""Compile a CrashFilter into a column predicate and render it as SQL.

The predicate is a plain dict mapping column name to either a scalar
(equality) or a condition dict using the operators ``in``, ``not_in``,
``gte`` and ``lte``. Each filter dimension has its own builder; builders run
in order and their fragments are merged into one predicate.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Mapping
from functools import reduce
from typing import Any

from api.models import CrashFilter
from api.severity import SEVERITY_BUCKETS, buckets_to_raw_values

SEVERITY_COL = "most_severe_injury_type"
DATE_COL = "crash_date"
LAT_COL = "latitude"
LNG_COL = "longitude"

# CrashFilter field -> column used for direct equality.
EQUALITY_COLUMNS = {
    "mode": "mode",
    "state": "state_or_province_name",
    "county": "county_name",
    "city": "city_name",
}

Predicate = dict[str, Any]
Builder = Callable[[CrashFilter], Predicate]

_SQL_OPS = {"gte": ">=", "lte": "<="}


def severity_predicate(f: CrashFilter) -> Predicate:
    if f.severity:
        return {SEVERITY_COL: {"in": buckets_to_raw_values(f.severity)}}
    if not f.include_no_injury:
        return {SEVERITY_COL: {"not_in": list(SEVERITY_BUCKETS["None"])}}
    return {}


def date_predicate(f: CrashFilter) -> Predicate:
    # A year replaces any explicit range.
    if f.year is not None:
        return {DATE_COL: {"gte": dt.date(f.year, 1, 1), "lte": dt.date(f.year, 12, 31)}}
    cond: dict[str, dt.date] = {}
    if f.date_from is not None:
        cond["gte"] = f.date_from
    if f.date_to is not None:
        cond["lte"] = f.date_to
    return {DATE_COL: cond} if cond else {}


def bbox_predicate(f: CrashFilter) -> Predicate:
    if f.bbox is None:
        return {}
    return {
        LAT_COL: {"gte": f.bbox.min_lat, "lte": f.bbox.max_lat},
        LNG_COL: {"gte": f.bbox.min_lng, "lte": f.bbox.max_lng},
    }


def equality_predicate(f: CrashFilter) -> Predicate:
    out: Predicate = {}
    for field, column in EQUALITY_COLUMNS.items():
        value = getattr(f, field)
        if value:
            out[column] = value
    return out


BUILDERS: tuple[Builder, ...] = (
    severity_predicate,
    date_predicate,
    bbox_predicate,
    equality_predicate,
)


def compile_filter(filter: CrashFilter | Mapping[str, Any] | None = None) -> Predicate:
    """Translate a filter into a predicate. Missing fields add nothing."""
    if filter is None:
        f = CrashFilter()
    elif isinstance(filter, CrashFilter):
        f = filter
    else:
        f = CrashFilter.model_validate(dict(filter))
    return reduce(lambda acc, build: {**acc, **build(f)}, BUILDERS, {})


def to_sql(predicate: Predicate) -> tuple[str, list[Any]]:
    """Render a predicate as a parameterized WHERE clause.

    Returns ``("", [])`` for an empty predicate.
    """
    parts: list[str] = []
    params: list[Any] = []
    for column, cond in predicate.items():
        if not isinstance(cond, dict):
            parts.append(f"{column} = ?")
            params.append(cond)
            continue
        for op, value in cond.items():
            if op in ("in", "not_in"):
                if not value:
                    # IN () matches nothing, NOT IN () matches everything.
                    parts.append("FALSE" if op == "in" else "TRUE")
                    continue
                marks = ", ".join("?" for _ in value)
                keyword = "IN" if op == "in" else "NOT IN"
                parts.append(f"{column} {keyword} ({marks})")
                params.extend(value)
            elif op in _SQL_OPS:
                parts.append(f"{column} {_SQL_OPS[op]} ?")
                params.append(value)
            else:
                raise ValueError(f"unknown predicate operator: {op!r}")
    if not parts:
        return "", []
    return "WHERE " + " AND ".join(parts), params
