"""Encode filter state into URL query parameters and back.

Fields equal to their application default are left out, so the default view
has a clean URL. Decoding never raises: each parameter is checked on its own
and anything unrecognized falls back to that field's default.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode

from dashboard.state import (
    DEFAULT_PRESET,
    DEFAULT_SEVERITY,
    DEFAULT_STATE,
    INJURY_BUCKETS,
    MODES,
    NO_INJURY_BUCKET,
    PRESETS,
    DateFilter,
    NoDate,
    PresetDate,
    RangeDate,
    UrlFilterState,
    YearDate,
)

ALL_STATES = "none"  # value of ?state= meaning "no state filter"
NO_DATE = "none"

VALID_BUCKETS = frozenset(INJURY_BUCKETS + (NO_INJURY_BUCKET,))
MIN_YEAR, MAX_YEAR = 2000, 2100
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _unique(values) -> list[str]:
    return list(dict.fromkeys(values))


def _is_default_severity(severity: tuple[str, ...], include_no_injury: bool) -> bool:
    if include_no_injury:
        return False
    return len(severity) == len(DEFAULT_SEVERITY) and set(severity) == set(DEFAULT_SEVERITY)


# ── Encode ───────────────────────────────────────────────────────────

def encode_filter_params(s: UrlFilterState) -> dict[str, str]:
    params: dict[str, str] = {}

    if s.mode is not None:
        params["mode"] = s.mode

    if not _is_default_severity(s.severity, s.include_no_injury):
        buckets = _unique(s.severity)
        if s.include_no_injury:
            buckets.append(NO_INJURY_BUCKET)
        params["severity"] = ",".join(buckets)

    df = s.date_filter
    if isinstance(df, NoDate):
        params["date"] = NO_DATE
    elif isinstance(df, PresetDate):
        if df.preset != DEFAULT_PRESET:
            params["date"] = df.preset
    elif isinstance(df, YearDate):
        params["year"] = str(df.year)
    elif isinstance(df, RangeDate):
        params["dateFrom"] = df.start_date
        params["dateTo"] = df.end_date

    if s.state != DEFAULT_STATE:
        params["state"] = ALL_STATES if s.state is None else s.state

    if s.county is not None:
        params["county"] = s.county
    if s.city is not None:
        params["city"] = s.city

    if s.update_with_movement:
        params["movement"] = "1"

    return params


def encode_query_string(s: UrlFilterState) -> str:
    """Query string without the leading '?'; empty for the default view."""
    return urlencode(encode_filter_params(s))


# ── Decode ───────────────────────────────────────────────────────────

def _as_params(raw: Mapping | str | None) -> dict[str, str]:
    """First value wins for repeated keys, as in URLSearchParams.get."""
    out: dict[str, str] = {}
    if raw is None:
        return out
    if isinstance(raw, str):
        for key, value in parse_qsl(raw.lstrip("?"), keep_blank_values=True):
            out.setdefault(key, value)
        return out
    for key, value in raw.items():
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = value[0]
        out[str(key)] = "" if value is None else str(value)
    return out


def _iso_date(value: str | None) -> str | None:
    if value is None or not _ISO_DATE.match(value):
        return None
    try:
        dt.date.fromisoformat(value)
    except ValueError:
        return None
    return value


def _decode_severity(raw: str | None) -> tuple[tuple[str, ...], bool]:
    if raw is None:
        return DEFAULT_SEVERITY, False
    tokens = [t.strip() for t in raw.split(",")]
    if not any(tokens):
        # Explicitly empty selection.
        return (), False
    valid = _unique(t for t in tokens if t in VALID_BUCKETS)
    if not valid:
        return DEFAULT_SEVERITY, False
    severity = tuple(t for t in valid if t != NO_INJURY_BUCKET)
    return severity, NO_INJURY_BUCKET in valid


def _decode_date(params: dict[str, str]) -> DateFilter:
    raw_date = params.get("date")
    if raw_date == NO_DATE:
        return NoDate()
    if raw_date in PRESETS:
        return PresetDate(raw_date)
    if "dateFrom" in params and "dateTo" in params:
        start, end = _iso_date(params["dateFrom"]), _iso_date(params["dateTo"])
        if start and end:
            return RangeDate(start, end)
        return PresetDate()
    if "year" in params:
        try:
            year = int(params["year"])
        except ValueError:
            return PresetDate()
        if MIN_YEAR <= year <= MAX_YEAR:
            return YearDate(year)
    return PresetDate()


def decode_filter_params(raw: Mapping | str | None) -> UrlFilterState:
    params = _as_params(raw)

    mode = params.get("mode")
    if mode not in MODES:
        mode = None

    severity, include_no_injury = _decode_severity(params.get("severity"))

    state: str | None = DEFAULT_STATE
    if "state" in params:
        state = None if params["state"] == ALL_STATES else params["state"]

    return UrlFilterState(
        mode=mode,
        severity=severity,
        include_no_injury=include_no_injury,
        date_filter=_decode_date(params),
        state=state,
        county=params.get("county"),
        city=params.get("city"),
        update_with_movement=params.get("movement") == "1",
    )
