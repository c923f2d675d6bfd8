"""Filter state for the crash map: snapshots, actions, reducer and store.

State snapshots are frozen dataclasses. The only way to change state is to
dispatch an action through :class:`FilterStore`, which runs
:func:`filter_reducer` and notifies subscribers. Querying and URL writing
happen in subscribers, never in the reducer.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Union

import pandas as pd

from api.models import BBox, CrashFilter

MODES = ("Bicyclist", "Pedestrian")
INJURY_BUCKETS = ("Death", "Major Injury", "Minor Injury")
NO_INJURY_BUCKET = "None"
DEFAULT_SEVERITY = INJURY_BUCKETS
DEFAULT_STATE = "Washington"

PRESETS = ("ytd", "90d", "last-year", "3y")
DEFAULT_PRESET = "ytd"
PRESET_LABELS = {
    "ytd": "YTD",
    "90d": "90 Days",
    "last-year": "Last Year",
    "3y": "3 Years",
}


# ── Date filter variants ─────────────────────────────────────────────

@dataclass(frozen=True)
class NoDate:
    pass


@dataclass(frozen=True)
class YearDate:
    year: int


@dataclass(frozen=True)
class RangeDate:
    start_date: str  # YYYY-MM-DD
    end_date: str


@dataclass(frozen=True)
class PresetDate:
    preset: str = DEFAULT_PRESET


DateFilter = Union[NoDate, YearDate, RangeDate, PresetDate]


@dataclass(frozen=True)
class DataBounds:
    min_date: str
    max_date: str


# ── State ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class UrlFilterState:
    """The part of the filter state that is carried in the URL."""

    mode: str | None = None
    severity: tuple[str, ...] = DEFAULT_SEVERITY
    include_no_injury: bool = False
    date_filter: DateFilter = field(default_factory=PresetDate)
    state: str | None = DEFAULT_STATE
    county: str | None = None
    city: str | None = None
    update_with_movement: bool = False


@dataclass(frozen=True)
class FilterState(UrlFilterState):
    satellite: bool = False
    accessible_colors: bool = False
    total_count: int | None = None
    is_loading: bool = False
    data_bounds: DataBounds | None = None

    def url_state(self) -> UrlFilterState:
        return UrlFilterState(**{f.name: getattr(self, f.name) for f in fields(UrlFilterState)})


# ── Actions ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SetMode:
    mode: str | None


@dataclass(frozen=True)
class SetSeverity:
    severity: tuple[str, ...]


@dataclass(frozen=True)
class ToggleNoInjury:
    pass


@dataclass(frozen=True)
class SetDateYear:
    year: int


@dataclass(frozen=True)
class SetDatePreset:
    preset: str


@dataclass(frozen=True)
class SetDateRange:
    start_date: str
    end_date: str


@dataclass(frozen=True)
class ClearDate:
    pass


@dataclass(frozen=True)
class SetState:
    state: str | None


@dataclass(frozen=True)
class SetCounty:
    county: str | None


@dataclass(frozen=True)
class SetCity:
    city: str | None


@dataclass(frozen=True)
class SetUpdateWithMovement:
    enabled: bool


@dataclass(frozen=True)
class SetSatellite:
    enabled: bool


@dataclass(frozen=True)
class SetAccessibleColors:
    enabled: bool


@dataclass(frozen=True)
class SetTotalCount:
    total_count: int | None


@dataclass(frozen=True)
class SetLoading:
    is_loading: bool


@dataclass(frozen=True)
class SetDateBounds:
    bounds: DataBounds | None


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class InitFromUrl:
    url_state: UrlFilterState


Action = Union[
    SetMode, SetSeverity, ToggleNoInjury, SetDateYear, SetDatePreset,
    SetDateRange, ClearDate, SetState, SetCounty, SetCity,
    SetUpdateWithMovement, SetSatellite, SetAccessibleColors,
    SetTotalCount, SetLoading, SetDateBounds, Reset, InitFromUrl,
]


def filter_reducer(s: FilterState, action: Action) -> FilterState:
    if isinstance(action, SetMode):
        return replace(s, mode=action.mode)
    if isinstance(action, SetSeverity):
        return replace(s, severity=tuple(action.severity))
    if isinstance(action, ToggleNoInjury):
        return replace(s, include_no_injury=not s.include_no_injury)
    if isinstance(action, SetDateYear):
        return replace(s, date_filter=YearDate(action.year))
    if isinstance(action, SetDatePreset):
        return replace(s, date_filter=PresetDate(action.preset))
    if isinstance(action, SetDateRange):
        return replace(s, date_filter=RangeDate(action.start_date, action.end_date))
    if isinstance(action, ClearDate):
        return replace(s, date_filter=NoDate())
    # A new state invalidates county and city.
    if isinstance(action, SetState):
        return replace(s, state=action.state, county=None, city=None)
    # County and city are independent: neither clears the other.
    if isinstance(action, SetCounty):
        return replace(s, county=action.county)
    if isinstance(action, SetCity):
        return replace(s, city=action.city)
    if isinstance(action, SetUpdateWithMovement):
        return replace(s, update_with_movement=action.enabled)
    if isinstance(action, SetSatellite):
        return replace(s, satellite=action.enabled)
    if isinstance(action, SetAccessibleColors):
        return replace(s, accessible_colors=action.enabled)
    if isinstance(action, SetTotalCount):
        return replace(s, total_count=action.total_count)
    if isinstance(action, SetLoading):
        return replace(s, is_loading=action.is_loading)
    if isinstance(action, SetDateBounds):
        return replace(s, data_bounds=action.bounds)
    # Data bounds describe the dataset, not the filter; they survive a reset.
    if isinstance(action, Reset):
        return FilterState(data_bounds=s.data_bounds)
    if isinstance(action, InitFromUrl):
        u = action.url_state
        return replace(s, **{f.name: getattr(u, f.name) for f in fields(UrlFilterState)})
    raise TypeError(f"unknown filter action: {action!r}")


Listener = Callable[[FilterState], None]


class FilterStore:
    """Single-writer container for one session's filter state."""

    def __init__(self, initial: FilterState | None = None):
        self._state = initial if initial is not None else FilterState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> FilterState:
        return self._state

    def dispatch(self, action: Action) -> FilterState:
        new = filter_reducer(self._state, action)
        if new == self._state:
            return self._state
        self._state = new
        for listener in list(self._listeners):
            listener(new)
        return new

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


# ── Helpers ──────────────────────────────────────────────────────────

def _fmt(ts: pd.Timestamp | dt.date) -> str:
    return ts.strftime("%Y-%m-%d")


def preset_to_date_range(
    preset: str, bounds: DataBounds, today: dt.date | None = None,
) -> tuple[str, str]:
    """Concrete (start, end) for a preset, anchored to the newest data.

    ytd, 90d and 3y end at ``bounds.max_date`` so they never run past the
    data; last-year is always the previous full calendar year.
    """
    today = today or dt.date.today()
    max_date = pd.Timestamp(bounds.max_date)
    if preset == "ytd":
        return _fmt(dt.date(today.year, 1, 1)), bounds.max_date
    if preset == "90d":
        return _fmt(max_date - pd.Timedelta(days=90)), bounds.max_date
    if preset == "last-year":
        return _fmt(dt.date(today.year - 1, 1, 1)), _fmt(dt.date(today.year - 1, 12, 31))
    if preset == "3y":
        return _fmt(max_date - pd.DateOffset(months=36)), bounds.max_date
    raise ValueError(f"unknown date preset: {preset!r}")


def effective_severity(s: UrlFilterState) -> list[str]:
    return list(s.severity) + ([NO_INJURY_BUCKET] if s.include_no_injury else [])


def to_crash_filter(s: FilterState, bbox: BBox | None = None) -> CrashFilter:
    """Query variables for the current state.

    When the map drives geography, the viewport box replaces state, county
    and city; otherwise the box is ignored.
    """
    dates: dict = {}
    df = s.date_filter
    if isinstance(df, YearDate):
        dates = {"year": df.year}
    elif isinstance(df, RangeDate):
        dates = {"date_from": df.start_date, "date_to": df.end_date}
    elif isinstance(df, PresetDate) and s.data_bounds is not None:
        start, end = preset_to_date_range(df.preset, s.data_bounds)
        dates = {"date_from": start, "date_to": end}

    if s.update_with_movement:
        geo: dict = {"bbox": bbox} if bbox is not None else {}
    else:
        geo = {k: v for k, v in (("state", s.state), ("county", s.county), ("city", s.city)) if v}

    return CrashFilter(
        severity=effective_severity(s),
        mode=s.mode or None,
        include_no_injury=s.include_no_injury,
        **dates,
        **geo,
    )


def active_filter_labels(s: FilterState) -> list[str]:
    """Short labels for the summary bar, one per active filter."""
    labels = [s.mode if s.mode else " + ".join(MODES)]

    if set(s.severity) != set(DEFAULT_SEVERITY) or s.include_no_injury:
        chosen = effective_severity(s)
        labels.append(" + ".join(chosen) if chosen else "No severity")

    df = s.date_filter
    if isinstance(df, YearDate):
        labels.append(f"'{str(df.year)[2:]}")
    elif isinstance(df, RangeDate):
        labels.append(f"{df.start_date} to {df.end_date}")
    elif isinstance(df, PresetDate):
        labels.append(PRESET_LABELS.get(df.preset, df.preset))

    if s.update_with_movement:
        labels.append("Viewport")
    else:
        labels.extend(v for v in (s.county, s.city) if v)
    return labels
