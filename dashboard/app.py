"""CrashMap: bicyclist and pedestrian crashes on an interactive map."""

from __future__ import annotations

import datetime as dt
import logging
from urllib.parse import parse_qsl

import pydeck as pdk
import streamlit as st

from api import config
from dashboard.client import HttpQueryClient, LocalQueryClient, QueryError
from dashboard.controller import ViewportQueryController
from dashboard.map_view import CrashSelection, DeckMap, severity_layers
from dashboard.state import (
    INJURY_BUCKETS,
    MODES,
    PRESET_LABELS,
    PRESETS,
    ClearDate,
    DataBounds,
    FilterStore,
    NoDate,
    PresetDate,
    RangeDate,
    Reset,
    SetAccessibleColors,
    SetCity,
    SetCounty,
    SetDateBounds,
    SetDatePreset,
    SetDateRange,
    SetDateYear,
    SetMode,
    SetSatellite,
    SetSeverity,
    SetState,
    SetUpdateWithMovement,
    ToggleNoInjury,
    YearDate,
    active_filter_labels,
)
from dashboard.url_sync import FilterUrlSync

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("crashmap.dashboard")

ALL = "All"

# ── Page config ────────────────────────────────────────────────────────
st.set_page_config(page_title="CrashMap", page_icon="🚲", layout="wide")
st.title("CrashMap")


# ── Session ────────────────────────────────────────────────────────────
def _replace_url(search: str) -> None:
    st.query_params.from_dict(dict(parse_qsl(search, keep_blank_values=True)))


def _start_session() -> dict:
    client = HttpQueryClient(config.API_URL) if config.API_URL else LocalQueryClient()
    store = FilterStore()
    deck_map = DeckMap()
    controller = ViewportQueryController(store, deck_map, client)
    # Attached before the URL is applied so deep-linked geography frames the camera.
    controller.attach()
    FilterUrlSync(store, lambda: st.query_params.to_dict(), _replace_url).start()
    try:
        options = client.filter_options()
    except QueryError as exc:
        logger.error("filter options unavailable: %s", exc)
        options = None
    if options is not None and options.min_date and options.max_date:
        store.dispatch(SetDateBounds(DataBounds(options.min_date, options.max_date)))
    return {
        "client": client, "store": store, "map": deck_map,
        "controller": controller, "options": options,
        "selection": CrashSelection(deck_map), "picked": None,
    }


if "crashmap" not in st.session_state:
    st.session_state["crashmap"] = _start_session()
session = st.session_state["crashmap"]
store: FilterStore = session["store"]
client = session["client"]
deck_map: DeckMap = session["map"]
controller: ViewportQueryController = session["controller"]
selection: CrashSelection = session["selection"]
options = session["options"]


def _choice(label: str, values: list[str], current: str | None, **kwargs) -> str | None:
    """Selectbox with an "All" entry mapping to None."""
    opts = [ALL] + [v for v in values if v]
    if current and current not in opts:
        opts.append(current)
    picked = st.sidebar.selectbox(label, opts, index=opts.index(current) if current else 0, **kwargs)
    return None if picked == ALL else picked


@st.cache_data(ttl=3600)
def _counties(state: str | None) -> list[str]:
    return client.counties(state)


@st.cache_data(ttl=3600)
def _cities(state: str | None, county: str | None) -> list[str]:
    return client.cities(state, county)


def _lookup(fn, *args) -> list[str]:
    # Failed lookups are not cached; the next run tries again.
    try:
        return fn(*args)
    except QueryError as exc:
        logger.error("filter lookup failed: %s", exc)
        return []


# ── Sidebar filters ───────────────────────────────────────────────────
st.sidebar.header("Filters")

s = store.state
mode_opts = [ALL, *MODES]
mode = st.sidebar.radio("Mode", mode_opts, index=mode_opts.index(s.mode or ALL), horizontal=True)
if (None if mode == ALL else mode) != s.mode:
    store.dispatch(SetMode(None if mode == ALL else mode))

severity = st.sidebar.multiselect(
    "Severity", list(INJURY_BUCKETS), default=list(store.state.severity),
    help="Most severe injury in the crash",
)
if tuple(severity) != store.state.severity:
    store.dispatch(SetSeverity(tuple(severity)))
if st.sidebar.checkbox("Include no injury", value=store.state.include_no_injury) != store.state.include_no_injury:
    store.dispatch(ToggleNoInjury())

# Date
DATE_KINDS = ["Preset", "Year", "Range", "All dates"]
df = store.state.date_filter
kind_now = {PresetDate: "Preset", YearDate: "Year", RangeDate: "Range", NoDate: "All dates"}[type(df)]
kind = st.sidebar.radio("Date", DATE_KINDS, index=DATE_KINDS.index(kind_now), horizontal=True)
if kind == "Preset":
    current = df.preset if isinstance(df, PresetDate) else "ytd"
    preset = st.sidebar.selectbox(
        "Window", list(PRESETS), index=PRESETS.index(current), format_func=PRESET_LABELS.get,
    )
    if df != PresetDate(preset):
        store.dispatch(SetDatePreset(preset))
elif kind == "Year":
    years = list(options.years) if options and options.years else [dt.date.today().year]
    current = df.year if isinstance(df, YearDate) else years[0]
    # A deep-linked year outside the data stays selectable.
    if current not in years:
        years.append(current)
    year = st.sidebar.selectbox("Year", years, index=years.index(current))
    if df != YearDate(year):
        store.dispatch(SetDateYear(int(year)))
elif kind == "Range":
    if isinstance(df, RangeDate):
        start, end = dt.date.fromisoformat(df.start_date), dt.date.fromisoformat(df.end_date)
    else:
        end = dt.date.today()
        start = end - dt.timedelta(days=30)
    picked = st.sidebar.date_input("From / to", value=(start, end))
    if isinstance(picked, tuple) and len(picked) == 2:
        new = RangeDate(picked[0].isoformat(), picked[1].isoformat())
        if df != new:
            store.dispatch(SetDateRange(new.start_date, new.end_date))
elif not isinstance(df, NoDate):
    store.dispatch(ClearDate())

# Geography
st.sidebar.subheader("Location")
states = options.states if options else []
new_state = _choice("State", states, store.state.state)
if new_state != store.state.state:
    store.dispatch(SetState(new_state))
new_county = _choice("County", _lookup(_counties, store.state.state), store.state.county)
if new_county != store.state.county:
    store.dispatch(SetCounty(new_county))
new_city = _choice("City", _lookup(_cities, store.state.state, store.state.county), store.state.city)
if new_city != store.state.city:
    store.dispatch(SetCity(new_city))

movement = st.sidebar.checkbox(
    "Update with map movement", value=store.state.update_with_movement,
    help="Filter to the visible map area instead of state/county/city",
)
if movement != store.state.update_with_movement:
    store.dispatch(SetUpdateWithMovement(movement))

st.sidebar.subheader("Display")
satellite = st.sidebar.toggle("Satellite", value=store.state.satellite)
if satellite != store.state.satellite:
    store.dispatch(SetSatellite(satellite))
accessible = st.sidebar.toggle("Accessible colors", value=store.state.accessible_colors)
if accessible != store.state.accessible_colors:
    store.dispatch(SetAccessibleColors(accessible))

if st.sidebar.button("Reset filters"):
    store.dispatch(Reset())
    st.rerun()


# ── Viewport ───────────────────────────────────────────────────────────
with st.expander("Map view", expanded=store.state.update_with_movement):
    c1, c2, c3 = st.columns(3)
    lat = c1.number_input("Latitude", value=float(deck_map.latitude), format="%.4f")
    lng = c2.number_input("Longitude", value=float(deck_map.longitude), format="%.4f")
    zoom = c3.slider("Zoom", 3.0, 18.0, float(min(max(round(deck_map.zoom, 1), 3.0), 18.0)), step=0.1)
    moved = abs(lat - deck_map.latitude) > 1e-4 or abs(lng - deck_map.longitude) > 1e-4
    if moved or abs(zoom - deck_map.zoom) > 0.05:
        deck_map.jump_to(lng, lat, zoom)


# ── Summary ────────────────────────────────────────────────────────────
s = store.state
count = "-" if s.total_count is None else f"{s.total_count:,}"
labels = " · ".join(active_filter_labels(s))
st.markdown(f"**{count} crashes** &nbsp; {labels}")
if s.is_loading:
    st.caption("Loading…")
if not s.severity and not s.include_no_injury:
    st.caption("No severity selected: showing every injury level except no injury.")


# ── Map ────────────────────────────────────────────────────────────────
def _picked(event) -> dict | None:
    """The clicked crash from a pydeck selection event, if any."""
    objects = getattr(getattr(event, "selection", None), "objects", None) or {}
    for layer_id in reversed(list(objects)):
        if objects[layer_id]:
            return objects[layer_id][0]
    return None


displayed = controller.displayed
if displayed is None and isinstance(s.date_filter, NoDate):
    st.info("Choose a date filter to load crashes.")
event = st.pydeck_chart(
    pdk.Deck(
        layers=severity_layers(controller.features(), accessible=s.accessible_colors),
        initial_view_state=deck_map.view_state(),
        map_style="satellite" if s.satellite else "light",
        tooltip={"text": "{crashDate} {time}\n{injuryType}\n{mode}\n{city}, {county}"},
    ),
    on_select="rerun",
    selection_mode="single-object",
    key="crash-map",
)

# Only a change in the widget's selection moves the camera.
picked = _picked(event)
picked_id = picked.get("colliRptNum") if picked else None
if picked_id != session["picked"]:
    session["picked"] = picked_id
    if picked is None:
        selection.close()
    else:
        selection.select(picked)
    st.rerun()

if selection.crash is not None:
    crash = selection.crash
    with st.container(border=True):
        st.markdown(f"**{crash.get('injuryType') or 'Unknown injury'}** · {crash.get('mode') or ''}")
        st.caption(
            f"{crash.get('crashDate') or ''} {crash.get('time') or ''} · "
            f"{crash.get('city') or ''}, {crash.get('county') or ''} · report {crash.get('colliRptNum')}"
        )
        if st.button("Close"):
            selection.close()
            st.rerun()

if displayed is not None:
    shown = sum(1 for c in displayed.items if c.latitude is not None and c.longitude is not None)
    st.caption(f"Showing {shown:,} of {displayed.total_count:,} matching crashes")
