"""pydeck map surface and severity layers for the Streamlit dashboard."""

from __future__ import annotations

import logging
import math
from collections import defaultdict

import pandas as pd
import pydeck as pdk

from dashboard.controller import SEVERITY_LAYER_IDS, Handler, LngLat

logger = logging.getLogger("crashmap.map")

TILE_SIZE = 512  # deck.gl world size at zoom 0
DEFAULT_VIEW = {"longitude": -122.336, "latitude": 47.6062, "zoom": 10.5}
SELECT_ZOOM = 15.5

STANDARD_COLORS = {
    "None": "#C5E1A5",
    "Minor Injury": "#FDD835",
    "Major Injury": "#F57C00",
    "Death": "#B71C1C",
}

# Paul Tol Muted: distinguishable under all common color vision deficiencies.
ACCESSIBLE_COLORS = {
    "None": "#44AA99",
    "Minor Injury": "#DDCC77",
    "Major Injury": "#CC6677",
    "Death": "#332288",
}

# layer id, bucket, opacity, radius in pixels at zoom 10
SEVERITY_STYLES = (
    (SEVERITY_LAYER_IDS[0], "None", 0.5, 5),
    (SEVERITY_LAYER_IDS[1], "Minor Injury", 0.55, 6),
    (SEVERITY_LAYER_IDS[2], "Major Injury", 0.7, 7),
    (SEVERITY_LAYER_IDS[3], "Death", 0.85, 8),
)


def _rgba(hex_color: str, opacity: float) -> list[int]:
    h = hex_color.lstrip("#")
    return [int(h[i:i + 2], 16) for i in (0, 2, 4)] + [round(opacity * 255)]


def _world_xy(lng: float, lat: float) -> tuple[float, float]:
    """Web Mercator position at zoom 0, in pixels."""
    lat = max(min(lat, 85.051129), -85.051129)
    x = (lng + 180) / 360 * TILE_SIZE
    y = (1 - math.log(math.tan(math.pi / 4 + math.radians(lat) / 2)) / math.pi) / 2 * TILE_SIZE
    return x, y


def _world_lnglat(x: float, y: float) -> LngLat:
    lng = x / TILE_SIZE * 360 - 180
    lat = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y / TILE_SIZE))))
    return lng, lat


class DeckMap:
    """Map surface backed by a pydeck view state.

    The deck is redrawn from scratch on every Streamlit run, so camera
    commands take effect immediately and emit ``moveend`` right away.
    """

    def __init__(self, width: float = 1200, height: float = 700, **view):
        view = {**DEFAULT_VIEW, **view}
        self.width = width
        self.height = height
        self.longitude = view["longitude"]
        self.latitude = view["latitude"]
        self.zoom = view["zoom"]
        self.cursor = ""
        self._handlers: dict[tuple[str, str | None], list[Handler]] = defaultdict(list)

    # ── events ──

    def on(self, event: str, handler: Handler, layer_id: str | None = None) -> None:
        self._handlers[(event, layer_id)].append(handler)

    def off(self, event: str, handler: Handler, layer_id: str | None = None) -> None:
        handlers = self._handlers.get((event, layer_id), [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, layer_id: str | None = None) -> None:
        for handler in list(self._handlers.get((event, layer_id), [])):
            handler(event)

    def listener_count(self, event: str, layer_id: str | None = None) -> int:
        return len(self._handlers.get((event, layer_id), []))

    # ── geometry ──

    def canvas_size(self) -> tuple[float, float]:
        return self.width, self.height

    def _scale(self) -> float:
        return 2 ** self.zoom

    def project(self, lnglat: LngLat) -> tuple[float, float]:
        cx, cy = _world_xy(self.longitude, self.latitude)
        x, y = _world_xy(*lnglat)
        s = self._scale()
        return (x - cx) * s + self.width / 2, (y - cy) * s + self.height / 2

    def unproject(self, pixel: tuple[float, float]) -> LngLat:
        cx, cy = _world_xy(self.longitude, self.latitude)
        s = self._scale()
        return _world_lnglat(cx + (pixel[0] - self.width / 2) / s, cy + (pixel[1] - self.height / 2) / s)

    # ── camera ──

    def jump_to(self, longitude: float, latitude: float, zoom: float) -> None:
        """User-driven view change (e.g. restored from the previous run)."""
        self.longitude, self.latitude, self.zoom = longitude, latitude, zoom
        self.emit("moveend")

    def fly_to(self, center: LngLat, zoom: float) -> None:
        logger.debug("fly_to %s z=%.2f", center, zoom)
        self.jump_to(center[0], center[1], zoom)

    def fit_bounds(self, bounds: tuple[LngLat, LngLat], padding: int, max_zoom: float) -> None:
        (west, south), (east, north) = bounds
        x0, y0 = _world_xy(west, north)
        x1, y1 = _world_xy(east, south)
        dx, dy = abs(x1 - x0), abs(y1 - y0)
        room_w = max(self.width - 2 * padding, 1)
        room_h = max(self.height - 2 * padding, 1)
        if dx == 0 and dy == 0:
            zoom = max_zoom
        else:
            fits = [room / span for room, span in ((room_w, dx), (room_h, dy)) if span > 0]
            zoom = min(math.log2(min(fits)), max_zoom)
        lng, lat = _world_lnglat((x0 + x1) / 2, (y0 + y1) / 2)
        logger.debug("fit_bounds %s z=%.2f", bounds, zoom)
        self.jump_to(lng, lat, zoom)

    def set_cursor(self, cursor: str) -> None:
        self.cursor = cursor

    def view_state(self) -> pdk.ViewState:
        return pdk.ViewState(longitude=self.longitude, latitude=self.latitude, zoom=self.zoom, pitch=0)


class CrashSelection:
    """The crash picked on the map, and the view to return to on close.

    The view is saved on the first pick only, so moving from one crash to
    another still returns to where the user started.
    """

    def __init__(self, surface: DeckMap):
        self.surface = surface
        self.crash: dict | None = None
        self._saved: tuple[float, float, float] | None = None

    def select(self, crash: dict) -> None:
        if crash.get("longitude") is None or crash.get("latitude") is None:
            return
        if self._saved is None:
            self._saved = (self.surface.longitude, self.surface.latitude, self.surface.zoom)
        self.crash = crash
        self.surface.fly_to((crash["longitude"], crash["latitude"]), SELECT_ZOOM)

    def close(self) -> None:
        self.crash = None
        if self._saved is not None:
            saved, self._saved = self._saved, None
            self.surface.jump_to(*saved)


def crash_frame(features: dict) -> pd.DataFrame:
    """Flatten a crash FeatureCollection into one row per point."""
    rows = [
        {**f["properties"], "longitude": f["geometry"]["coordinates"][0],
         "latitude": f["geometry"]["coordinates"][1]}
        for f in features.get("features", [])
    ]
    return pd.DataFrame(rows, columns=list(rows[0]) if rows else ["latitude", "longitude", "severity"])


def severity_layers(features: dict, accessible: bool = False) -> list[pdk.Layer]:
    """One scatterplot layer per severity bucket, least severe first."""
    df = crash_frame(features)
    colors = ACCESSIBLE_COLORS if accessible else STANDARD_COLORS
    layers = []
    for layer_id, bucket, opacity, radius in SEVERITY_STYLES:
        layers.append(pdk.Layer(
            "ScatterplotLayer",
            id=layer_id,
            data=df[df["severity"] == bucket],
            get_position=["longitude", "latitude"],
            get_fill_color=_rgba(colors[bucket], opacity),
            get_radius=radius,
            radius_units="pixels",
            pickable=True,
        ))
    return layers
