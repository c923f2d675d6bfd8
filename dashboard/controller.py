"""Viewport-aware query controller for the crash map.

The controller watches a :class:`~dashboard.state.FilterStore` and a map,
works out the query variables, issues crash queries and decides what the map
should show and where the camera should go.

Responses may arrive in any order. Results are cached by a canonical key of
their request, and the map shows the result for the newest key, or the last
result it showed while that one is still pending. A late response for older
variables is cached but never displayed over fresher data.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Protocol

from cachetools import LRUCache

from api import config
from api.models import BBox, CrashesRequest, CrashFilter, CrashResult
from dashboard.client import QueryClient
from dashboard.state import (
    FilterState,
    FilterStore,
    NoDate,
    PresetDate,
    SetLoading,
    SetTotalCount,
    to_crash_filter,
)

logger = logging.getLogger("crashmap.controller")

# Drawn bottom to top.
SEVERITY_LAYER_IDS = ("crashes-none", "crashes-minor", "crashes-major", "crashes-death")

BBOX_MARGIN = 0.05
SINGLE_POINT_ZOOM = 13.0
FIT_PADDING = 60
FIT_MAX_ZOOM = 14.0
RESULT_CACHE_SIZE = 64

LngLat = tuple[float, float]
Handler = Callable[..., None]


class MapSurface(Protocol):
    """What the controller needs from the map engine."""

    def canvas_size(self) -> tuple[float, float]: ...

    def project(self, lnglat: LngLat) -> tuple[float, float]: ...

    def unproject(self, pixel: tuple[float, float]) -> LngLat: ...

    def fly_to(self, center: LngLat, zoom: float) -> None: ...

    def fit_bounds(self, bounds: tuple[LngLat, LngLat], padding: int, max_zoom: float) -> None: ...

    def on(self, event: str, handler: Handler, layer_id: str | None = None) -> None: ...

    def off(self, event: str, handler: Handler, layer_id: str | None = None) -> None: ...

    def set_cursor(self, cursor: str) -> None: ...


# ── Camera auto-fit ──────────────────────────────────────────────────

class CameraState(enum.Enum):
    IDLE = "idle"
    PENDING_ZOOM = "pending_zoom"
    ANIMATING = "animating"


@dataclass(frozen=True)
class CameraMove:
    center: LngLat | None = None
    zoom: float | None = None
    bounds: tuple[LngLat, LngLat] | None = None

    def apply(self, surface: MapSurface) -> None:
        if self.bounds is not None:
            surface.fit_bounds(self.bounds, padding=FIT_PADDING, max_zoom=FIT_MAX_ZOOM)
        else:
            surface.fly_to(self.center, self.zoom)


def camera_move_for(points: list[LngLat]) -> CameraMove:
    """Frame all points; a single point gets a fixed zoom instead."""
    if len(points) == 1:
        return CameraMove(center=points[0], zoom=SINGLE_POINT_ZOOM)
    lngs = [p[0] for p in points]
    lats = [p[1] for p in points]
    return CameraMove(bounds=((min(lngs), min(lats)), (max(lngs), max(lats))))


class CameraFit:
    """IDLE -> PENDING_ZOOM -> ANIMATING -> IDLE.

    A geography change arms the fit, the first fresh result with located
    crashes fires it once, and the end of the camera animation disarms it.
    """

    def __init__(self):
        self.state = CameraState.IDLE

    def geography_changed(self, follows_viewport: bool) -> None:
        self.state = CameraState.IDLE if follows_viewport else CameraState.PENDING_ZOOM

    def reset(self) -> None:
        self.state = CameraState.IDLE

    def data_ready(self, points: list[LngLat]) -> CameraMove | None:
        if self.state is not CameraState.PENDING_ZOOM or not points:
            return None
        self.state = CameraState.ANIMATING
        return camera_move_for(points)

    def animation_complete(self) -> None:
        if self.state is CameraState.ANIMATING:
            self.state = CameraState.IDLE


# ── Viewport ─────────────────────────────────────────────────────────

def viewport_bbox(surface: MapSurface, margin: float = BBOX_MARGIN) -> BBox:
    """Visible area from the canvas corners, grown by ``margin`` per side.

    Corners are unprojected directly; a bounds accessor can report an inset
    rectangle after a padded camera move.
    """
    width, height = surface.canvas_size()
    corners = [surface.unproject(px) for px in ((0, 0), (width, 0), (0, height), (width, height))]
    lngs = [c[0] for c in corners]
    lats = [c[1] for c in corners]
    lat_pad = (max(lats) - min(lats)) * margin
    lng_pad = (max(lngs) - min(lngs)) * margin
    return BBox(
        min_lat=min(lats) - lat_pad,
        min_lng=min(lngs) - lng_pad,
        max_lat=max(lats) + lat_pad,
        max_lng=max(lngs) + lng_pad,
    )


def located(result: CrashResult | None) -> list[LngLat]:
    if result is None:
        return []
    return [
        (c.longitude, c.latitude)
        for c in result.items
        if c.latitude is not None and c.longitude is not None
    ]


def _geography(s: FilterState) -> tuple[str | None, str | None, str | None]:
    return s.state, s.county, s.city


class ViewportQueryController:
    def __init__(
        self,
        store: FilterStore,
        surface: MapSurface,
        client: QueryClient,
        limit: int = config.MAP_LIMIT,
    ):
        self.store = store
        self.surface = surface
        self.client = client
        self.limit = limit
        self.camera = CameraFit()
        self.bbox: BBox | None = None

        self._cache: LRUCache = LRUCache(maxsize=RESULT_CACHE_SIZE)
        self._in_flight: set[str] = set()
        self._latest_key: str | None = None
        self._last_good: CrashResult | None = None
        self._last_geo: tuple | None = None
        self._following = False
        self._animating_listener = False
        self._unsubscribe: Callable[[], None] | None = None

    # ── lifecycle ──

    def attach(self) -> None:
        if self._unsubscribe is not None:
            return
        self._last_geo = _geography(self.store.state)
        self._unsubscribe = self.store.subscribe(self._on_state)
        for layer_id in SEVERITY_LAYER_IDS:
            self.surface.on("mouseenter", self._on_mouseenter, layer_id)
            self.surface.on("mouseleave", self._on_mouseleave, layer_id)
        self._on_state(self.store.state)

    def detach(self) -> None:
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        for layer_id in SEVERITY_LAYER_IDS:
            self.surface.off("mouseenter", self._on_mouseenter, layer_id)
            self.surface.off("mouseleave", self._on_mouseleave, layer_id)
        self._stop_following()
        if self._animating_listener:
            self.surface.off("moveend", self._on_animation_end)
            self._animating_listener = False

    # ── derived values ──

    def variables(self, s: FilterState | None = None) -> CrashFilter | None:
        """Query variables, or None when no query should run."""
        s = s or self.store.state
        if isinstance(s.date_filter, NoDate):
            return None
        if isinstance(s.date_filter, PresetDate) and s.data_bounds is None:
            return None
        return to_crash_filter(s, self.bbox if s.update_with_movement else None)

    @property
    def displayed(self) -> CrashResult | None:
        if self._latest_key is None:
            return None
        return self._cache.get(self._latest_key, self._last_good)

    @property
    def is_loading(self) -> bool:
        key = self._latest_key
        return key is not None and key not in self._cache and key in self._in_flight

    def features(self) -> dict:
        """GeoJSON FeatureCollection for the displayed crashes."""
        result = self.displayed
        items = result.items if result is not None else []
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "geometry": {"type": "Point", "coordinates": [c.longitude, c.latitude]},
                    "properties": c.model_dump(
                        by_alias=True, exclude={"latitude", "longitude"},
                    ),
                }
                for c in items
                if c.latitude is not None and c.longitude is not None
            ],
        }

    # ── store reactions ──

    def _on_state(self, s: FilterState) -> None:
        if s.update_with_movement and not self._following:
            self._start_following()
        elif not s.update_with_movement and self._following:
            self._stop_following()

        geo = _geography(s)
        if geo != self._last_geo:
            self._last_geo = geo
            self.camera.geography_changed(s.update_with_movement)
        elif s.update_with_movement:
            self.camera.reset()

        self.refresh()

    def refresh(self) -> None:
        variables = self.variables()
        if variables is None:
            self._clear()
            return
        request = CrashesRequest(filter=variables, limit=self.limit)
        key = request.model_dump_json(by_alias=True, exclude_none=True)
        if key == self._latest_key:
            return
        self._latest_key = key
        if key in self._cache:
            self._show(key)
            return
        self.store.dispatch(SetLoading(True))
        if key in self._in_flight:
            return
        self._in_flight.add(key)
        logger.debug("query %s", key)
        self.client.submit(request, partial(self._on_result, key), partial(self._on_error, key))

    def _clear(self) -> None:
        # No date constraint or unresolved preset: show nothing rather than stale data.
        self._latest_key = None
        self._last_good = None
        self.store.dispatch(SetLoading(False))
        self.store.dispatch(SetTotalCount(None))

    def _on_result(self, key: str, result: CrashResult) -> None:
        self._in_flight.discard(key)
        self._cache[key] = result
        if key != self._latest_key:
            logger.debug("superseded response cached, not shown")
            return
        self._show(key)

    def _on_error(self, key: str, exc: Exception) -> None:
        self._in_flight.discard(key)
        logger.error("crash query failed: %s", exc)
        if key == self._latest_key:
            self.store.dispatch(SetLoading(False))

    def _show(self, key: str) -> None:
        result = self._cache[key]
        self._last_good = result
        move = self.camera.data_ready(located(result))
        if move is not None:
            if not self._animating_listener:
                self.surface.on("moveend", self._on_animation_end)
                self._animating_listener = True
            move.apply(self.surface)
        self.store.dispatch(SetLoading(False))
        self.store.dispatch(SetTotalCount(result.total_count))

    # ── map events ──

    def _start_following(self) -> None:
        self._following = True
        self.camera.reset()
        self.surface.on("moveend", self._on_moveend)
        self.bbox = viewport_bbox(self.surface)

    def _stop_following(self) -> None:
        if not self._following:
            return
        self.surface.off("moveend", self._on_moveend)
        self._following = False
        self.bbox = None

    def _on_moveend(self, *_event) -> None:
        self.bbox = viewport_bbox(self.surface)
        self.refresh()

    def _on_animation_end(self, *_event) -> None:
        self.surface.off("moveend", self._on_animation_end)
        self._animating_listener = False
        self.camera.animation_complete()

    def _on_mouseenter(self, *_event) -> None:
        self.surface.set_cursor("pointer")

    def _on_mouseleave(self, *_event) -> None:
        self.surface.set_cursor("")
