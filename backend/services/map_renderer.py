"""
Map renderer capability interface shared by the native and web backends.

Both backends consume the same MapMarker shape and draw overlapping markers
in the same tier order. They differ in update cost: the native backend
mutates its marker layer incrementally, the web backend rebuilds its whole
document on every change. Callers should wrap related updates in `batch()`.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from domain.models import Coordinates, MapMarker, MarkerTier, Place
from settings import settings

logger = logging.getLogger(__name__)

MarkerPressHandler = Callable[[str], None]

USER_LOCATION_MARKER_ID = "user-location"

# Higher priority draws later, i.e. on top.
TIER_PRIORITY: Dict[MarkerTier, int] = {
    MarkerTier.EVENT: 0,
    MarkerTier.SEARCH_RESULT: 1,
    MarkerTier.SELECTED: 2,
    MarkerTier.USER_LOCATION: 3,
}


@dataclass(frozen=True)
class MarkerStyle:
    fill: str
    outline: str
    radius: int


TIER_STYLES: Dict[MarkerTier, MarkerStyle] = {
    MarkerTier.EVENT: MarkerStyle(fill="#FB8C00", outline="#FFFFFF", radius=6),
    MarkerTier.SEARCH_RESULT: MarkerStyle(fill="#8E24AA", outline="#FFFFFF", radius=7),
    MarkerTier.SELECTED: MarkerStyle(fill="#E53935", outline="#FFFFFF", radius=10),
    MarkerTier.USER_LOCATION: MarkerStyle(fill="#1E88E5", outline="#FFFFFF", radius=8),
}


def draw_order(markers: Iterable[MapMarker]) -> List[MapMarker]:
    """Bottom-to-top drawing order. Stable within a tier."""
    return sorted(markers, key=lambda m: TIER_PRIORITY[m.tier])


def dedupe_markers(markers: Iterable[MapMarker]) -> Dict[str, MapMarker]:
    """One marker per id; on collision the higher tier wins."""
    by_id: Dict[str, MapMarker] = {}
    for marker in markers:
        existing = by_id.get(marker.id)
        if existing is None or TIER_PRIORITY[marker.tier] > TIER_PRIORITY[existing.tier]:
            by_id[marker.id] = marker
    return by_id


def markers_for_places(
    places: Sequence[Place],
    selected_id: Optional[str] = None,
    user_location: Optional[Coordinates] = None,
    events: Sequence[MapMarker] = (),
) -> List[MapMarker]:
    """Build the marker set for a result list, the selection and the user position."""
    markers: List[MapMarker] = []
    for event in events:
        markers.append(MapMarker(event.id, event.coordinates, event.label, MarkerTier.EVENT, event.description))
    for place in places:
        tier = MarkerTier.SELECTED if place.id == selected_id else MarkerTier.SEARCH_RESULT
        markers.append(
            MapMarker(
                id=place.id,
                coordinates=place.coordinates,
                label=place.name,
                tier=tier,
                description=place.formatted_address or None,
            )
        )
    if user_location is not None:
        markers.append(
            MapMarker(USER_LOCATION_MARKER_ID, user_location, "You are here", MarkerTier.USER_LOCATION)
        )
    return markers


class MapRenderer(ABC):
    backend: str = ""

    def __init__(self, center: Optional[Coordinates] = None, zoom: Optional[float] = None):
        self.center = center or Coordinates(settings.DEFAULT_ORIGIN_LAT, settings.DEFAULT_ORIGIN_LON)
        self.zoom = zoom if zoom is not None else float(settings.MAP_DEFAULT_ZOOM)
        self._marker_map: Dict[str, MapMarker] = {}
        self._press_handlers: List[MarkerPressHandler] = []
        self._batch_depth = 0
        self._dirty = False

    @abstractmethod
    def set_center(self, coordinates: Coordinates, zoom: Optional[float] = None) -> None:
        ...

    @abstractmethod
    def render_markers(self, markers: Iterable[MapMarker]) -> None:
        ...

    def _redraw(self) -> None:
        """Backend hook run once per settled change."""

    @property
    def markers(self) -> List[MapMarker]:
        return draw_order(self._marker_map.values())

    def get_marker(self, marker_id: str) -> Optional[MapMarker]:
        return self._marker_map.get(marker_id)

    def on_marker_press(self, handler: MarkerPressHandler) -> None:
        self._press_handlers.append(handler)

    def press_marker(self, marker_id: str) -> bool:
        """Dispatch a press to the registered handlers. Unknown ids are ignored."""
        if marker_id not in self._marker_map:
            logger.debug("%s map: press on unknown marker %s", self.backend, marker_id)
            return False
        for handler in list(self._press_handlers):
            handler(marker_id)
        return True

    @contextmanager
    def batch(self) -> Iterator["MapRenderer"]:
        """Coalesce center/marker updates into a single redraw."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._redraw()

    def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self._dirty = False
        self._redraw()


def create_map_renderer(backend: Optional[str] = None, **kwargs) -> MapRenderer:
    """Pick the map backend for this platform build."""
    name = (backend or settings.MAP_BACKEND).lower()
    if name == "native":
        from services.map_native import NativeMapAdapter

        return NativeMapAdapter(**kwargs)
    if name == "web":
        from services.map_web import WebMapAdapter

        return WebMapAdapter(**kwargs)
    raise ValueError(f"Unknown map backend: {name}")
