"""
Native map adapter.

Keeps a live camera region and a marker layer that is mutated in place:
each `render_markers` call computes a diff against the current layer and
applies only the added, removed and changed markers. Snapshots are
rasterized with Pillow, optionally over provider raster tiles.
"""
import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from typing import Iterable, Optional, Tuple

import requests
from PIL import Image, ImageDraw

from domain.models import Coordinates, MapMarker
from services.geo import TILE_SIZE_PX, latlon_to_world_px, span_for_zoom
from services.map_renderer import TIER_STYLES, MapRenderer, dedupe_markers
from settings import settings

logger = logging.getLogger(__name__)

BACKGROUND_COLOR = (233, 229, 220, 255)
MARKER_OUTLINE_WIDTH = 2
_TILE_SESSION = requests.Session()
MAP_TILE_HEADERS = {"User-Agent": settings.MAP_TILE_USER_AGENT}


@dataclass(frozen=True)
class CameraRegion:
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


@dataclass(frozen=True)
class MarkerDiff:
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()
    updated: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.updated)


def _region_for(center: Coordinates, zoom: float) -> CameraRegion:
    lon_delta = span_for_zoom(zoom)
    lat_delta = lon_delta * math.cos(math.radians(center.latitude))
    return CameraRegion(center.latitude, center.longitude, lat_delta, lon_delta)


def _fetch_tile_http(z: int, x: int, y: int) -> Optional[Image.Image]:
    """
    Fetch a single raster tile via HTTP.
    Returns a PIL Image or None on error.
    """
    url = settings.tile_url(z, x, y)
    try:
        resp = _TILE_SESSION.get(url, headers=MAP_TILE_HEADERS, timeout=settings.MAP_TILE_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Tile fetch failed for %s/%s/%s: %s", z, x, y, exc)
        return None

    try:
        return Image.open(BytesIO(resp.content)).convert("RGB")
    except Exception as exc:
        logger.warning("Tile decode failed for %s/%s/%s: %s", z, x, y, exc)
        return None


@lru_cache(maxsize=512)
def _fetch_tile_cached(z: int, x: int, y: int) -> Optional[Image.Image]:
    """In-process cached tile fetch."""
    return _fetch_tile_http(z, x, y)


class NativeMapAdapter(MapRenderer):
    backend = "native"

    def __init__(self, center: Optional[Coordinates] = None, zoom: Optional[float] = None):
        super().__init__(center=center, zoom=zoom)
        self.region = _region_for(self.center, self.zoom)
        self.last_diff = MarkerDiff()

    def set_center(self, coordinates: Coordinates, zoom: Optional[float] = None) -> None:
        if zoom is not None:
            self.zoom = float(zoom)
        self.center = coordinates
        self.region = _region_for(coordinates, self.zoom)
        self._changed()

    def render_markers(self, markers: Iterable[MapMarker]) -> MarkerDiff:
        incoming = dedupe_markers(markers)
        current = self._marker_map

        removed = tuple(mid for mid in current if mid not in incoming)
        added = tuple(mid for mid in incoming if mid not in current)
        updated = tuple(mid for mid in incoming if mid in current and current[mid] != incoming[mid])

        for mid in removed:
            del current[mid]
        for mid in added + updated:
            current[mid] = incoming[mid]
        # Same relative order as the caller's list so both backends stack ties alike.
        self._marker_map = {mid: current[mid] for mid in incoming}

        self.last_diff = MarkerDiff(added=added, removed=removed, updated=updated)
        logger.debug(
            "native map: +%d -%d ~%d markers", len(added), len(removed), len(updated)
        )
        if not self.last_diff.is_empty:
            self._changed()
        return self.last_diff

    def project(self, coordinates: Coordinates, width: int, height: int) -> Tuple[float, float]:
        """Canvas pixel position of a coordinate for the current camera."""
        cx, cy = latlon_to_world_px(self.center.latitude, self.center.longitude, self.zoom)
        px, py = latlon_to_world_px(coordinates.latitude, coordinates.longitude, self.zoom)
        return (px - cx + width / 2.0, py - cy + height / 2.0)

    def marker_at_point(self, x: float, y: float, width: int, height: int) -> Optional[str]:
        """Topmost marker under a canvas point, honoring tier order."""
        for marker in reversed(self.markers):
            mx, my = self.project(marker.coordinates, width, height)
            radius = TIER_STYLES[marker.tier].radius
            if (mx - x) ** 2 + (my - y) ** 2 <= radius ** 2:
                return marker.id
        return None

    def press_at_point(self, x: float, y: float, width: int, height: int) -> Optional[str]:
        marker_id = self.marker_at_point(x, y, width, height)
        if marker_id is not None:
            self.press_marker(marker_id)
        return marker_id

    def render_snapshot(self, width: int = 800, height: int = 600) -> Image.Image:
        img = Image.new("RGBA", (width, height), BACKGROUND_COLOR)
        if settings.MAP_TILES_ENABLED:
            self._draw_tiles(img)

        draw = ImageDraw.Draw(img)
        for marker in self.markers:
            style = TIER_STYLES[marker.tier]
            x, y = self.project(marker.coordinates, width, height)
            r = style.radius
            draw.ellipse(
                (x - r, y - r, x + r, y + r),
                fill=style.fill,
                outline=style.outline,
                width=MARKER_OUTLINE_WIDTH,
            )
        return img

    def snapshot_png(self, width: int = 800, height: int = 600) -> bytes:
        buf = BytesIO()
        self.render_snapshot(width, height).save(buf, format="PNG")
        return buf.getvalue()

    def _draw_tiles(self, img: Image.Image) -> bool:
        """Paste raster tiles under the markers. Returns True if any tile was drawn."""
        z = max(0, int(round(self.zoom)))
        n = 2 ** z
        cx, cy = latlon_to_world_px(self.center.latitude, self.center.longitude, z)
        left = cx - img.width / 2.0
        top = cy - img.height / 2.0

        x_min = int(math.floor(left / TILE_SIZE_PX))
        x_max = int(math.floor((left + img.width) / TILE_SIZE_PX))
        y_min = max(0, int(math.floor(top / TILE_SIZE_PX)))
        y_max = min(n - 1, int(math.floor((top + img.height) / TILE_SIZE_PX)))

        any_tile = False
        for ty in range(y_min, y_max + 1):
            for tx in range(x_min, x_max + 1):
                tile = _fetch_tile_cached(z, tx % n, ty)
                if tile is None:
                    continue
                any_tile = True
                img.paste(tile, (int(tx * TILE_SIZE_PX - left), int(ty * TILE_SIZE_PX - top)))
        return any_tile
