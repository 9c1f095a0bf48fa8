"""Small geodesy helpers shared by the places client and the map renderers.

Everything here is pure math on WGS84 decimal degrees; no network access.
"""

from __future__ import annotations

import math
from typing import Tuple

from domain.models import Coordinates

EARTH_RADIUS_M = 6371000.0
TILE_SIZE_PX = 256
# Web Mercator cannot represent the poles.
MAX_MERCATOR_LAT = 85.05112878


def haversine_m(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in meters between two points."""
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def latlon_to_tile_xy(lat: float, lon: float, zoom: float) -> Tuple[float, float]:
    """Convert lat/lon to fractional Web Mercator tile coords."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    lat_rad = math.radians(lat)
    n = 2.0 ** zoom
    x = (lon + 180.0) / 360.0 * n
    y = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n
    return x, y


def latlon_to_world_px(lat: float, lon: float, zoom: float) -> Tuple[float, float]:
    """Absolute Web Mercator pixel position at the given zoom."""
    x, y = latlon_to_tile_xy(lat, lon, zoom)
    return x * TILE_SIZE_PX, y * TILE_SIZE_PX


def span_for_zoom(zoom: float) -> float:
    """Longitude span in degrees covered by one tile at `zoom`.

    Used as the camera's longitude delta; zoom 0 shows the whole world.
    """
    return 360.0 / (2.0 ** zoom)
