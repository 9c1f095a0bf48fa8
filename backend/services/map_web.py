"""
Web map adapter.

Renders through an embedded Leaflet tile map. The whole HTML document is
synthesized from a template whenever the center or the marker set changes;
there is no incremental update path, so every change costs a full reload of
the map surface on the client.
"""
import html
import json
import logging
from typing import Any, Dict, Iterable, Optional

from domain.models import Coordinates, MapMarker
from services.map_renderer import TIER_PRIORITY, TIER_STYLES, MapRenderer, dedupe_markers
from settings import settings

logger = logging.getLogger(__name__)

LEAFLET_VERSION = "1.9.4"
BRIDGE_MESSAGE_TYPE = "markerPress"


def leaflet_tile_url() -> str:
    """Tile URL template with Leaflet's {z}/{x}/{y} placeholders left in place."""
    return settings.MAP_TILE_URL_TEMPLATE.format(
        z="{z}", x="{x}", y="{y}", api_key=settings.GEOAPIFY_API_KEY or ""
    )


def _script_json(value: Any) -> str:
    """JSON that is safe to inline in a <script> block."""
    return json.dumps(value, sort_keys=True).replace("</", "<\\/")


def _marker_payload(marker: MapMarker) -> Dict[str, Any]:
    style = TIER_STYLES[marker.tier]
    return {
        "id": marker.id,
        "lat": marker.coordinates.latitude,
        "lng": marker.coordinates.longitude,
        "title": marker.label,
        "description": marker.description,
        "tier": marker.tier.value,
        "fill": style.fill,
        "outline": style.outline,
        "radius": style.radius,
        "zIndex": TIER_PRIORITY[marker.tier],
    }


class WebMapAdapter(MapRenderer):
    backend = "web"

    def __init__(self, center: Optional[Coordinates] = None, zoom: Optional[float] = None, title: str = "Venues"):
        super().__init__(center=center, zoom=zoom)
        self.title = title
        self.render_count = 0
        self.document = ""
        self._redraw()

    def set_center(self, coordinates: Coordinates, zoom: Optional[float] = None) -> None:
        if zoom is not None:
            self.zoom = float(zoom)
        self.center = coordinates
        self._changed()

    def render_markers(self, markers: Iterable[MapMarker]) -> None:
        self._marker_map = dedupe_markers(markers)
        self._changed()

    def handle_bridge_message(self, raw: str) -> bool:
        """Consume a message posted by the embedded map when a marker is clicked."""
        try:
            message = json.loads(raw)
        except ValueError:
            logger.debug("web map: ignoring non-JSON bridge message")
            return False
        if not isinstance(message, dict) or message.get("type") != BRIDGE_MESSAGE_TYPE:
            return False
        marker_id = message.get("id")
        if not isinstance(marker_id, str):
            return False
        return self.press_marker(marker_id)

    def _redraw(self) -> None:
        self.document = self._build_document()
        self.render_count += 1
        logger.debug("web map: document rebuilt (%d markers)", len(self._marker_map))

    def _build_document(self) -> str:
        view = {
            "lat": self.center.latitude,
            "lng": self.center.longitude,
            "zoom": self.zoom,
        }
        markers = [_marker_payload(m) for m in self.markers]
        return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{html.escape(self.title)}</title>
    <link rel="stylesheet" href="https://unpkg.com/leaflet@{LEAFLET_VERSION}/dist/leaflet.css">
    <script src="https://unpkg.com/leaflet@{LEAFLET_VERSION}/dist/leaflet.js"></script>
    <style>
      html, body, #map {{ width: 100%; height: 100%; margin: 0; }}
    </style>
  </head>
  <body>
    <div id="map"></div>
    <script>
      const view = {_script_json(view)};
      const markers = {_script_json(markers)};
      const map = L.map('map').setView([view.lat, view.lng], view.zoom);
      L.tileLayer({_script_json(leaflet_tile_url())}, {{
        maxZoom: 20,
        attribution: 'Powered by Geoapify | &copy; OpenStreetMap contributors'
      }}).addTo(map);

      function postPress(id) {{
        const message = JSON.stringify({{ type: {_script_json(BRIDGE_MESSAGE_TYPE)}, id: id }});
        if (window.ReactNativeWebView) {{
          window.ReactNativeWebView.postMessage(message);
        }} else if (window.parent) {{
          window.parent.postMessage(message, '*');
        }}
      }}

      // markers arrive bottom-to-top; circle markers stack in insertion order
      markers.forEach(function (m) {{
        const marker = L.circleMarker([m.lat, m.lng], {{
          radius: m.radius,
          color: m.outline,
          fillColor: m.fill,
          fillOpacity: 1,
          weight: 2
        }}).addTo(map);
        const label = document.createElement('span');
        label.textContent = m.description ? m.title + ' · ' + m.description : m.title;
        marker.bindTooltip(label);
        marker.on('click', function () {{ postPress(m.id); }});
      }});
    </script>
  </body>
</html>
"""
