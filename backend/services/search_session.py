"""
Search screen orchestration.

Wires the shared search origin, the text field (autocomplete + text
search), the category buttons and the map into one session. The text field
and the category buttons each own their query lifecycle: a newer query on
one control supersedes older ones on that control only. Results issued
against an origin that has since been replaced are dropped.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Union

from domain.models import Coordinates, MapMarker, Place, SearchOrigin, SearchQuery, SearchRadius
from services.autocomplete import AutocompleteController
from services.category_search import CategoryAggregator
from services.location_resolver import LocationResolver, PermissionDenied
from services.map_renderer import MapRenderer, create_map_renderer, markers_for_places
from services.places_client import PlacesClient
from services.search_history import SearchHistory
from services.share_formatter import create_location_share, format_share_text
from settings import settings

logger = logging.getLogger(__name__)

TEXT_CONTROL = "text"
CATEGORY_CONTROL = "category"
DEVICE_ORIGIN_LABEL = "My Location"


def parse_radius(value: Union[int, float, SearchRadius]) -> SearchRadius:
    """Accept only the radii the UI offers."""
    try:
        if float(value) != int(value):
            raise ValueError(value)
        return SearchRadius(int(value))
    except (TypeError, ValueError):
        allowed = ", ".join(str(int(r)) for r in SearchRadius)
        raise ValueError(f"radius must be one of {allowed} meters, got {value!r}") from None


class SearchSession:
    def __init__(
        self,
        client: PlacesClient,
        resolver: Optional[LocationResolver] = None,
        renderer: Optional[MapRenderer] = None,
        aggregator: Optional[CategoryAggregator] = None,
        history: Optional[SearchHistory] = None,
        radius: Optional[int] = None,
        debounce_sec: Optional[float] = None,
    ):
        self.client = client
        self.resolver = resolver or LocationResolver()
        self.renderer = renderer or create_map_renderer()
        self.aggregator = aggregator or CategoryAggregator(client)
        self.history = history or SearchHistory()
        self.radius = parse_radius(radius if radius is not None else settings.DEFAULT_SEARCH_RADIUS_M)
        self.autocomplete = AutocompleteController(
            client,
            bias_provider=lambda: self.resolver.current_origin().coordinates,
            debounce_sec=debounce_sec,
        )

        self.results: List[Place] = []
        self.selected_id: Optional[str] = None
        self.active_category: Optional[str] = None
        self.events: List[MapMarker] = []
        self._control_seq: Dict[str, int] = {TEXT_CONTROL: 0, CATEGORY_CONTROL: 0}

        self.resolver.subscribe(self._on_origin_changed)
        self.renderer.on_marker_press(self._on_marker_press)
        self.refresh_map()

    # -- queries -----------------------------------------------------------

    def set_radius(self, radius: Union[int, SearchRadius]) -> SearchRadius:
        self.radius = parse_radius(radius)
        return self.radius

    def type_text(self, text: str) -> None:
        self.autocomplete.on_text_changed(text)

    async def search_text(self, text: str) -> Optional[List[Place]]:
        """
        Free-text search around the current origin.

        Returns the applied results, or None when they were superseded.
        ProviderError propagates so the caller can alert the user.
        """
        text = text.strip()
        self.history.add(text)
        origin = self.resolver.current_origin()
        sequence = self._next_sequence(TEXT_CONTROL)
        query = SearchQuery(
            radius_meters=int(self.radius),
            text=text or None,
            origin=origin.coordinates,
            limit=settings.PLACES_SEARCH_LIMIT,
        )
        places = await self.client.search(query)
        return self._apply_results(TEXT_CONTROL, sequence, origin, places)

    async def search_category(self, name: str) -> Optional[List[Place]]:
        origin = self.resolver.current_origin()
        sequence = self._next_sequence(CATEGORY_CONTROL)
        places = await self.aggregator.search_category(name, origin.coordinates, int(self.radius))
        applied = self._apply_results(CATEGORY_CONTROL, sequence, origin, places)
        if applied is not None:
            self.active_category = name
        return applied

    # -- selection and origin ---------------------------------------------

    def find_place(self, place_id: str) -> Optional[Place]:
        for place in self.results:
            if place.id == place_id:
                return place
        return None

    def select_place(self, place_id: Optional[str]) -> Optional[Place]:
        place = self.find_place(place_id) if place_id else None
        self.selected_id = place.id if place else None
        self.refresh_map()
        return place

    def use_place_as_origin(self, place_id: str) -> SearchOrigin:
        place = self.find_place(place_id)
        if place is None:
            raise KeyError(place_id)
        return self.resolver.set_manual_origin(place.coordinates, place.name)

    async def set_city(self, text: str) -> Optional[SearchOrigin]:
        """Geocode a city name and make it the search origin. None when nothing matches."""
        match = await self.client.geocode_city(text)
        if match is None:
            return None
        return self.resolver.set_manual_origin(match.coordinates, match.formatted_name)

    async def locate_device(self) -> Union[Coordinates, PermissionDenied]:
        result = await self.resolver.request_device_fix()
        # The user marker follows the device fix even when a manual origin shadows it.
        self.refresh_map()
        return result

    def record_device_fix(self, coordinates: Coordinates) -> SearchOrigin:
        """Fix reported by the client device outside `locate_device`."""
        self.resolver.record_device_fix(coordinates)
        self.refresh_map()
        return self.resolver.current_origin()

    def record_permission_denied(self) -> SearchOrigin:
        self.resolver.record_permission_denied()
        self.refresh_map()
        return self.resolver.current_origin()

    def set_events(self, events: Iterable[MapMarker]) -> None:
        self.events = list(events)
        self.refresh_map()

    # -- sharing -----------------------------------------------------------

    async def share_place(self, place_id: str) -> str:
        place = self.find_place(place_id)
        if place is None:
            raise KeyError(place_id)
        address = place.formatted_address or await self.client.reverse_geocode(place.coordinates)
        return format_share_text(create_location_share(place.coordinates, address=address, label=place.name))

    async def share_current_origin(self) -> str:
        origin = self.resolver.current_origin()
        address = await self.client.reverse_geocode(origin.coordinates)
        label = origin.label or DEVICE_ORIGIN_LABEL
        return format_share_text(create_location_share(origin.coordinates, address=address, label=label))

    # -- map ---------------------------------------------------------------

    def refresh_map(self) -> None:
        origin = self.resolver.current_origin()
        selected = self.find_place(self.selected_id) if self.selected_id else None
        center = selected.coordinates if selected else origin.coordinates
        markers = markers_for_places(
            self.results,
            selected_id=self.selected_id,
            user_location=self.resolver.device_fix,
            events=self.events,
        )
        with self.renderer.batch():
            self.renderer.set_center(center)
            self.renderer.render_markers(markers)

    def close(self) -> None:
        self.autocomplete.close()

    def _next_sequence(self, control: str) -> int:
        self._control_seq[control] += 1
        return self._control_seq[control]

    def _apply_results(
        self, control: str, sequence: int, origin: SearchOrigin, places: List[Place]
    ) -> Optional[List[Place]]:
        if sequence != self._control_seq[control]:
            logger.info("Dropping superseded %s search #%d", control, sequence)
            return None
        if not self.resolver.is_current(origin):
            logger.info("Dropping %s search #%d issued for replaced origin rev=%d", control, sequence, origin.revision)
            return None
        self.results = list(places)
        if self.selected_id is not None and self.find_place(self.selected_id) is None:
            self.selected_id = None
        self.refresh_map()
        return self.results

    def _on_origin_changed(self, origin: SearchOrigin) -> None:
        # Suggestions biased to the previous origin are stale.
        self.autocomplete.invalidate()
        self.refresh_map()

    def _on_marker_press(self, marker_id: str) -> None:
        if self.find_place(marker_id) is not None:
            self.select_place(marker_id)
