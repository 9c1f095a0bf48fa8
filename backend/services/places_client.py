"""
Async Places client over the Geoapify places and geocoding HTTP API.

Every call is a single request/response mapping: no caching, no retries.
Timeouts come from the underlying httpx transport.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from domain.models import CityMatch, Coordinates, Place, SearchQuery
from services.geo import haversine_m
from settings import settings

logger = logging.getLogger(__name__)

SEARCH_PATH = "/v2/places"
AUTOCOMPLETE_PATH = "/v1/geocode/autocomplete"
REVERSE_PATH = "/v1/geocode/reverse"
GEOCODE_PATH = "/v1/geocode/search"

AUTOCOMPLETE_MAX_RESULTS = 10
DISPLAY_NAME_MAX_LEN = 60


class ProviderError(Exception):
    """The places provider answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _truncate(label: str) -> str:
    if len(label) > DISPLAY_NAME_MAX_LEN:
        return label[: DISPLAY_NAME_MAX_LEN - 3] + "…"
    return label


def coordinates_label(coordinates: Coordinates) -> str:
    """Raw coordinate text used whenever no address is available."""
    return f"{coordinates.latitude:.6f}, {coordinates.longitude:.6f}"


def format_place_display_name(props: Dict[str, Any]) -> str:
    """
    Produce a short, list-ready display name for a provider feature.

    Rules:
    - Prefer the provider 'name' (e.g. 'Bar Basso', 'Plastic').
    - If 'name' is missing, build something compact from the address parts:
      address_line1, then house number + street, then city.
    - Fall back to the first components of the formatted address.
    - Keep it relatively short (< 60 chars); truncate with '…' if necessary.
    """
    name = props.get("name")
    if isinstance(name, str) and name.strip():
        return _truncate(name.strip())

    line1 = props.get("address_line1")
    if isinstance(line1, str) and line1.strip():
        return _truncate(line1.strip())

    parts = []
    if props.get("street"):
        if props.get("housenumber"):
            parts.append(f"{props['street']} {props['housenumber']}")
        else:
            parts.append(str(props["street"]))
    if props.get("city"):
        parts.append(str(props["city"]))
    if parts:
        return _truncate(", ".join(parts))

    formatted = props.get("formatted") or ""
    if formatted:
        pieces = [p.strip() for p in formatted.split(",") if p.strip()]
        return _truncate(", ".join(pieces[:2]))

    lat, lon = props.get("lat"), props.get("lon")
    if lat is not None and lon is not None:
        return f"({float(lat):.4f}, {float(lon):.4f})"
    return "Unnamed"


def feature_to_place(feature: Dict[str, Any], origin: Optional[Coordinates] = None) -> Place:
    """Normalize one GeoJSON feature from the provider into a Place."""
    props = feature.get("properties") or {}
    coordinates = Coordinates(float(props.get("lat", 0.0)), float(props.get("lon", 0.0)))

    distance: Optional[float] = None
    if origin is not None:
        raw_distance = props.get("distance")
        distance = float(raw_distance) if raw_distance is not None else haversine_m(origin, coordinates)

    return Place(
        id=str(props.get("place_id", "")),
        name=format_place_display_name(props),
        formatted_address=props.get("formatted") or "",
        coordinates=coordinates,
        categories=frozenset(props.get("categories") or ()),
        distance_meters=distance,
        raw_name=props.get("name"),
        address_line1=props.get("address_line1"),
        address_line2=props.get("address_line2"),
        city=props.get("city"),
        country=props.get("country"),
    )


class PlacesClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEOAPIFY_API_KEY
        if not self.api_key:
            logger.warning("GEOAPIFY_API_KEY not set; provider requests will be rejected.")
        self.base_url = (base_url or settings.GEOAPIFY_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.PLACES_TIMEOUT_SEC,
            transport=transport,
        )

    async def __aenter__(self) -> "PlacesClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {k: v for k, v in params.items() if v is not None}
        query["apiKey"] = self.api_key or ""
        try:
            resp = await self._client.get(path, params=query)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Places request to {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise ProviderError(
                f"Places API error {resp.status_code} for {path}: {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(f"Places API returned invalid JSON for {path}") from exc

    async def search(self, query: SearchQuery) -> List[Place]:
        params: Dict[str, Any] = {
            "text": query.text or None,
            "filter": query.circle_filter(),
            "bias": query.proximity_bias(),
            "categories": ",".join(query.categories) if query.categories else None,
            "limit": str(query.limit),
        }
        data = await self._get(SEARCH_PATH, params)
        places = [feature_to_place(f, query.origin) for f in data.get("features") or []]
        logger.debug(
            "PlacesClient.search: text=%r categories=%s radius_m=%s got %d results",
            query.text,
            ",".join(query.categories),
            query.radius_meters,
            len(places),
        )
        return places

    async def autocomplete(self, text: str, bias: Optional[Coordinates] = None) -> List[Place]:
        params = {
            "text": text,
            "bias": f"proximity:{bias.lonlat()}" if bias is not None else None,
            "limit": str(min(settings.AUTOCOMPLETE_LIMIT, AUTOCOMPLETE_MAX_RESULTS)),
        }
        data = await self._get(AUTOCOMPLETE_PATH, params)
        return [feature_to_place(f) for f in data.get("features") or []]

    async def reverse_geocode(self, coordinates: Coordinates) -> str:
        """
        Best-effort address for a coordinate.

        Never raises: on provider failure or when nothing matches, returns the
        coordinates formatted to six decimals.
        """
        params = {"lat": str(coordinates.latitude), "lon": str(coordinates.longitude)}
        try:
            data = await self._get(REVERSE_PATH, params)
        except ProviderError as exc:
            logger.warning(
                "Reverse geocode failed for lat=%s lon=%s: %s",
                coordinates.latitude,
                coordinates.longitude,
                exc,
            )
            return coordinates_label(coordinates)

        features = data.get("features") or []
        if features:
            formatted = (features[0].get("properties") or {}).get("formatted")
            if formatted:
                return formatted
        return coordinates_label(coordinates)

    async def geocode_city(self, text: str) -> Optional[CityMatch]:
        """Resolve a city/place name to its best match, or None when nothing matches."""
        data = await self._get(GEOCODE_PATH, {"text": text, "type": "city", "limit": "1"})
        features = data.get("features") or []
        if not features:
            logger.info("No city match for %r", text)
            return None
        props = features[0].get("properties") or {}
        if props.get("lat") is None or props.get("lon") is None:
            return None
        return CityMatch(
            coordinates=Coordinates(float(props["lat"]), float(props["lon"])),
            formatted_name=props.get("formatted") or text,
        )


_default_places_client: Optional[PlacesClient] = None


def get_default_places_client() -> PlacesClient:
    global _default_places_client
    if _default_places_client is None:
        _default_places_client = PlacesClient()
    return _default_places_client
