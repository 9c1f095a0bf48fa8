"""
Place search API routes.

Thin HTTP surface over one process-wide SearchSession.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, Field

from domain.models import Coordinates, Place, SearchOrigin
from services.category_search import UnknownCategoryError, get_category, list_categories
from services.map_native import NativeMapAdapter
from services.map_web import WebMapAdapter
from services.places_client import ProviderError, get_default_places_client
from services.search_session import SearchSession, parse_radius
from settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_SNAPSHOT_PX = 4096

_session: Optional[SearchSession] = None


def get_search_session() -> SearchSession:
    global _session
    if _session is None:
        _session = SearchSession(get_default_places_client())
    return _session


class PlaceResponse(BaseModel):
    id: str
    name: str
    formatted_address: str
    lat: float
    lon: float
    categories: List[str]
    distance_meters: Optional[float] = None


class OriginResponse(BaseModel):
    source: str
    lat: float
    lon: float
    label: Optional[str] = None
    revision: int


class SearchResponse(BaseModel):
    origin: OriginResponse
    radius_meters: int
    applied: bool
    results: List[PlaceResponse]


class CategoryResponse(BaseModel):
    name: str
    tags: List[str]
    requests: int


class CoordinatesBody(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    label: Optional[str] = None


class CityBody(BaseModel):
    text: str


class MarkerPressBody(BaseModel):
    marker_id: str


class ShareBody(BaseModel):
    place_id: Optional[str] = None


def place_to_response(place: Place) -> PlaceResponse:
    return PlaceResponse(
        id=place.id,
        name=place.name,
        formatted_address=place.formatted_address,
        lat=place.coordinates.latitude,
        lon=place.coordinates.longitude,
        categories=sorted(place.categories),
        distance_meters=place.distance_meters,
    )


def origin_to_response(origin: SearchOrigin) -> OriginResponse:
    return OriginResponse(
        source=origin.source.value,
        lat=origin.coordinates.latitude,
        lon=origin.coordinates.longitude,
        label=origin.label,
        revision=origin.revision,
    )


def _apply_radius(session: SearchSession, radius: Optional[int]) -> None:
    if radius is None:
        return
    try:
        session.set_radius(radius)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _search_response(session: SearchSession, applied: Optional[List[Place]]) -> SearchResponse:
    return SearchResponse(
        origin=origin_to_response(session.resolver.current_origin()),
        radius_meters=int(session.radius),
        applied=applied is not None,
        results=[place_to_response(p) for p in session.results],
    )


@router.get("/places/search", response_model=SearchResponse)
async def search_places(text: str, radius: Optional[int] = None):
    """Free-text search around the current search origin."""
    session = get_search_session()
    _apply_radius(session, radius)
    try:
        applied = await session.search_text(text)
    except ProviderError as exc:
        logger.warning("Text search failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))
    return _search_response(session, applied)


@router.get("/places/categories", response_model=List[CategoryResponse])
async def get_categories():
    return [
        CategoryResponse(name=g.label, tags=list(g.tags), requests=len(g.tag_groups))
        for g in list_categories()
    ]


@router.get("/places/categories/{name}", response_model=SearchResponse)
async def search_category(name: str, radius: Optional[int] = None):
    session = get_search_session()
    try:
        get_category(name)
    except UnknownCategoryError:
        raise HTTPException(status_code=404, detail=f"Unknown category: {name}")
    _apply_radius(session, radius)
    try:
        applied = await session.search_category(name)
    except ProviderError as exc:
        logger.warning("Category search %s failed: %s", name, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    return _search_response(session, applied)


@router.get("/places/autocomplete", response_model=List[PlaceResponse])
async def autocomplete(text: str):
    """
    One-shot suggestions for API clients; debouncing is the caller's job here.
    Failures yield an empty list.
    """
    session = get_search_session()
    if len(text.strip()) <= settings.AUTOCOMPLETE_MIN_CHARS:
        return []
    bias = session.resolver.current_origin().coordinates
    try:
        places = await session.client.autocomplete(text, bias=bias)
    except ProviderError as exc:
        logger.info("Autocomplete failed: %s", exc)
        return []
    return [place_to_response(p) for p in places]


@router.get("/places/suggestions")
async def search_suggestions(q: str = ""):
    session = get_search_session()
    return [{"text": s.text, "kind": s.kind} for s in session.history.suggestions(q)]


@router.get("/places/reverse")
async def reverse_geocode(lat: float, lon: float):
    session = get_search_session()
    address = await session.client.reverse_geocode(Coordinates(lat, lon))
    return {"address": address}


@router.get("/places/geocode-city")
async def geocode_city(text: str):
    session = get_search_session()
    try:
        match = await session.client.geocode_city(text)
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    if match is None:
        raise HTTPException(status_code=404, detail=f"No match for {text!r}")
    return {
        "lat": match.coordinates.latitude,
        "lon": match.coordinates.longitude,
        "formatted": match.formatted_name,
    }


@router.post("/places/{place_id}/select", response_model=PlaceResponse)
async def select_place(place_id: str):
    session = get_search_session()
    place = session.select_place(place_id)
    if place is None:
        raise HTTPException(status_code=404, detail="Place not in current results")
    return place_to_response(place)


@router.post("/places/{place_id}/use-as-origin", response_model=OriginResponse)
async def use_place_as_origin(place_id: str):
    session = get_search_session()
    try:
        origin = session.use_place_as_origin(place_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Place not in current results")
    return origin_to_response(origin)


@router.get("/location/origin", response_model=OriginResponse)
async def get_origin():
    return origin_to_response(get_search_session().resolver.current_origin())


@router.put("/location/origin", response_model=OriginResponse)
async def set_origin(body: CoordinatesBody):
    session = get_search_session()
    origin = session.resolver.set_manual_origin(Coordinates(body.lat, body.lon), body.label)
    return origin_to_response(origin)


@router.delete("/location/origin", response_model=OriginResponse)
async def clear_origin():
    return origin_to_response(get_search_session().resolver.clear_manual_origin())


@router.put("/location/city", response_model=OriginResponse)
async def set_city(body: CityBody):
    session = get_search_session()
    try:
        origin = await session.set_city(body.text)
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    if origin is None:
        raise HTTPException(status_code=404, detail=f"No match for {body.text!r}")
    return origin_to_response(origin)


@router.post("/location/device", response_model=OriginResponse)
async def report_device_fix(body: CoordinatesBody):
    """Record a fix reported by the client device."""
    session = get_search_session()
    return origin_to_response(session.record_device_fix(Coordinates(body.lat, body.lon)))


@router.post("/location/device/denied", response_model=OriginResponse)
async def report_permission_denied():
    """The client refused location access: drop the device fix."""
    session = get_search_session()
    return origin_to_response(session.record_permission_denied())


@router.get("/map")
async def get_map(
    width: int = Query(800, gt=0, le=MAX_SNAPSHOT_PX),
    height: int = Query(600, gt=0, le=MAX_SNAPSHOT_PX),
):
    """Current map surface: an HTML document (web) or a PNG snapshot (native)."""
    renderer = get_search_session().renderer
    if isinstance(renderer, WebMapAdapter):
        return HTMLResponse(renderer.document)
    if isinstance(renderer, NativeMapAdapter):
        return Response(renderer.snapshot_png(width, height), media_type="image/png")
    raise HTTPException(status_code=500, detail=f"Unsupported map backend {renderer.backend}")


@router.post("/map/press")
async def press_marker(body: MarkerPressBody):
    session = get_search_session()
    if not session.renderer.press_marker(body.marker_id):
        raise HTTPException(status_code=404, detail="Unknown marker")
    return {"selected_id": session.selected_id}


@router.post("/share")
async def share(body: ShareBody):
    session = get_search_session()
    if body.place_id:
        try:
            text = await session.share_place(body.place_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Place not in current results")
    else:
        text = await session.share_current_origin()
    return {"text": text}
