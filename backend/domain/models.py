"""
Core domain models for place search and map presentation.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple


def _format_number(value: float) -> str:
    """Shortest textual form of a number: 5000.0 -> '5000', 9.19 -> '9.19'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Coordinates:
    """A WGS84 point in decimal degrees."""
    latitude: float
    longitude: float

    def lonlat(self) -> str:
        """Provider ordering: longitude first."""
        return f"{_format_number(self.longitude)},{_format_number(self.latitude)}"

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class Place:
    """
    A single point of interest returned by the places provider.

    Places are created fresh for every response and replaced wholesale on
    each new search. `distance_meters` is only set when the search carried
    an origin.
    """
    id: str
    name: str
    formatted_address: str
    coordinates: Coordinates
    categories: FrozenSet[str] = frozenset()
    distance_meters: Optional[float] = None
    # Provider fields kept for list rows and share text
    raw_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class OriginSource(str, Enum):
    """Where the active search origin came from, highest precedence first."""
    MANUAL = "manual"
    DEVICE = "device"
    DEFAULT = "default"


@dataclass(frozen=True)
class SearchOrigin:
    """
    The coordinate pair driving proximity bias and distance computation.

    `revision` increases every time the effective origin changes; searches
    remember the revision they were issued against so results tied to a
    replaced origin can be dropped.
    """
    source: OriginSource
    coordinates: Coordinates
    label: Optional[str] = None
    revision: int = 0


class SearchRadius(int, Enum):
    """Radii offered by the search UI."""
    KM_1 = 1000
    KM_5 = 5000
    KM_10 = 10000
    KM_20 = 20000


@dataclass(frozen=True)
class SearchQuery:
    """
    A single provider search request.

    The client does not check `radius_meters` against `SearchRadius`; that
    restriction belongs to the UI layer.
    """
    radius_meters: float
    text: Optional[str] = None
    origin: Optional[Coordinates] = None
    categories: Tuple[str, ...] = ()
    limit: int = 20

    def circle_filter(self) -> Optional[str]:
        if self.origin is None:
            return None
        return f"circle:{self.origin.lonlat()},{_format_number(self.radius_meters)}"

    def proximity_bias(self) -> Optional[str]:
        if self.origin is None:
            return None
        return f"proximity:{self.origin.lonlat()}"


@dataclass(frozen=True)
class CityMatch:
    """Best match of a free-text city lookup."""
    coordinates: Coordinates
    formatted_name: str


class MarkerTier(str, Enum):
    """
    Rendering class of a map marker.

    Draw priority (bottom to top): EVENT, SEARCH_RESULT, SELECTED,
    USER_LOCATION.
    """
    USER_LOCATION = "user_location"
    SELECTED = "selected"
    SEARCH_RESULT = "search_result"
    EVENT = "event"


@dataclass(frozen=True)
class MapMarker:
    """Backend-neutral marker shape consumed by every map renderer."""
    id: str
    coordinates: Coordinates
    label: str
    tier: MarkerTier = MarkerTier.SEARCH_RESULT
    description: Optional[str] = None


@dataclass(frozen=True)
class LocationShare:
    """A location prepared for the share sheet."""
    coordinates: Coordinates
    address: Optional[str] = None
    label: Optional[str] = None
    timestamp: Optional[int] = field(default=None, compare=False)  # epoch millis
