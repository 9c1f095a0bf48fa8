"""Plain-text location sharing.

`format_share_text` is a pure function: the same LocationShare always
produces byte-identical text, which keeps golden tests stable.
"""
from __future__ import annotations

import time
from typing import Optional

from domain.models import Coordinates, LocationShare, Place
from settings import settings

DEFAULT_SHARE_LABEL = "Shared Location"


def map_deeplink(coordinates: Coordinates) -> str:
    return f"https://www.google.com/maps?q={coordinates.latitude:.6f},{coordinates.longitude:.6f}"


def create_location_share(
    coordinates: Coordinates,
    address: Optional[str] = None,
    label: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> LocationShare:
    """Stamp a share with the current time unless one is given."""
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return LocationShare(coordinates=coordinates, address=address, label=label, timestamp=timestamp)


def share_for_place(place: Place) -> LocationShare:
    return create_location_share(
        place.coordinates,
        address=place.formatted_address or None,
        label=place.name,
    )


def format_share_text(share: LocationShare, attribution: Optional[str] = None) -> str:
    lat = share.coordinates.latitude
    lon = share.coordinates.longitude

    lines = [f"📍 {share.label or DEFAULT_SHARE_LABEL}"]
    if share.address:
        lines.append(share.address)
    lines.append("")
    lines.append(f"Coordinates: {lat:.6f}, {lon:.6f}")
    lines.append(f"Google Maps: {map_deeplink(share.coordinates)}")
    lines.append("")
    lines.append(attribution if attribution is not None else settings.SHARE_ATTRIBUTION)
    return "\n".join(lines)
