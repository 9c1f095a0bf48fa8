"""
Search origin resolution.

Three sources feed the origin, highest precedence first: a location the
user picked explicitly, the last device fix, and a hardcoded default city.
Reading the origin never triggers a permission prompt or a network call;
acquiring a new fix is always a separate, explicit, async operation.
"""
from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from domain.models import Coordinates, OriginSource, SearchOrigin
from settings import settings

logger = logging.getLogger(__name__)

OriginListener = Callable[[SearchOrigin], None]


@dataclass(frozen=True)
class PermissionDenied:
    """Returned (not raised) when the user refuses location access."""
    reason: str = "location permission denied"


class LocationUnavailable(Exception):
    """Permission was granted but the device could not produce a fix."""


class PermissionStatus(str, Enum):
    UNDETERMINED = "undetermined"
    GRANTED = "granted"
    DENIED = "denied"


class DeviceLocationProvider(ABC):
    """Device-side location API: foreground permission and last known position."""

    @abstractmethod
    async def request_permission(self) -> bool:
        ...

    @abstractmethod
    async def last_known_position(self) -> Coordinates:
        ...


class StaticDeviceLocation(DeviceLocationProvider):
    """
    Provider for hosts without a device API.

    `position=None` with `granted=True` behaves like a device that has no fix yet.
    """

    def __init__(self, position: Optional[Coordinates] = None, granted: bool = True):
        self.position = position
        self.granted = granted
        self.permission_requests = 0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.granted

    async def last_known_position(self) -> Coordinates:
        if self.position is None:
            raise LocationUnavailable("no device fix available")
        return self.position


def default_origin() -> SearchOrigin:
    return SearchOrigin(
        source=OriginSource.DEFAULT,
        coordinates=Coordinates(settings.DEFAULT_ORIGIN_LAT, settings.DEFAULT_ORIGIN_LON),
        label=settings.DEFAULT_ORIGIN_LABEL,
    )


class LocationResolver:
    def __init__(
        self,
        device: Optional[DeviceLocationProvider] = None,
        fallback: Optional[SearchOrigin] = None,
    ):
        self.device = device or StaticDeviceLocation(granted=False)
        self.permission = PermissionStatus.UNDETERMINED
        self._fallback = fallback or default_origin()
        self._manual: Optional[SearchOrigin] = None
        self._device_fix: Optional[Coordinates] = None
        self._listeners: List[OriginListener] = []
        self._resolved = dataclasses.replace(self._fallback, source=OriginSource.DEFAULT, revision=0)

    def current_origin(self) -> SearchOrigin:
        """Resolved origin by precedence. Pure read."""
        return self._resolved

    def is_current(self, origin: SearchOrigin) -> bool:
        return origin.revision == self._resolved.revision

    @property
    def revision(self) -> int:
        return self._resolved.revision

    @property
    def device_fix(self) -> Optional[Coordinates]:
        """Last recorded device position, whether or not it is the active origin."""
        return self._device_fix

    def subscribe(self, listener: OriginListener) -> None:
        self._listeners.append(listener)

    async def request_device_fix(self) -> Union[Coordinates, PermissionDenied]:
        if self.permission is not PermissionStatus.GRANTED:
            granted = await self.device.request_permission()
            if not granted:
                return self.record_permission_denied()
            self.permission = PermissionStatus.GRANTED

        fix = await self.device.last_known_position()
        self.record_device_fix(fix)
        return fix

    def record_device_fix(self, coordinates: Coordinates) -> None:
        self.permission = PermissionStatus.GRANTED
        self._device_fix = coordinates
        self._resolve()

    def record_permission_denied(self) -> PermissionDenied:
        """Forget the device fix; precedence falls through to manual or default."""
        self.permission = PermissionStatus.DENIED
        self._device_fix = None
        logger.info("Location permission denied; device origin dropped")
        self._resolve()
        return PermissionDenied()

    def set_manual_origin(self, coordinates: Coordinates, label: Optional[str] = None) -> SearchOrigin:
        """Overrides every other source until cleared or replaced."""
        self._manual = SearchOrigin(source=OriginSource.MANUAL, coordinates=coordinates, label=label)
        return self._resolve()

    def clear_manual_origin(self) -> SearchOrigin:
        self._manual = None
        return self._resolve()

    def _resolve(self) -> SearchOrigin:
        if self._manual is not None:
            candidate = self._manual
        elif self._device_fix is not None:
            candidate = SearchOrigin(source=OriginSource.DEVICE, coordinates=self._device_fix, label=None)
        else:
            candidate = dataclasses.replace(self._fallback, source=OriginSource.DEFAULT)

        previous = self._resolved
        unchanged = (
            candidate.source == previous.source
            and candidate.coordinates == previous.coordinates
            and candidate.label == previous.label
        )
        if unchanged:
            return previous

        self._resolved = dataclasses.replace(candidate, revision=previous.revision + 1)
        logger.debug(
            "Search origin -> %s (%s) rev=%d",
            self._resolved.source.value,
            self._resolved.coordinates.lonlat(),
            self._resolved.revision,
        )
        for listener in list(self._listeners):
            listener(self._resolved)
        return self._resolved
