import asyncio

import pytest

from domain.models import Coordinates, OriginSource
from services.location_resolver import (
    DeviceLocationProvider,
    LocationResolver,
    LocationUnavailable,
    PermissionDenied,
    PermissionStatus,
    StaticDeviceLocation,
    default_origin,
)
from settings import settings

MANUAL = Coordinates(41.9028, 12.4964)
DEVICE = Coordinates(45.4781, 9.2270)


def test_default_origin_when_nothing_else_is_known():
    resolver = LocationResolver()
    origin = resolver.current_origin()
    assert origin.source is OriginSource.DEFAULT
    assert origin.coordinates == Coordinates(settings.DEFAULT_ORIGIN_LAT, settings.DEFAULT_ORIGIN_LON)
    assert origin.label == settings.DEFAULT_ORIGIN_LABEL
    assert origin == default_origin()


def test_reading_the_origin_never_asks_for_permission():
    device = StaticDeviceLocation(position=DEVICE)
    resolver = LocationResolver(device=device)
    for _ in range(3):
        resolver.current_origin()
    assert device.permission_requests == 0
    assert resolver.permission is PermissionStatus.UNDETERMINED


def test_manual_beats_device_beats_default():
    resolver = LocationResolver(device=StaticDeviceLocation(position=DEVICE))

    fix = asyncio.run(resolver.request_device_fix())
    assert fix == DEVICE
    assert resolver.current_origin().source is OriginSource.DEVICE

    resolver.set_manual_origin(MANUAL, label="Rome")
    origin = resolver.current_origin()
    assert origin.source is OriginSource.MANUAL
    assert origin.coordinates == MANUAL
    assert origin.label == "Rome"

    # a newer device fix does not displace the manual origin
    resolver.record_device_fix(Coordinates(45.0, 9.0))
    assert resolver.current_origin().coordinates == MANUAL

    resolver.clear_manual_origin()
    assert resolver.current_origin().source is OriginSource.DEVICE
    assert resolver.current_origin().coordinates == Coordinates(45.0, 9.0)


def test_permission_denied_is_a_value_and_falls_back_to_default():
    device = StaticDeviceLocation(position=DEVICE, granted=False)
    resolver = LocationResolver(device=device)

    result = asyncio.run(resolver.request_device_fix())

    assert isinstance(result, PermissionDenied)
    assert resolver.permission is PermissionStatus.DENIED
    assert resolver.current_origin().source is OriginSource.DEFAULT
    assert resolver.device_fix is None


def test_permission_denial_drops_an_earlier_device_fix():
    resolver = LocationResolver()
    resolver.record_device_fix(DEVICE)
    assert resolver.current_origin().source is OriginSource.DEVICE

    resolver.record_permission_denied()
    assert resolver.current_origin().source is OriginSource.DEFAULT


def test_denied_permission_is_asked_again_on_next_request():
    device = StaticDeviceLocation(position=DEVICE, granted=False)
    resolver = LocationResolver(device=device)
    asyncio.run(resolver.request_device_fix())

    device.granted = True
    assert asyncio.run(resolver.request_device_fix()) == DEVICE
    assert device.permission_requests == 2

    # once granted, later fixes skip the prompt
    asyncio.run(resolver.request_device_fix())
    assert device.permission_requests == 2


def test_missing_fix_raises_location_unavailable():
    resolver = LocationResolver(device=StaticDeviceLocation(position=None, granted=True))
    with pytest.raises(LocationUnavailable):
        asyncio.run(resolver.request_device_fix())
    assert resolver.permission is PermissionStatus.GRANTED
    assert resolver.current_origin().source is OriginSource.DEFAULT


def test_revision_changes_only_when_origin_changes():
    seen = []
    resolver = LocationResolver()
    resolver.subscribe(seen.append)
    assert resolver.revision == 0

    first = resolver.set_manual_origin(MANUAL)
    again = resolver.set_manual_origin(MANUAL)
    assert first.revision == again.revision == 1
    assert len(seen) == 1

    resolver.record_device_fix(DEVICE)  # shadowed by the manual origin
    assert resolver.revision == 1

    resolver.clear_manual_origin()
    assert resolver.revision == 2
    assert [o.source for o in seen] == [OriginSource.MANUAL, OriginSource.DEVICE]
    assert not resolver.is_current(first)
    assert resolver.is_current(resolver.current_origin())


def test_device_provider_interface_is_abstract():
    with pytest.raises(TypeError):
        DeviceLocationProvider()
