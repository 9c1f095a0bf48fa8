import sys
from pathlib import Path

import pytest

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def _pinned_settings(monkeypatch):
    """Keep a developer's .env / shell environment out of test expectations."""
    from settings import settings

    monkeypatch.setattr(settings, "DEFAULT_ORIGIN_LAT", 45.4642)
    monkeypatch.setattr(settings, "DEFAULT_ORIGIN_LON", 9.1900)
    monkeypatch.setattr(settings, "DEFAULT_ORIGIN_LABEL", "Milan")
    monkeypatch.setattr(settings, "DEFAULT_SEARCH_RADIUS_M", 5000)
    monkeypatch.setattr(settings, "AUTOCOMPLETE_MIN_CHARS", 2)
    monkeypatch.setattr(settings, "AUTOCOMPLETE_LIMIT", 10)
    monkeypatch.setattr(settings, "PLACES_SEARCH_LIMIT", 50)
    monkeypatch.setattr(settings, "MAP_BACKEND", "web")
    monkeypatch.setattr(settings, "MAP_DEFAULT_ZOOM", 13)
    monkeypatch.setattr(settings, "MAP_TILES_ENABLED", False)
    monkeypatch.setattr(settings, "SHARE_ATTRIBUTION", "Shared via LitPass")
