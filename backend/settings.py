import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    return float(val)


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    return int(val)


class Settings:
    def __init__(self) -> None:
        # Places provider (Geoapify)
        self.GEOAPIFY_API_KEY: str | None = os.getenv("GEOAPIFY_API_KEY")
        self.GEOAPIFY_BASE_URL: str = os.getenv("GEOAPIFY_BASE_URL", "https://api.geoapify.com")
        self.PLACES_TIMEOUT_SEC: float = _as_float(os.getenv("PLACES_TIMEOUT_SEC"), 10.0)
        self.PLACES_SEARCH_LIMIT: int = _as_int(os.getenv("PLACES_SEARCH_LIMIT"), 50)
        self.AUTOCOMPLETE_LIMIT: int = min(10, _as_int(os.getenv("AUTOCOMPLETE_LIMIT"), 10))

        # Search-as-you-type
        self.AUTOCOMPLETE_DEBOUNCE_MS: int = _as_int(os.getenv("AUTOCOMPLETE_DEBOUNCE_MS"), 300)
        self.AUTOCOMPLETE_MIN_CHARS: int = _as_int(os.getenv("AUTOCOMPLETE_MIN_CHARS"), 2)

        # Fallback search origin when neither a manual pick nor a device fix exists
        self.DEFAULT_ORIGIN_LAT: float = _as_float(os.getenv("DEFAULT_ORIGIN_LAT"), 45.4642)
        self.DEFAULT_ORIGIN_LON: float = _as_float(os.getenv("DEFAULT_ORIGIN_LON"), 9.1900)
        self.DEFAULT_ORIGIN_LABEL: str = os.getenv("DEFAULT_ORIGIN_LABEL", "Milan")
        self.DEFAULT_SEARCH_RADIUS_M: int = _as_int(os.getenv("DEFAULT_SEARCH_RADIUS_M"), 5000)

        # Map backends
        self.MAP_BACKEND: str = os.getenv("MAP_BACKEND", "web").lower()
        self.MAP_DEFAULT_ZOOM: int = _as_int(os.getenv("MAP_DEFAULT_ZOOM"), 13)
        self.MAP_TILE_URL_TEMPLATE: str = os.getenv(
            "MAP_TILE_URL_TEMPLATE",
            "https://maps.geoapify.com/v1/tile/carto/{z}/{x}/{y}.png?apiKey={api_key}",
        )
        self.MAP_TILES_ENABLED: bool = _as_bool(os.getenv("MAP_TILES_ENABLED"), False)
        self.MAP_TILE_TIMEOUT: float = _as_float(os.getenv("MAP_TILE_TIMEOUT"), 3.0)
        self.MAP_TILE_USER_AGENT: str = os.getenv("MAP_TILE_USER_AGENT", "litpass-places/0.1 (tile-fetch)")

        self.SHARE_ATTRIBUTION: str = os.getenv("SHARE_ATTRIBUTION", "Shared via LitPass")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def tile_url(self, z: int, x: int, y: int) -> str:
        """Concrete raster tile URL for the configured provider."""
        return self.MAP_TILE_URL_TEMPLATE.format(z=z, x=x, y=y, api_key=self.GEOAPIFY_API_KEY or "")


settings = Settings()
