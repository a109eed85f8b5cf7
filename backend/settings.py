import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        # Provider credentials; each provider is skipped when its key is missing.
        self.GOOGLE_MAPS_API_KEY: str | None = os.getenv("GOOGLE_MAPS_API_KEY") or None
        self.UNSPLASH_ACCESS_KEY: str | None = os.getenv("UNSPLASH_ACCESS_KEY") or None
        self.MAPBOX_ACCESS_TOKEN: str | None = os.getenv("MAPBOX_ACCESS_TOKEN") or None

        self.MEDIA_ROOT: str = os.getenv("MEDIA_ROOT", "media")
        self.PUBLIC_MEDIA_BASE_URL: str = os.getenv("PUBLIC_MEDIA_BASE_URL", "").rstrip("/")
        self.DATABASE_URL: str | None = os.getenv("DATABASE_URL") or None

        self.IMAGE_HTTP_TIMEOUT_SECONDS: float = _as_float(os.getenv("IMAGE_HTTP_TIMEOUT_SECONDS"), 10.0)
        self.DAY_IMAGE_TIMEOUT_SECONDS: float = _as_float(os.getenv("DAY_IMAGE_TIMEOUT_SECONDS"), 15.0)
        self.DAY_IMAGE_CACHE_MAX_ENTRIES: int = _as_int(os.getenv("DAY_IMAGE_CACHE_MAX_ENTRIES"), 1024)
        self.DAY_IMAGE_CACHE_TTL_SECONDS: float = _as_float(
            os.getenv("DAY_IMAGE_CACHE_TTL_SECONDS"), 6 * 3600.0
        )
        self.IMAGE_PROVIDERS_ENABLED: bool = _as_bool(os.getenv("IMAGE_PROVIDERS_ENABLED"), True)


settings = Settings()
