"""
HTTP fetchers for the place image sources: Google Places photos, Unsplash
search and Mapbox static map thumbnails.

Each fetcher returns a ProviderFetch whose `attempt` records what happened.
Failures never raise; an attempt with ok=False and an empty payload is
returned instead.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from domain.models import ImageProvider, ProviderAttempt
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()

GOOGLE_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"
MAPBOX_STATIC_URL = "https://api.mapbox.com/styles/v1/mapbox/streets-v11/static"
SERVER_USER_AGENT = "TripImages-Server/1.0"

# Payloads this small are placeholders or error bodies, not photos.
MIN_IMAGE_BYTES = 100

_SECRET_PARAMS = ("key", "api_key", "access_token", "token", "apikey", "auth")
_SECRET_PARAM_RE = re.compile(r"([?&])(key|api_key|access_token|token|apikey|auth)=[^&]*", re.IGNORECASE)
REDACTED = "***REDACTED***"


@dataclass
class ProviderFetch:
    data: bytes
    content_type: str
    attempt: ProviderAttempt

    @property
    def usable(self) -> bool:
        return self.attempt.ok and len(self.data) > MIN_IMAGE_BYTES


def sanitize_url(url: str) -> str:
    """Replace secret query parameter values so the URL is safe to log."""
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(url)
        query = [
            (k, REDACTED if k.lower() in _SECRET_PARAMS else v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
        ]
        return urlunsplit(parts._replace(query=urlencode(query, safe="*")))
    except ValueError:
        return _SECRET_PARAM_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}={REDACTED}", url)[:500]


def truncate_response(text: str, max_length: int = 300) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def _error_text(resp: requests.Response) -> str:
    try:
        return truncate_response(resp.text)
    except Exception:
        return resp.reason or "Unknown error"


def _failed(
    provider: ImageProvider,
    reason: str,
    status: Optional[int] = None,
    debug_url: Optional[str] = None,
    content_type: str = "image/jpeg",
    data: bytes = b"",
    upstream_error: Optional[bool] = None,
) -> ProviderFetch:
    if upstream_error is None:
        upstream_error = status is not None and (status >= 500 or status == 429)
    logger.debug("[%s] attempt failed: %s", provider.value, reason)
    return ProviderFetch(
        data=data,
        content_type=content_type,
        attempt=ProviderAttempt(
            provider=provider,
            ok=False,
            status=status,
            reason=reason,
            debug_url=debug_url,
            upstream_error=upstream_error,
        ),
    )


def _get(url: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", settings.IMAGE_HTTP_TIMEOUT_SECONDS)
    return _session.get(url, **kwargs)


def fetch_google_photo(photo_ref: str, max_width: int = 1000) -> ProviderFetch:
    """Download a Google Places photo by its photo reference."""
    params = {
        "maxwidth": str(max_width),
        "photo_reference": photo_ref,
        "key": settings.GOOGLE_MAPS_API_KEY or "",
    }
    debug_url = sanitize_url(f"{GOOGLE_PHOTO_URL}?{urlencode(params)}")
    if not settings.GOOGLE_MAPS_API_KEY:
        return _failed(ImageProvider.GOOGLE, "Google Maps API key not configured", debug_url=debug_url)

    try:
        resp = _get(GOOGLE_PHOTO_URL, params=params, headers={"User-Agent": SERVER_USER_AGENT})
    except requests.RequestException as exc:
        return _failed(ImageProvider.GOOGLE, str(exc) or "Unknown error", debug_url=debug_url, upstream_error=True)

    if not resp.ok:
        return _failed(
            ImageProvider.GOOGLE,
            f"HTTP {resp.status_code}: {_error_text(resp)}",
            status=resp.status_code,
            debug_url=debug_url,
        )

    data = resp.content or b""
    content_type = resp.headers.get("content-type") or "image/jpeg"
    if len(data) < MIN_IMAGE_BYTES:
        return _failed(
            ImageProvider.GOOGLE,
            "Response too small (likely placeholder or error)",
            status=resp.status_code,
            debug_url=debug_url,
            content_type=content_type,
            data=data,
        )
    if data.lstrip()[:1] == b"{":
        text = data.decode("utf-8", errors="replace")
        return _failed(
            ImageProvider.GOOGLE,
            f"JSON error response: {truncate_response(text)}",
            status=resp.status_code,
            debug_url=debug_url,
            content_type=content_type,
            data=data,
        )

    logger.debug("[google] fetched %d bytes (%s)", len(data), content_type)
    return ProviderFetch(
        data=data,
        content_type=content_type,
        attempt=ProviderAttempt(
            provider=ImageProvider.GOOGLE, ok=True, status=resp.status_code, debug_url=debug_url
        ),
    )


def fetch_unsplash_image(query: str) -> ProviderFetch:
    """Search Unsplash and download the first landscape result."""
    params = {"query": query, "per_page": "1", "orientation": "landscape"}
    search_debug_url = sanitize_url(f"{UNSPLASH_SEARCH_URL}?{urlencode(params)}")
    access_key = settings.UNSPLASH_ACCESS_KEY
    if not access_key:
        return _failed(
            ImageProvider.UNSPLASH, "Unsplash access key not configured", debug_url=search_debug_url
        )

    try:
        search_resp = _get(
            UNSPLASH_SEARCH_URL,
            params=params,
            headers={"Authorization": f"Client-ID {access_key}"},
        )
    except requests.RequestException as exc:
        return _failed(ImageProvider.UNSPLASH, str(exc) or "Unknown error", debug_url=search_debug_url, upstream_error=True)

    if not search_resp.ok:
        return _failed(
            ImageProvider.UNSPLASH,
            f"Search failed: HTTP {search_resp.status_code}: {_error_text(search_resp)}",
            status=search_resp.status_code,
            debug_url=search_debug_url,
        )

    try:
        payload = search_resp.json() or {}
    except ValueError as exc:
        return _failed(
            ImageProvider.UNSPLASH,
            f"Invalid search response: {exc}",
            status=search_resp.status_code,
            debug_url=search_debug_url,
        )

    results = payload.get("results") or []
    if not results:
        return _failed(
            ImageProvider.UNSPLASH,
            f"No results found for query: {query}",
            status=search_resp.status_code,
            debug_url=search_debug_url,
        )

    image_url = (results[0].get("urls") or {}).get("regular")
    if not image_url:
        return _failed(
            ImageProvider.UNSPLASH,
            "No image URL in Unsplash result",
            status=search_resp.status_code,
            debug_url=search_debug_url,
        )

    image_debug_url = sanitize_url(image_url)
    try:
        image_resp = _get(image_url)
    except requests.RequestException as exc:
        return _failed(ImageProvider.UNSPLASH, str(exc) or "Unknown error", debug_url=image_debug_url, upstream_error=True)

    if not image_resp.ok:
        return _failed(
            ImageProvider.UNSPLASH,
            f"Image download failed: HTTP {image_resp.status_code}: {_error_text(image_resp)}",
            status=image_resp.status_code,
            debug_url=image_debug_url,
        )

    data = image_resp.content or b""
    content_type = image_resp.headers.get("content-type") or "image/jpeg"
    logger.debug("[unsplash] fetched %d bytes (%s) for %r", len(data), content_type, query)
    return ProviderFetch(
        data=data,
        content_type=content_type,
        attempt=ProviderAttempt(
            provider=ImageProvider.UNSPLASH,
            ok=True,
            status=image_resp.status_code,
            debug_url=image_debug_url,
        ),
    )


def generate_mapbox_thumbnail(lat: float, lng: float, zoom: int = 14) -> ProviderFetch:
    """Render a pinned static map around the coordinates."""
    token = settings.MAPBOX_ACCESS_TOKEN
    url = (
        f"{MAPBOX_STATIC_URL}/pin-s+ff0000({lng},{lat})/{lng},{lat},{zoom},0/400x300@2x"
    )
    debug_url = sanitize_url(f"{url}?{urlencode({'access_token': token or ''})}")
    if not token:
        return _failed(
            ImageProvider.MAPBOX,
            "Mapbox access token not configured",
            debug_url=debug_url,
            content_type="image/png",
        )

    try:
        resp = _get(url, params={"access_token": token})
    except requests.RequestException as exc:
        return _failed(
            ImageProvider.MAPBOX,
            str(exc) or "Unknown error",
            debug_url=debug_url,
            content_type="image/png",
            upstream_error=True,
        )

    if not resp.ok:
        return _failed(
            ImageProvider.MAPBOX,
            f"Thumbnail generation failed: HTTP {resp.status_code}: {_error_text(resp)}",
            status=resp.status_code,
            debug_url=debug_url,
            content_type="image/png",
        )

    data = resp.content or b""
    logger.debug("[mapbox] rendered %d bytes for %.5f,%.5f", len(data), lat, lng)
    return ProviderFetch(
        data=data,
        content_type="image/png",
        attempt=ProviderAttempt(
            provider=ImageProvider.MAPBOX, ok=True, status=resp.status_code, debug_url=debug_url
        ),
    )
