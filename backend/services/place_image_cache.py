"""
Cache place images in media storage.

Downloads an image from Google Places, Unsplash or a Mapbox static map (in
that priority order), stores it as JPEG under a path derived from the place
identity and returns a stable public URL.
"""
from __future__ import annotations

import hashlib
import io
import logging
import math
from typing import Callable, List, Optional

from PIL import Image, UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError

from db import SessionLocal
from domain.models import (
    ImageProvider,
    PlaceImageRequest,
    PlaceImageResult,
    ProviderAttempt,
    StoredPlaceImage,
)
from repositories import PlaceImagesRepository
from services import image_providers
from settings import settings
from storage.file_storage import FileStorage

logger = logging.getLogger(__name__)

ALL_SOURCES_FAILED = "All image sources failed"
PROVIDERS_DISABLED = "Disabled (IMAGE_PROVIDERS_ENABLED is off)"
JPEG_QUALITY = 85

_default_storage: Optional[FileStorage] = None
_default_repo = PlaceImagesRepository()


def get_default_storage() -> FileStorage:
    global _default_storage
    if _default_storage is None:
        _default_storage = FileStorage(settings.MEDIA_ROOT, settings.PUBLIC_MEDIA_BASE_URL)
    return _default_storage


def generate_place_hash(
    place_id: Optional[str], title: str, lat: Optional[float], lng: Optional[float]
) -> str:
    """
    Deterministic 16-hex-char identity for a place.

    Coordinates are formatted the way the web client writes numbers (48.0 as
    "48", 0 and missing as "") so both sides derive the same storage path.
    """
    parts = [place_id or "", title, _coord_part(lat), _coord_part(lng)]
    return hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:16]


def _coord_part(value: Optional[float]) -> str:
    if not value or math.isnan(value):
        return ""
    value = float(value)
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def build_search_query(title: str, city: Optional[str], country: Optional[str]) -> str:
    if not city:
        return title
    return " ".join(p for p in (title, city, country) if p)


def ensure_jpeg(data: bytes, content_type: str) -> bytes:
    """
    Re-encode PNG/WebP/etc. payloads as JPEG.

    Payloads Pillow cannot decode are returned unchanged; the browser still
    sniffs the real format.
    """
    lowered = (content_type or "").lower()
    if "jpeg" in lowered or "jpg" in lowered:
        return data
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.mode in ("RGBA", "LA", "P"):
                img = img.convert("RGBA")
                background = Image.new("RGB", img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[-1])
                img = background
            elif img.mode != "RGB":
                img = img.convert("RGB")
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=JPEG_QUALITY)
            return out.getvalue()
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Could not convert %s payload to JPEG: %s", content_type, exc)
        return data


def _find_stored(
    place_hash: str, storage: FileStorage, repo: PlaceImagesRepository, session_factory: Callable
) -> Optional[StoredPlaceImage]:
    """Most recent recorded image for the place whose file is still on disk."""
    try:
        with session_factory() as session:
            rows = repo.find_by_hash(session, place_hash)
    except SQLAlchemyError as exc:
        logger.warning("Stored image lookup for %s failed: %s", place_hash, exc)
        return None
    for row in rows:
        if storage.file_exists(row.storage_path):
            return row
    return None


def _try_providers(request: PlaceImageRequest, attempts: List[ProviderAttempt]):
    if not settings.IMAGE_PROVIDERS_ENABLED:
        attempts.extend(
            ProviderAttempt(provider=p, ok=False, reason=PROVIDERS_DISABLED)
            for p in (ImageProvider.GOOGLE, ImageProvider.UNSPLASH, ImageProvider.MAPBOX)
        )
        return None, None

    if request.photo_ref:
        fetched = image_providers.fetch_google_photo(request.photo_ref)
        attempts.append(fetched.attempt)
        if fetched.usable:
            return ImageProvider.GOOGLE, fetched

    query = build_search_query(request.title, request.city, request.country)
    fetched = image_providers.fetch_unsplash_image(query)
    attempts.append(fetched.attempt)
    if fetched.usable:
        return ImageProvider.UNSPLASH, fetched

    if request.has_coords:
        fetched = image_providers.generate_mapbox_thumbnail(request.lat, request.lng)
        attempts.append(fetched.attempt)
        if fetched.usable:
            return ImageProvider.MAPBOX, fetched
    else:
        attempts.append(
            ProviderAttempt(provider=ImageProvider.MAPBOX, ok=False, reason="Skipped (no coordinates)")
        )

    return None, None


def cache_place_image_with_details(
    request: PlaceImageRequest,
    *,
    storage: Optional[FileStorage] = None,
    repo: Optional[PlaceImagesRepository] = None,
    session_factory: Optional[Callable] = None,
) -> PlaceImageResult:
    """
    Return the stored image for a place, fetching and recording one if needed.

    Never raises. A place already recorded with its file on disk is served
    without contacting any provider.
    """
    storage = storage or get_default_storage()
    repo = repo or _default_repo
    session_factory = session_factory or SessionLocal
    attempts: List[ProviderAttempt] = []

    logger.debug(
        "Caching place image title=%r city=%r country=%r trip=%s photo_ref=%s coords=%s",
        request.title,
        request.city,
        request.country,
        request.trip_id,
        bool(request.photo_ref),
        request.has_coords,
    )

    place_hash = generate_place_hash(request.place_id, request.title, request.lat, request.lng)
    existing = _find_stored(place_hash, storage, repo, session_factory)
    if existing is not None:
        logger.debug("Reusing stored %s image for %r", existing.provider.value, request.title)
        return PlaceImageResult(
            public_url=storage.public_url(existing.storage_path),
            provider_used=existing.provider,
            upload_ok=True,
            attempts=attempts,
        )

    provider, fetched = _try_providers(request, attempts)
    if fetched is None:
        logger.info(
            "No image for %r (%s)",
            request.title,
            ", ".join(f"{a.provider.value}: {a.reason}" for a in attempts),
        )
        return PlaceImageResult(error=ALL_SOURCES_FAILED, attempts=attempts)

    try:
        data = ensure_jpeg(fetched.data, fetched.content_type)
        storage_path = storage.save_place_image(provider.value, place_hash, data)
        stored = StoredPlaceImage(
            storage_path=storage_path,
            provider=provider,
            place_hash=place_hash,
            public_url=storage.public_url(storage_path),
            size_bytes=len(data),
        )
        with session_factory() as session:
            repo.upsert(session, stored, title=request.title, trip_id=request.trip_id)
    except Exception as exc:
        logger.exception("Storing place image for %r failed", request.title)
        return PlaceImageResult(
            provider_used=provider,
            upload_ok=False,
            error=str(exc) or "Upload failed",
            attempts=attempts,
        )

    logger.debug("Cached %s image for %r at %s", provider.value, request.title, storage_path)
    return PlaceImageResult(
        public_url=stored.public_url,
        provider_used=provider,
        upload_ok=True,
        attempts=attempts,
    )


def cache_place_image(request: PlaceImageRequest) -> Optional[str]:
    """Public URL of the cached image, or None if every source failed."""
    return cache_place_image_with_details(request).public_url
