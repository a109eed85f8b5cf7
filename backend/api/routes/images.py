"""
Place image caching and health API routes.
"""
from typing import List, Optional
from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from domain.models import PlaceImageRequest
from services.day_images import get_default_day_image_assembler
from services.place_image_cache import cache_place_image_with_details, get_default_storage
from settings import settings

router = APIRouter()
debug_router = APIRouter()


class CachePlaceImageBody(BaseModel):
    trip_id: Optional[str] = None
    title: Optional[str] = None
    place_id: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    photo_ref: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class ProviderAttemptResponse(BaseModel):
    provider: str
    ok: bool
    status: Optional[int] = None
    reason: Optional[str] = None
    debug_url: Optional[str] = None
    upstream_error: bool = False


class CachePlaceImageResponse(BaseModel):
    public_url: Optional[str] = None
    provider_used: Optional[str] = None
    upload_ok: bool
    error: Optional[str] = None
    attempts: List[ProviderAttemptResponse]


@router.post("/cache-place-image", response_model=CachePlaceImageResponse)
async def cache_place_image(body: CachePlaceImageBody):
    """Fetch and store an image for a place, returning every provider attempt."""
    if not body.trip_id or not body.title:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: trip_id and title are required",
        )
    request = PlaceImageRequest(
        trip_id=body.trip_id,
        title=body.title,
        place_id=body.place_id,
        city=body.city,
        country=body.country,
        photo_ref=body.photo_ref,
        lat=body.lat,
        lng=body.lng,
    )
    result = await run_in_threadpool(cache_place_image_with_details, request)
    return CachePlaceImageResponse(**result.to_dict())


@debug_router.get("/image-cache-health")
async def image_cache_health():
    """
    Report image pipeline configuration.

    Only booleans and counters are returned, never credential values.
    """
    has_google_key = bool(settings.GOOGLE_MAPS_API_KEY)
    has_unsplash_key = bool(settings.UNSPLASH_ACCESS_KEY)
    has_mapbox_token = bool(settings.MAPBOX_ACCESS_TOKEN)
    storage_writable = get_default_storage().is_writable()
    cache_stats = get_default_day_image_assembler().cache.stats()

    recommendations = [
        msg
        for ok, msg in (
            (has_google_key, "Add GOOGLE_MAPS_API_KEY for Google Places photos (optional but recommended)"),
            (has_unsplash_key, "Add UNSPLASH_ACCESS_KEY for Unsplash search (required for day images)"),
            (has_mapbox_token, "Add MAPBOX_ACCESS_TOKEN for Mapbox fallback (optional)"),
            (storage_writable, f"Media root {settings.MEDIA_ROOT!r} is not writable"),
        )
        if not ok
    ]

    return {
        "has_google_key": has_google_key,
        "has_unsplash_key": has_unsplash_key,
        "has_mapbox_token": has_mapbox_token,
        "storage_writable": storage_writable,
        "day_image_cache": cache_stats,
        "healthy": storage_writable and (has_unsplash_key or has_google_key or has_mapbox_token),
        "recommendations": recommendations,
    }
