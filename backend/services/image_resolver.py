"""
Image source resolver used by the day-card assembler.

`resolve` returns a URL or None and never raises. `resolve_detailed` keeps
the distinction between "nothing found" and "upstream unavailable" so callers
can log or alert on outages without changing the absence contract.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from domain.models import PlaceImageRequest, PlaceImageResult, ResolveResult, ResolveStatus
from services.place_image_cache import ALL_SOURCES_FAILED, cache_place_image_with_details

logger = logging.getLogger(__name__)


def classify_place_image_result(result: PlaceImageResult) -> ResolveResult:
    if result.public_url:
        return ResolveResult.found(result.public_url)
    if result.error and result.error != ALL_SOURCES_FAILED:
        # Image was fetched but could not be stored.
        return ResolveResult.unavailable(result.error)
    failed = [a for a in result.attempts if a.upstream_error]
    if failed:
        reasons = "; ".join(f"{a.provider.value}: {a.reason}" for a in failed)
        return ResolveResult.unavailable(reasons)
    return ResolveResult.not_found(result.error)


class ImageResolver:
    """Base resolver; subclasses implement `resolve_detailed`."""

    async def resolve_detailed(
        self, cache_key: str, title: str, city: str, country: Optional[str] = None
    ) -> ResolveResult:
        raise NotImplementedError

    async def resolve(
        self, cache_key: str, title: str, city: str, country: Optional[str] = None
    ) -> Optional[str]:
        try:
            result = await self.resolve_detailed(cache_key, title, city, country)
        except Exception as exc:
            logger.exception("Image resolver failed for %s", cache_key)
            result = ResolveResult.unavailable(str(exc) or exc.__class__.__name__)

        if result.status is ResolveStatus.UNAVAILABLE:
            logger.warning("Image source unavailable for %s (%r): %s", cache_key, title, result.error)
        elif result.status is ResolveStatus.NOT_FOUND:
            logger.info("No image found for %s (%r)", cache_key, title)
        return result.url


class PlaceImageResolver(ImageResolver):
    """
    Resolves images through the place image cacher.

    The cacher does blocking HTTP, so it runs in a worker thread.
    """

    def __init__(self, cacher: Optional[Callable[[PlaceImageRequest], PlaceImageResult]] = None):
        self._cacher = cacher or cache_place_image_with_details

    async def resolve_detailed(
        self, cache_key: str, title: str, city: str, country: Optional[str] = None
    ) -> ResolveResult:
        request = PlaceImageRequest(trip_id=cache_key, title=title, city=city, country=country)
        result = await asyncio.to_thread(self._cacher, request)
        return classify_place_image_result(result)
