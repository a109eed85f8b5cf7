"""
Day image cards for city itineraries.

One card per day plan, resolved concurrently through the per-key image cache.
The result is all-or-nothing: if any day ends up without an image (and there
is no fallback) the whole section is dropped and None is returned, so callers
can render a non-None list without per-card checks.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from domain.models import DayImageCard, DayPlan, ImageRef
from services.image_cache import KeyedImageCache
from services.image_resolver import ImageResolver, PlaceImageResolver
from services.wikimedia import normalize_wikimedia_src
from settings import settings

logger = logging.getLogger(__name__)


def day_cache_key(slug: str, index: int) -> str:
    """Cache key for the 0-based day `index` of an itinerary."""
    return f"{slug}-day-{index + 1}"


def _build_card(
    plan: DayPlan, resolved: Optional[str], city: str, fallback_image: Optional[ImageRef]
) -> Optional[DayImageCard]:
    default_alt = f"{city} - {plan.title}"

    src = normalize_wikimedia_src(resolved or "")
    if src:
        return DayImageCard(title=plan.title, image=ImageRef(src=src, alt=default_alt))

    if fallback_image is not None:
        src = normalize_wikimedia_src(fallback_image.src or "")
        if src:
            alt = (fallback_image.alt or "").strip() or default_alt
            return DayImageCard(title=plan.title, image=ImageRef(src=src, alt=alt))

    return None


class DayImageAssembler:
    """Builds day image cards; one instance per process or per request scope."""

    def __init__(
        self,
        resolver: ImageResolver,
        cache: Optional[KeyedImageCache] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.resolver = resolver
        self.cache = cache if cache is not None else KeyedImageCache()
        self.timeout_seconds = timeout_seconds

    async def _resolve_day(
        self, cache_key: str, title: str, city: str, country: Optional[str]
    ) -> Optional[str]:
        async def produce() -> Optional[str]:
            return await self.resolver.resolve(cache_key, title, city, country)

        lookup = self.cache.memoize(cache_key, produce)
        try:
            if self.timeout_seconds and self.timeout_seconds > 0:
                return await asyncio.wait_for(lookup, timeout=self.timeout_seconds)
            return await lookup
        except asyncio.TimeoutError:
            logger.warning(
                "Image lookup for %s timed out after %.1fs", cache_key, self.timeout_seconds
            )
            return None
        except Exception:
            logger.exception("Image lookup for %s failed", cache_key)
            return None

    async def get_day_image_cards(
        self,
        slug: str,
        city: str,
        country: Optional[str],
        day_plans: Sequence[DayPlan],
        fallback_image: Optional[ImageRef] = None,
    ) -> Optional[List[DayImageCard]]:
        if not day_plans:
            return None

        resolved = await asyncio.gather(
            *(
                self._resolve_day(day_cache_key(slug, index), plan.title, city, country)
                for index, plan in enumerate(day_plans)
            )
        )

        cards: List[DayImageCard] = []
        for index, (plan, src) in enumerate(zip(day_plans, resolved)):
            card = _build_card(plan, src, city, fallback_image)
            if card is None:
                logger.info(
                    "Dropping day images for %s: no image for %s",
                    slug,
                    day_cache_key(slug, index),
                )
                return None
            cards.append(card)
        return cards


_default_assembler: Optional[DayImageAssembler] = None


def build_day_image_assembler(timeout_seconds: Optional[float] = None) -> DayImageAssembler:
    """New assembler over place images with its own cache, configured from settings."""
    return DayImageAssembler(
        resolver=PlaceImageResolver(),
        cache=KeyedImageCache(
            max_entries=settings.DAY_IMAGE_CACHE_MAX_ENTRIES,
            ttl_seconds=settings.DAY_IMAGE_CACHE_TTL_SECONDS,
        ),
        timeout_seconds=settings.DAY_IMAGE_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds,
    )


def get_default_day_image_assembler() -> DayImageAssembler:
    global _default_assembler
    if _default_assembler is None:
        _default_assembler = build_day_image_assembler()
    return _default_assembler


async def get_day_image_cards(
    slug: str,
    city: str,
    country: Optional[str],
    day_plans: Sequence[DayPlan],
    fallback_image: Optional[ImageRef] = None,
) -> Optional[List[DayImageCard]]:
    """Day image cards using the process-wide assembler."""
    return await get_default_day_image_assembler().get_day_image_cards(
        slug, city, country, day_plans, fallback_image
    )
