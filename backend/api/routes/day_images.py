"""
Itinerary day image API routes.
"""
from typing import List, Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from domain.models import DayImageCard, DayPlan, ImageRef
from services.day_images import get_default_day_image_assembler

router = APIRouter()


class ImagePayload(BaseModel):
    src: str
    alt: str = ""


class DayPlanPayload(BaseModel):
    title: str
    day: Optional[int] = None
    summary: Optional[str] = None
    morning: Optional[str] = None
    afternoon: Optional[str] = None
    evening: Optional[str] = None


class DayImagesRequest(BaseModel):
    city: str
    country: Optional[str] = None
    day_plans: List[DayPlanPayload] = []
    fallback_image: Optional[ImagePayload] = None


class DayImageCardResponse(BaseModel):
    title: str
    image: ImagePayload


class DayImagesResponse(BaseModel):
    slug: str
    cards: Optional[List[DayImageCardResponse]] = None


def card_to_response(card: DayImageCard) -> DayImageCardResponse:
    return DayImageCardResponse(
        title=card.title,
        image=ImagePayload(src=card.image.src, alt=card.image.alt),
    )


@router.post("/{slug}/day-images", response_model=DayImagesResponse)
async def day_images(slug: str, payload: DayImagesRequest):
    """Resolve one image card per day; `cards` is null when any day has no image."""
    if not payload.city.strip():
        raise HTTPException(status_code=400, detail="city is required")

    day_plans = [
        DayPlan(
            title=p.title,
            day=p.day,
            summary=p.summary,
            morning=p.morning,
            afternoon=p.afternoon,
            evening=p.evening,
        )
        for p in payload.day_plans
    ]
    fallback = (
        ImageRef(src=payload.fallback_image.src, alt=payload.fallback_image.alt)
        if payload.fallback_image
        else None
    )

    cards = await get_default_day_image_assembler().get_day_image_cards(
        slug, payload.city, payload.country, day_plans, fallback
    )
    return DayImagesResponse(
        slug=slug,
        cards=[card_to_response(c) for c in cards] if cards is not None else None,
    )
