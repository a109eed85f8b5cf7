"""
Core domain models for the itinerary image pipeline.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ImageProvider(str, Enum):
    """Upstream source a place image was fetched from."""
    GOOGLE = "google"
    UNSPLASH = "unsplash"
    MAPBOX = "mapbox"


class ResolveStatus(str, Enum):
    """Outcome of a single image lookup."""
    FOUND = "found"
    NOT_FOUND = "not_found"  # every source answered, none had an image
    UNAVAILABLE = "unavailable"  # upstream or storage failure


@dataclass(frozen=True)
class DayPlan:
    """
    One day's highlight within a city guide.

    Only `title` is read by the image pipeline; the remaining fields are
    carried so guide content can be passed through unchanged.
    """
    title: str
    day: Optional[int] = None
    summary: Optional[str] = None
    morning: Optional[str] = None
    afternoon: Optional[str] = None
    evening: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DayPlan":
        return cls(
            title=str(data.get("title") or ""),
            day=data.get("day"),
            summary=data.get("summary"),
            morning=data.get("morning"),
            afternoon=data.get("afternoon"),
            evening=data.get("evening"),
        )


@dataclass(frozen=True)
class ImageRef:
    """An image source with its alt text."""
    src: str
    alt: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ImageRef"]:
        if not data:
            return None
        return cls(src=str(data.get("src") or ""), alt=str(data.get("alt") or ""))


@dataclass(frozen=True)
class DayImageCard:
    """A day title paired with a display-ready image."""
    title: str
    image: ImageRef


@dataclass(frozen=True)
class ResolveResult:
    """
    Tagged result of a resolver lookup.

    `url` is only set for FOUND; `error` carries the reason for UNAVAILABLE.
    """
    status: ResolveStatus
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, url: str) -> "ResolveResult":
        return cls(status=ResolveStatus.FOUND, url=url)

    @classmethod
    def not_found(cls, reason: Optional[str] = None) -> "ResolveResult":
        return cls(status=ResolveStatus.NOT_FOUND, error=reason)

    @classmethod
    def unavailable(cls, error: str) -> "ResolveResult":
        return cls(status=ResolveStatus.UNAVAILABLE, error=error)


@dataclass
class ProviderAttempt:
    """One try against an image provider, kept for debugging."""
    provider: ImageProvider
    ok: bool
    status: Optional[int] = None
    reason: Optional[str] = None
    debug_url: Optional[str] = None  # sanitized, never carries secrets
    upstream_error: bool = False  # transport failure, 429 or 5xx

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "ok": self.ok,
            "status": self.status,
            "reason": self.reason,
            "debug_url": self.debug_url,
            "upstream_error": self.upstream_error,
        }


@dataclass
class PlaceImageRequest:
    """Identity and hints for a place whose image should be cached."""
    trip_id: str
    title: str
    place_id: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    photo_ref: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def has_coords(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass
class PlaceImageResult:
    """Detailed outcome of caching a place image."""
    public_url: Optional[str] = None
    provider_used: Optional[ImageProvider] = None
    upload_ok: bool = False
    error: Optional[str] = None
    attempts: List[ProviderAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "public_url": self.public_url,
            "provider_used": self.provider_used.value if self.provider_used else None,
            "upload_ok": self.upload_ok,
            "error": self.error,
            "attempts": [a.to_dict() for a in self.attempts],
        }


@dataclass(frozen=True)
class StoredPlaceImage:
    """A place image persisted in media storage."""
    storage_path: str
    provider: ImageProvider
    place_hash: str
    public_url: str
    content_type: str = "image/jpeg"
    size_bytes: int = 0
