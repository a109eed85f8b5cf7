import asyncio
import logging

import pytest

from domain.models import (
    ImageProvider,
    PlaceImageRequest,
    PlaceImageResult,
    ProviderAttempt,
    ResolveStatus,
)
from services.image_resolver import PlaceImageResolver, classify_place_image_result
from services.place_image_cache import ALL_SOURCES_FAILED


def _attempt(provider, upstream_error=False, reason="nope"):
    return ProviderAttempt(provider=provider, ok=False, reason=reason, upstream_error=upstream_error)


def test_classify_found():
    result = PlaceImageResult(public_url="/media/x.jpg", provider_used=ImageProvider.UNSPLASH, upload_ok=True)
    classified = classify_place_image_result(result)
    assert classified.status is ResolveStatus.FOUND
    assert classified.url == "/media/x.jpg"


def test_classify_not_found_when_sources_answered_empty():
    result = PlaceImageResult(
        error=ALL_SOURCES_FAILED,
        attempts=[_attempt(ImageProvider.UNSPLASH, reason="No results found for query: x")],
    )
    classified = classify_place_image_result(result)
    assert classified.status is ResolveStatus.NOT_FOUND
    assert classified.url is None


def test_classify_unavailable_on_upstream_error():
    result = PlaceImageResult(
        error=ALL_SOURCES_FAILED,
        attempts=[
            _attempt(ImageProvider.UNSPLASH, upstream_error=True, reason="HTTP 503: busy"),
            _attempt(ImageProvider.MAPBOX, reason="Skipped (no coordinates)"),
        ],
    )
    classified = classify_place_image_result(result)
    assert classified.status is ResolveStatus.UNAVAILABLE
    assert "unsplash: HTTP 503: busy" in classified.error


def test_classify_unavailable_on_storage_failure():
    result = PlaceImageResult(provider_used=ImageProvider.GOOGLE, error="disk full")
    classified = classify_place_image_result(result)
    assert classified.status is ResolveStatus.UNAVAILABLE
    assert classified.error == "disk full"


def test_place_image_resolver_builds_request_from_cache_key():
    seen = []

    def cacher(request: PlaceImageRequest) -> PlaceImageResult:
        seen.append(request)
        return PlaceImageResult(public_url="/media/place-images/unsplash/abc.jpg", upload_ok=True)

    url = asyncio.run(PlaceImageResolver(cacher).resolve("porto-day-2", "Ribeira", "Porto", "Portugal"))

    assert url == "/media/place-images/unsplash/abc.jpg"
    assert seen == [
        PlaceImageRequest(trip_id="porto-day-2", title="Ribeira", city="Porto", country="Portugal")
    ]


def test_resolve_returns_none_and_logs_when_unavailable(caplog):
    def cacher(request):
        return PlaceImageResult(
            error=ALL_SOURCES_FAILED,
            attempts=[_attempt(ImageProvider.UNSPLASH, upstream_error=True, reason="timed out")],
        )

    with caplog.at_level(logging.WARNING, logger="services.image_resolver"):
        url = asyncio.run(PlaceImageResolver(cacher).resolve("porto-day-1", "Ribeira", "Porto"))

    assert url is None
    assert "porto-day-1" in caplog.text
    assert "timed out" in caplog.text


def test_resolve_swallows_cacher_exceptions():
    def cacher(request):
        raise ConnectionError("network unreachable")

    resolver = PlaceImageResolver(cacher)
    assert asyncio.run(resolver.resolve("porto-day-1", "Ribeira", "Porto")) is None

    # resolve_detailed itself does not hide the error; resolve does.
    with pytest.raises(ConnectionError):
        asyncio.run(resolver.resolve_detailed("porto-day-1", "Ribeira", "Porto"))
