import hashlib
import io

import pytest
from PIL import Image

from domain.models import ImageProvider, PlaceImageRequest, ProviderAttempt
from repositories import PlaceImagesRepository
from services import image_providers
from services import place_image_cache as pic
from services.image_providers import ProviderFetch
from storage.file_storage import FileStorage


def _image_bytes(fmt="JPEG", color="blue", mode="RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, (64, 48), color=color).save(buf, format=fmt)
    return buf.getvalue()


def _ok(provider, data=None, content_type="image/jpeg"):
    return ProviderFetch(
        data=data if data is not None else _image_bytes(),
        content_type=content_type,
        attempt=ProviderAttempt(provider=provider, ok=True, status=200),
    )


def _fail(provider, reason="nope"):
    return ProviderFetch(
        data=b"", content_type="image/jpeg", attempt=ProviderAttempt(provider=provider, ok=False, reason=reason)
    )


@pytest.fixture
def providers(monkeypatch):
    """Replace all provider fetchers; tests set the outcome per provider."""
    outcome = {
        ImageProvider.GOOGLE: _fail(ImageProvider.GOOGLE),
        ImageProvider.UNSPLASH: _fail(ImageProvider.UNSPLASH),
        ImageProvider.MAPBOX: _fail(ImageProvider.MAPBOX),
    }
    calls = []

    def make(provider):
        def fake(*args):
            calls.append((provider, args))
            return outcome[provider]

        return fake

    monkeypatch.setattr(image_providers, "fetch_google_photo", make(ImageProvider.GOOGLE))
    monkeypatch.setattr(image_providers, "fetch_unsplash_image", make(ImageProvider.UNSPLASH))
    monkeypatch.setattr(image_providers, "generate_mapbox_thumbnail", make(ImageProvider.MAPBOX))
    return outcome, calls


@pytest.fixture
def storage(tmp_path):
    return FileStorage(str(tmp_path / "media"))


def _cache(request, storage, session_factory):
    return pic.cache_place_image_with_details(
        request, storage=storage, repo=PlaceImagesRepository(), session_factory=session_factory
    )


def test_place_hash_is_deterministic():
    expected = hashlib.sha1("|Alfama||".encode()).hexdigest()[:16]
    assert pic.generate_place_hash(None, "Alfama", None, None) == expected
    assert pic.generate_place_hash("pid", "Alfama", 38.7, -9.1) == pic.generate_place_hash(
        "pid", "Alfama", 38.7, -9.1
    )
    assert pic.generate_place_hash("pid", "Alfama", 38.7, -9.1) != expected


def test_search_query():
    assert pic.build_search_query("Alfama", "Lisbon", "Portugal") == "Alfama Lisbon Portugal"
    assert pic.build_search_query("Alfama", "Lisbon", None) == "Alfama Lisbon"
    assert pic.build_search_query("Alfama", None, "Portugal") == "Alfama"


def test_ensure_jpeg_converts_png_and_keeps_jpeg():
    png = _image_bytes("PNG", mode="RGBA", color=(0, 128, 255, 128))
    converted = pic.ensure_jpeg(png, "image/png")
    assert converted[:2] == b"\xff\xd8"
    with Image.open(io.BytesIO(converted)) as img:
        assert img.format == "JPEG"
        assert img.size == (64, 48)

    jpeg = _image_bytes()
    assert pic.ensure_jpeg(jpeg, "image/jpeg") is jpeg


def test_ensure_jpeg_leaves_undecodable_payload():
    junk = b"not an image" * 20
    assert pic.ensure_jpeg(junk, "image/webp") == junk


def test_unsplash_image_is_stored_and_recorded(providers, storage, session_factory):
    outcome, calls = providers
    outcome[ImageProvider.UNSPLASH] = _ok(ImageProvider.UNSPLASH)
    request = PlaceImageRequest(trip_id="lisbon-day-1", title="Alfama", city="Lisbon", country="Portugal")

    result = _cache(request, storage, session_factory)

    place_hash = pic.generate_place_hash(None, "Alfama", None, None)
    assert result.upload_ok is True
    assert result.provider_used is ImageProvider.UNSPLASH
    assert result.public_url == f"/media/place-images/unsplash/{place_hash}.jpg"
    assert result.error is None
    assert storage.file_exists(f"place-images/unsplash/{place_hash}.jpg")
    # No photo_ref: Google is skipped entirely.
    assert [c[0] for c in calls] == [ImageProvider.UNSPLASH]
    assert calls[0][1] == ("Alfama Lisbon Portugal",)

    with session_factory() as session:
        rows = PlaceImagesRepository().find_by_hash(session, place_hash)
    assert len(rows) == 1
    assert rows[0].provider is ImageProvider.UNSPLASH


def test_google_photo_takes_priority(providers, storage, session_factory):
    outcome, calls = providers
    outcome[ImageProvider.GOOGLE] = _ok(ImageProvider.GOOGLE)
    outcome[ImageProvider.UNSPLASH] = _ok(ImageProvider.UNSPLASH)
    request = PlaceImageRequest(trip_id="t1", title="Belem Tower", photo_ref="ref-9")

    result = _cache(request, storage, session_factory)

    assert result.provider_used is ImageProvider.GOOGLE
    assert [c[0] for c in calls] == [ImageProvider.GOOGLE]
    assert len(result.attempts) == 1


def test_falls_through_to_mapbox_and_converts_png(providers, storage, session_factory):
    outcome, calls = providers
    outcome[ImageProvider.MAPBOX] = _ok(ImageProvider.MAPBOX, data=_image_bytes("PNG"), content_type="image/png")
    request = PlaceImageRequest(trip_id="t1", title="Miradouro", photo_ref="ref", lat=38.71, lng=-9.13)

    result = _cache(request, storage, session_factory)

    assert result.provider_used is ImageProvider.MAPBOX
    assert [a.provider for a in result.attempts] == [
        ImageProvider.GOOGLE,
        ImageProvider.UNSPLASH,
        ImageProvider.MAPBOX,
    ]
    assert calls[-1] == (ImageProvider.MAPBOX, (38.71, -9.13))
    stored = storage.get_absolute_path(result.public_url[len("/media/"):]).read_bytes()
    assert stored[:2] == b"\xff\xd8"


def test_all_sources_failing(providers, storage, session_factory):
    request = PlaceImageRequest(trip_id="t1", title="Nowhere")

    result = _cache(request, storage, session_factory)

    assert result.public_url is None
    assert result.upload_ok is False
    assert result.error == pic.ALL_SOURCES_FAILED
    assert result.attempts[-1].provider is ImageProvider.MAPBOX
    assert result.attempts[-1].reason == "Skipped (no coordinates)"


def test_storage_failure_is_reported(providers, session_factory, tmp_path):
    outcome, _ = providers
    outcome[ImageProvider.UNSPLASH] = _ok(ImageProvider.UNSPLASH)

    class BrokenStorage(FileStorage):
        def save_place_image(self, provider, place_hash, data):
            raise OSError("No space left on device")

    broken = BrokenStorage(str(tmp_path / "media"))

    result = _cache(PlaceImageRequest(trip_id="t1", title="Alfama"), broken, session_factory)

    assert result.public_url is None
    assert result.upload_ok is False
    assert result.provider_used is ImageProvider.UNSPLASH
    assert result.error == "No space left on device"


def test_cache_place_image_returns_url_only(monkeypatch):
    monkeypatch.setattr(
        pic,
        "cache_place_image_with_details",
        lambda request: pic.PlaceImageResult(public_url="/media/x.jpg", upload_ok=True),
    )
    assert pic.cache_place_image(PlaceImageRequest(trip_id="t", title="x")) == "/media/x.jpg"


def test_place_hash_formats_coordinates_like_the_web_client():
    assert pic.generate_place_hash("pid", "Eiffel Tower", 48.0, 2.5) == hashlib.sha1(
        "pid|Eiffel Tower|48|2.5".encode()
    ).hexdigest()[:16]
    assert pic.generate_place_hash(None, "Null Island", 0.0, 0.0) == pic.generate_place_hash(
        None, "Null Island", None, None
    )


def test_stored_image_is_reused_without_provider_calls(providers, storage, session_factory):
    outcome, calls = providers
    outcome[ImageProvider.UNSPLASH] = _ok(ImageProvider.UNSPLASH)
    request = PlaceImageRequest(trip_id="lisbon-day-1", title="Alfama", city="Lisbon")

    first = _cache(request, storage, session_factory)
    second = _cache(request, storage, session_factory)

    assert len(calls) == 1
    assert second.public_url == first.public_url
    assert second.provider_used is ImageProvider.UNSPLASH
    assert second.upload_ok is True
    assert second.attempts == []


def test_stored_row_without_file_is_fetched_again(providers, storage, session_factory):
    outcome, calls = providers
    outcome[ImageProvider.UNSPLASH] = _ok(ImageProvider.UNSPLASH)
    request = PlaceImageRequest(trip_id="t1", title="Alfama")

    first = _cache(request, storage, session_factory)
    storage.delete_file(first.public_url[len("/media/"):])
    second = _cache(request, storage, session_factory)

    assert len(calls) == 2
    assert second.public_url == first.public_url
    assert storage.file_exists(first.public_url[len("/media/"):])


def test_disabled_providers_are_not_called(providers, storage, session_factory, monkeypatch):
    outcome, calls = providers
    outcome[ImageProvider.UNSPLASH] = _ok(ImageProvider.UNSPLASH)
    monkeypatch.setattr(pic.settings, "IMAGE_PROVIDERS_ENABLED", False)

    result = _cache(PlaceImageRequest(trip_id="t1", title="Alfama", lat=38.7, lng=-9.1), storage, session_factory)

    assert calls == []
    assert result.public_url is None
    assert result.error == pic.ALL_SOURCES_FAILED
    assert [a.reason for a in result.attempts] == [pic.PROVIDERS_DISABLED] * 3
