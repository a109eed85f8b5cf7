import asyncio
import json

import db
from domain.models import ResolveResult
from scripts import warm_day_images
from services import day_images
from services.day_images import DayImageAssembler
from services.image_resolver import ImageResolver


class StaticResolver(ImageResolver):
    async def resolve_detailed(self, cache_key, title, city, country=None):
        if title == "missing":
            return ResolveResult.not_found()
        return ResolveResult.found(f"https://img.example/{cache_key}.jpg")


def test_load_itineraries_skips_incomplete_entries(tmp_path):
    path = tmp_path / "itineraries.json"
    path.write_text(
        json.dumps(
            [
                {"slug": "lisbon", "city": "Lisbon", "day_plans": [{"title": "Alfama"}]},
                {"slug": "no-city"},
                "garbage",
            ]
        )
    )
    assert [i["slug"] for i in warm_day_images.load_itineraries(path)] == ["lisbon"]


def test_warm_reports_per_itinerary_outcome():
    itineraries = [
        {"slug": "lisbon", "city": "Lisbon", "day_plans": [{"title": "Alfama"}, {"title": "Belem"}]},
        {"slug": "porto", "city": "Porto", "day_plans": [{"title": "missing"}]},
        {
            "slug": "braga",
            "city": "Braga",
            "day_plans": [{"title": "missing"}],
            "fallback_image": {"src": "/static/braga.jpg", "alt": "Braga"},
        },
    ]
    assembler = DayImageAssembler(StaticResolver())

    outcome = asyncio.run(warm_day_images.warm(itineraries, assembler=assembler))

    assert outcome == {"lisbon": True, "porto": False, "braga": True}
    assert "lisbon-day-2" in assembler.cache


def test_main_rejects_unreadable_file(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    assert warm_day_images.main([str(bad)]) == 2


def test_main_uses_its_own_assembler_for_timeout(tmp_path, monkeypatch):
    path = tmp_path / "itineraries.json"
    path.write_text(json.dumps([{"slug": "lisbon", "city": "Lisbon", "day_plans": [{"title": "Alfama"}]}]))
    default = day_images.get_default_day_image_assembler()
    default_timeout = default.timeout_seconds
    used = []

    async def fake_warm(itineraries, concurrency=4, assembler=None):
        used.append(assembler)
        return {item["slug"]: True for item in itineraries}

    monkeypatch.setattr(warm_day_images, "warm", fake_warm)
    monkeypatch.setattr(db, "init_db", lambda: None)

    assert warm_day_images.main([str(path), "--timeout", "3"]) == 0

    assert used[0] is not default
    assert used[0].timeout_seconds == 3
    assert default.timeout_seconds == default_timeout
