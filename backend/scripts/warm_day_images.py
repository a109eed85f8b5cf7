"""Pre-resolve day image cards for a set of city itineraries.

Usage:
    python -m scripts.warm_day_images itineraries.json [--timeout 20] [--concurrency 4]

The JSON file holds a list of itineraries:
    [{"slug": "lisbon-3-days", "city": "Lisbon", "country": "Portugal",
      "day_plans": [{"title": "Alfama and the castle"}, ...],
      "fallback_image": {"src": "...", "alt": "..."}}]

Each place image is stored in media storage and recorded in the
`place_images` table, so the API server later serves it without contacting
any image provider.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

LOG = logging.getLogger("warm_day_images")


def load_itineraries(path: Path) -> List[Dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of itineraries")
    return [item for item in data if isinstance(item, dict) and item.get("slug") and item.get("city")]


async def warm(
    itineraries: List[Dict[str, Any]],
    concurrency: int = 4,
    assembler=None,
) -> Dict[str, bool]:
    """Assemble cards for each itinerary; returns slug -> whether cards were built."""
    from domain.models import DayPlan, ImageRef
    from services.day_images import get_default_day_image_assembler

    assembler = assembler or get_default_day_image_assembler()
    semaphore = asyncio.Semaphore(max(1, concurrency))
    outcome: Dict[str, bool] = {}

    async def one(item: Dict[str, Any]) -> None:
        day_plans = [DayPlan.from_dict(d) for d in item.get("day_plans") or [] if isinstance(d, dict)]
        async with semaphore:
            cards = await assembler.get_day_image_cards(
                item["slug"],
                item["city"],
                item.get("country"),
                day_plans,
                ImageRef.from_dict(item.get("fallback_image")),
            )
        outcome[item["slug"]] = cards is not None
        LOG.info("%s: %s", item["slug"], f"{len(cards)} cards" if cards else "no cards")

    await asyncio.gather(*(one(item) for item in itineraries))
    return outcome


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("itineraries", type=Path, help="JSON file with itineraries")
    parser.add_argument("--timeout", type=float, default=None, help="Per-day lookup timeout in seconds")
    parser.add_argument("--concurrency", type=int, default=4, help="Itineraries processed at once")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    load_dotenv(Path(__file__).resolve().parents[1] / ".env")

    from db import init_db
    from services.day_images import build_day_image_assembler

    try:
        itineraries = load_itineraries(args.itineraries)
    except (OSError, ValueError) as exc:
        LOG.error("Cannot read %s: %s", args.itineraries, exc)
        return 2

    init_db()
    outcome = asyncio.run(
        warm(
            itineraries,
            concurrency=args.concurrency,
            assembler=build_day_image_assembler(timeout_seconds=args.timeout),
        )
    )
    built = sum(1 for ok in outcome.values() if ok)
    print(f"Itineraries with day images: {built}/{len(outcome)}")
    return 0 if built == len(outcome) else 1


if __name__ == "__main__":
    sys.exit(main())
