"""
Wikimedia Commons image proxy.

Serves `/api/wikimedia?file=<name>` by streaming
`Special:FilePath/<name>` from Commons.
"""
import logging
from typing import Optional

import requests
from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from services import wikimedia

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_CACHE_CONTROL = "public, max-age=86400"


@router.get("/wikimedia")
def wikimedia_proxy(file: Optional[str] = Query(None, description="Commons file name")):
    """Proxy a Commons file, keeping upstream content type and cache headers."""
    if not file:
        return PlainTextResponse("Missing file parameter.", status_code=400)

    try:
        upstream = wikimedia.fetch_wikimedia_file(file)
    except requests.RequestException as exc:
        logger.warning("Wikimedia fetch failed for %r: %s", file, exc)
        return PlainTextResponse("Failed to reach Wikimedia.", status_code=502)

    if not upstream.ok:
        body = upstream.text
        upstream.close()
        return PlainTextResponse(body or "Failed to fetch image.", status_code=upstream.status_code)

    if upstream.raw is None:
        upstream.close()
        return PlainTextResponse("No image content returned.", status_code=502)

    headers = {
        "cache-control": upstream.headers.get("cache-control") or DEFAULT_CACHE_CONTROL,
    }
    return StreamingResponse(
        upstream.iter_content(chunk_size=64 * 1024),
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type") or "application/octet-stream",
        headers=headers,
        background=BackgroundTask(upstream.close),
    )
