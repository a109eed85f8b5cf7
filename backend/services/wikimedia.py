"""Wikimedia Commons helpers.

Commons `Special:FilePath` URLs are rewritten to the internal
`/api/wikimedia` proxy so image traffic to Commons goes through one endpoint
we control (caching headers, user agent, rate limits).
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote, unquote

import requests

WIKIMEDIA_SPECIAL_FILE_PATH = "https://commons.wikimedia.org/wiki/Special:FilePath/"
WIKIMEDIA_PROXY_PATH = "/api/wikimedia"
WIKIMEDIA_USER_AGENT = "Mozilla/5.0 (compatible; TripImages/1.0)"

# Characters encodeURIComponent leaves alone besides alphanumerics.
_URI_COMPONENT_SAFE = "-_.!~*'()"

logger = logging.getLogger(__name__)
_session = requests.Session()


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def normalize_wikimedia_src(src: str) -> str:
    """Rewrite a Commons file URL to the internal proxy path.

    Any other URL is returned trimmed but otherwise unchanged.
    """
    trimmed = src.strip()
    if not trimmed:
        return trimmed

    if trimmed.startswith(WIKIMEDIA_SPECIAL_FILE_PATH):
        raw_file = trimmed[len(WIKIMEDIA_SPECIAL_FILE_PATH):]
        decoded_file = unquote(raw_file)
        return f"{WIKIMEDIA_PROXY_PATH}?file={encode_uri_component(decoded_file)}"

    return trimmed


def wikimedia_file_url(file_param: str) -> str:
    """Upstream Special:FilePath URL for a (possibly encoded) file name."""
    return f"{WIKIMEDIA_SPECIAL_FILE_PATH}{encode_uri_component(unquote(file_param))}"


def fetch_wikimedia_file(file_param: str, timeout: Optional[float] = 10.0) -> requests.Response:
    """Stream a Commons file; raises requests.RequestException when unreachable."""
    url = wikimedia_file_url(file_param)
    logger.debug("Fetching Wikimedia file %s", url)
    return _session.get(
        url,
        headers={
            "User-Agent": WIKIMEDIA_USER_AGENT,
            "Accept": "image/*,*/*;q=0.8",
        },
        allow_redirects=True,
        stream=True,
        timeout=timeout,
    )
