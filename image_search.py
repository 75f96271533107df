import logging
from typing import Optional
from urllib.parse import quote

import requests

from config import get_settings

logger = logging.getLogger(__name__)

PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"
PLACEHOLDER_URL = "https://placehold.co/600x400.png?text={text}"


def placeholder_image(text: str) -> str:
    return PLACEHOLDER_URL.format(text=quote(text or "Challenge", safe=""))


def search_photo(query: str, timeout: float = 10.0) -> Optional[str]:
    """
    Fetch one landscape photo URL from Pexels for `query`.

    Returns None (and logs why) when the key is missing, the query is blank,
    the request fails or nothing matches. Never raises.
    """
    api_key = get_settings().pexels_api_key
    if not api_key:
        logger.warning("PEXELS_API_KEY is not configured; skipping photo search.")
        return None

    if not query or not query.strip():
        logger.warning("Photo search query is empty.")
        return None

    try:
        resp = requests.get(
            PEXELS_SEARCH_URL,
            params={"query": query.strip(), "per_page": 1, "orientation": "landscape"},
            headers={"Authorization": api_key},
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.error(f"Failed to fetch image from Pexels: {e}")
        return None

    if resp.status_code >= 400:
        logger.error(f"Pexels API error: {resp.status_code} – {resp.text[:200]}")
        return None

    try:
        photos = resp.json().get("photos") or []
    except ValueError:
        logger.error("Pexels API returned a non-JSON body.")
        return None

    if not photos:
        logger.info(f"No photos found on Pexels for query: {query}")
        return None

    src = photos[0].get("src") or {}
    return src.get("large") or src.get("medium") or src.get("original")
