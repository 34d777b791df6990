"""HTTP resolver backend: maps a "title artists" query to a video id."""

import logging
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx

from playmirror.config.settings import ResolverSettings
from playmirror.domain.ports import IResolverClient

logger = logging.getLogger(__name__)

VIDEO_ID_LENGTH = 11


def extract_video_id(url: str) -> str | None:
    """Extract a video id from a watch URL.

    Takes the "v" query parameter (``/watch?v=...``), else the last path segment
    if it has the 11-character id shape (``youtu.be/<id>``, ``/embed/<id>``).
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        logger.debug(f"Unparseable result URL: {url!r}")
        return None

    video_ids = parse_qs(parsed.query).get("v")
    if video_ids and video_ids[0]:
        return video_ids[0]

    segments = [segment for segment in parsed.path.split("/") if segment]
    if segments and len(segments[-1]) == VIDEO_ID_LENGTH:
        return segments[-1]
    return None


def _first_result(payload: Any) -> dict[str, Any] | None:
    # The backend answers either a bare list or {"results": [...]}
    if isinstance(payload, dict):
        payload = payload.get("results") or payload.get("items") or []
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        return payload[0]
    return None


# Hey future me - this is SYNCHRONOUS on purpose (httpx.Client, not AsyncClient). The resolution
# cache runs it through asyncio.to_thread so it never blocks the loop. lookup() never raises for
# backend trouble: misconfiguration, network errors and garbage all come back as None, which the
# cache treats as "no match, retry next time".
class HttpResolverClient(IResolverClient):
    """Resolver client for the search backend (``GET /search?q=ytsearch:...``)."""

    def __init__(self, settings: ResolverSettings, http_client: httpx.Client | None = None) -> None:
        """Initialize resolver client.

        Args:
            settings: Backend URL, API key and limits
            http_client: Optional preconfigured client (tests inject a MockTransport)
        """
        self.settings = settings
        self._client = http_client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.timeout)
        return self._client

    def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def lookup(self, query: str) -> str | None:
        """Return the video id of the best match for query, or None."""
        query = query.strip()
        if not query:
            return None
        if not self.settings.is_configured:
            logger.warning("Resolver backend not configured, cannot resolve tracks")
            return None

        url = f"{self.settings.base_url.rstrip('/')}/search"
        params: dict[str, str | int] = {
            "q": f"ytsearch:{query}",
            "n": self.settings.max_results,
        }
        try:
            response = self._get_client().get(
                url, params=params, headers={"X-API-KEY": self.settings.api_key}
            )
            response.raise_for_status()
            first = _first_result(response.json())
        except httpx.HTTPError as e:
            logger.warning(f"Resolver request failed for {query!r}: {e}")
            return None
        except ValueError:
            logger.warning(f"Resolver returned invalid JSON for {query!r}")
            return None

        if first is None:
            logger.debug(f"Resolver returned no results for {query!r}")
            return None

        video_id = first.get("videoId") or first.get("id")
        if isinstance(video_id, str) and len(video_id) == VIDEO_ID_LENGTH:
            return video_id
        return extract_video_id(str(first.get("url") or ""))
