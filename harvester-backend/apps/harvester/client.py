"""
Playliner API Client

Performs the two per-item lookups against the Playliner news backend:
- getVersions: version history of a news item
- getFull: full body of a news item

Both return the response's `data` field, or None when the request fails for any
reason (transport error, non-2xx status, bad body, `success: false`). Nothing is
raised to the caller and nothing is retried here; an item left incomplete is
fetched again on a later pass.
"""

import logging
from typing import Any, Optional

import httpx

from utils.config import settings

logger = logging.getLogger(__name__)

VERSIONS_PATH = "/getVersions"
FULL_PATH = "/getFull"


class PlaylinerClient:
    """Async client for the Playliner news lookups."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        lang: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            base_url: API base, defaults to settings.PLAYLINER_API_BASE
            token: Bearer token, defaults to settings.BEARER_TOKEN
            lang: Language sent with each lookup, defaults to settings.API_LANG
            timeout: Per-request timeout in seconds, defaults to settings.API_TIMEOUT
            client: Pre-built httpx client (tests inject one with a mock transport)
        """
        self.base_url = (base_url or settings.PLAYLINER_API_BASE).rstrip("/")
        self.token = settings.BEARER_TOKEN if token is None else token
        self.lang = lang or settings.API_LANG
        self.timeout = timeout or settings.API_TIMEOUT
        self.client = client or httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._headers(),
        )
        if client is not None:
            self.client.headers.update(self._headers())

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json, text/plain, */*",
            "accept-language": "en-US,en;q=0.9",
            "authorization": f"Bearer {self.token}",
            "content-type": "application/json",
            "referer": settings.PLAYLINER_REFERER,
        }

    async def fetch_version(self, news_id: int) -> Optional[Any]:
        """Fetch the version payload of a news item, or None on failure."""
        return await self._lookup(VERSIONS_PATH, news_id)

    async def fetch_full(self, news_id: int) -> Optional[Any]:
        """Fetch the full payload of a news item, or None on failure."""
        return await self._lookup(FULL_PATH, news_id)

    async def _lookup(self, path: str, news_id: int) -> Optional[Any]:
        url = f"{self.base_url}{path}"

        try:
            response = await self.client.post(url, json={"newsId": news_id, "lang": self.lang})
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Lookup rejected: path=%s, news_id=%s, status=%d",
                path, news_id, e.response.status_code,
            )
            return None
        except httpx.HTTPError as e:
            logger.warning(
                "Lookup failed: path=%s, news_id=%s, error=%s",
                path, news_id, str(e) or type(e).__name__,
            )
            return None
        except ValueError as e:
            logger.warning("Lookup returned invalid JSON: path=%s, news_id=%s, error=%s", path, news_id, str(e))
            return None

        if not isinstance(body, dict) or not body.get("success"):
            logger.warning("Lookup unsuccessful: path=%s, news_id=%s", path, news_id)
            return None

        return body.get("data")

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "PlaylinerClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
