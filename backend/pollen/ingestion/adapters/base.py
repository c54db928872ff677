"""
Shared HTTP plumbing for source adapters.
"""

import logging
from typing import Any, Optional

import httpx

from ...errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = "tomorrows-pollen-collector/1.0"


class BaseAdapter:
    """
    Owns one httpx.AsyncClient with a bounded timeout.

    Transport failures and non-2xx statuses become FetchError. There is no
    retry here; the pipeline decides what a failure means.
    """

    source_name = "base"

    def __init__(
        self,
        timeout: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            timeout: Seconds allowed per request
            client: Pre-built client (tests inject a MockTransport one)
        """
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    def get_source_name(self) -> str:
        return self.source_name

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"{method} {url} returned {e.response.status_code}",
                source=self.source_name,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"{method} {url} failed: {e.__class__.__name__}: {e}",
                source=self.source_name,
            ) from e

        logger.debug(f"{self.source_name}: {method} {url} -> {response.status_code} ({len(response.content)} bytes)")
        return response

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
