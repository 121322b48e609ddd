"""HttpCatalogSource — GET a JSON array of catalog entries over HTTP(S)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import CatalogUnavailableError

logger = logging.getLogger(__name__)


class HttpCatalogSource:
    """Lists the catalog from a remote endpoint.

    Pass ``client`` to share a connection pool (or to inject a mock transport
    in tests); otherwise a short-lived client is opened per fetch.
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._url = url
        self._client = client
        self._headers = {"Accept": "application/json", **(headers or {})}

    @property
    def url(self) -> str:
        return self._url

    async def fetch_entries(self) -> list[dict[str, Any]]:
        logger.debug("catalog-http: GET %s", self._url)
        if self._client is not None:
            response = await self._get(self._client)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await self._get(client)

        try:
            data = response.json()
        except ValueError as exc:
            raise CatalogUnavailableError(
                f"Catalog at {self._url} did not return valid JSON"
            ) from exc
        if not isinstance(data, list):
            raise CatalogUnavailableError(
                f"Catalog at {self._url} must return a JSON array, "
                f"got {type(data).__name__}"
            )
        return data

    async def _get(self, client: httpx.AsyncClient) -> httpx.Response:
        try:
            response = await client.get(self._url, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise CatalogUnavailableError(
                f"Catalog at {self._url} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise CatalogUnavailableError(
                f"Catalog request to {self._url} failed: {exc}"
            ) from exc
        return response

    def info(self) -> dict[str, Any]:
        return {"type": "http", "url": self._url}
