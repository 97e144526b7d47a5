"""Async client for the Paperless-ngx REST API.

Only the read side the mirror needs: paginated document listing and the tag
catalog. Authentication is a static API token.
"""

import asyncio
import logging

import httpx

from httpx import RemoteProtocolError

from papermirror.schemas.paperless import (
    DocumentPage,
    PaperlessDocument,
    PaperlessPaginatedResponse,
    PaperlessTag,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1.0


async def _retry_on_disconnect(coro_fn, *args, **kwargs):
    """Retry an async call on ``RemoteProtocolError`` (server disconnect).

    Retries up to ``MAX_RETRIES`` times with a fixed delay between attempts.
    Every other error propagates immediately.
    """
    for attempt in range(MAX_RETRIES + 1):
        try:
            return await coro_fn(*args, **kwargs)
        except RemoteProtocolError:
            if attempt == MAX_RETRIES:
                raise
            logger.warning(
                "Connection dropped (attempt %d/%d), retrying...",
                attempt + 1,
                MAX_RETRIES,
            )
            await asyncio.sleep(RETRY_DELAY)


class PaperlessClient:
    """Async HTTP client for Paperless-ngx.

    Usage::

        async with PaperlessClient(base_url, token) as client:
            page = await client.fetch_documents(1, 100)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Token {token}",
                "Accept": "application/json; version=5",
            },
            timeout=30.0,
            transport=transport,
        )

    async def __aenter__(self) -> "PaperlessClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict | None = None) -> dict:
        """GET a JSON endpoint. Retries on connection drop."""
        return await _retry_on_disconnect(self._get_raw, path, params=params)

    async def _get_raw(self, path: str, params: dict | None = None) -> dict:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def _get_all_pages(self, path: str, params: dict | None = None) -> list[dict]:
        """Fetch all pages of a paginated endpoint."""
        params = dict(params) if params else {}
        results: list[dict] = []
        page = 1

        while True:
            params["page"] = page
            data = await self._get(path, params=params)
            results.extend(data["results"])
            if data.get("next") is None:
                break
            page += 1

        return results

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def fetch_documents(self, page: int, page_size: int) -> DocumentPage:
        """Fetch a single page of documents.

        Args:
            page: Page number (1-indexed).
            page_size: Number of documents per page.

        Returns:
            The page's documents and whether another page follows.
        """
        data = await self._get(
            "/api/documents/", params={"page": page, "page_size": page_size}
        )
        response = PaperlessPaginatedResponse.model_validate(data)
        docs = [PaperlessDocument.model_validate(r) for r in response.results]
        logger.debug(
            "Fetched documents page %d (%d results, count=%d)",
            page,
            len(docs),
            response.count,
        )
        return DocumentPage(results=docs, has_more=response.next is not None)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def fetch_tag_catalog(self) -> list[PaperlessTag]:
        """Fetch all tags (all pages). Never cached."""
        results = await self._get_all_pages("/api/tags/", params={"page_size": 100})
        return [PaperlessTag.model_validate(r) for r in results]
