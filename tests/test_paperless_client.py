"""Tests for the Paperless-ngx API client."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from papermirror.config import PAPERLESS_API_TOKEN, PAPERLESS_BASE_URL
from papermirror.integrations.paperless import (
    MAX_RETRIES,
    PaperlessClient,
    _retry_on_disconnect,
)

# ------------------------------------------------------------------
# Unit tests for _retry_on_disconnect (no live Paperless needed)
# ------------------------------------------------------------------


async def test_retry_on_remote_protocol_error():
    """First call raises RemoteProtocolError, second succeeds."""
    mock_fn = AsyncMock(side_effect=[httpx.RemoteProtocolError("peer closed"), "ok"])

    with patch("papermirror.integrations.paperless.asyncio.sleep", new_callable=AsyncMock):
        result = await _retry_on_disconnect(mock_fn, "arg1", key="val")

    assert result == "ok"
    assert mock_fn.call_count == 2
    mock_fn.assert_called_with("arg1", key="val")


async def test_retry_exhausted_raises():
    """All calls raise — final RemoteProtocolError is re-raised."""
    mock_fn = AsyncMock(
        side_effect=[httpx.RemoteProtocolError("drop")] * (MAX_RETRIES + 1)
    )

    with (
        patch("papermirror.integrations.paperless.asyncio.sleep", new_callable=AsyncMock),
        pytest.raises(httpx.RemoteProtocolError),
    ):
        await _retry_on_disconnect(mock_fn)

    assert mock_fn.call_count == MAX_RETRIES + 1


async def test_other_errors_not_retried():
    mock_fn = AsyncMock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(httpx.ConnectError):
        await _retry_on_disconnect(mock_fn)

    assert mock_fn.call_count == 1


# ------------------------------------------------------------------
# Client tests against a mock transport
# ------------------------------------------------------------------

_DOCUMENT = {
    "id": 362,
    "correspondent": 125,
    "document_type": 4,
    "storage_path": None,
    "title": "WIZO Konzert in Nürnberg",
    "content": "WIZO bringt das Licht nach Nürnberg!",
    "tags": [17, 111],
    "created": "2026-02-07",
    "modified": "2025-05-20T21:40:03.069192+02:00",
    "added": "2025-05-20T21:31:17.456006+02:00",
    "archive_serial_number": None,
    "original_file_name": "E-Ticket-WIZO.pdf",
    "notes": [],
}


def _client(handler) -> PaperlessClient:
    return PaperlessClient(
        "https://paperless.example.com/", "test-token", transport=httpx.MockTransport(handler)
    )


async def test_fetch_documents_has_more_from_next_link():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "count": 425,
                "next": "https://paperless.example.com/api/documents/?page=2&page_size=100",
                "previous": None,
                "results": [_DOCUMENT],
            },
        )

    async with _client(handler) as client:
        page = await client.fetch_documents(1, 100)

    assert page.has_more is True
    assert page.results[0].id == 362
    assert page.results[0].tags == [17, 111]
    assert page.results[0].modified.utcoffset().total_seconds() == 7200
    assert seen[0].url.path == "/api/documents/"
    assert seen[0].url.params["page"] == "1"
    assert seen[0].url.params["page_size"] == "100"
    assert seen[0].headers["Authorization"] == "Token test-token"


async def test_fetch_documents_last_page():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"count": 1, "next": None, "previous": None, "results": [_DOCUMENT]}
        )

    async with _client(handler) as client:
        page = await client.fetch_documents(1, 100)

    assert page.has_more is False


async def test_fetch_documents_http_error_propagates():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    async with _client(handler) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.fetch_documents(1, 100)


async def test_fetch_tag_catalog_follows_pages():
    pages = {
        "1": {
            "count": 2,
            "next": "https://paperless.example.com/api/tags/?page=2",
            "results": [{"id": 10, "name": "Finance", "slug": "finance"}],
        },
        "2": {
            "count": 2,
            "next": None,
            "results": [{"id": 20, "name": "Archive", "slug": "archive"}],
        },
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags/"
        return httpx.Response(200, json=pages[request.url.params["page"]])

    async with _client(handler) as client:
        tags = await client.fetch_tag_catalog()

    assert [(t.id, t.name) for t in tags] == [(10, "Finance"), (20, "Archive")]


# ------------------------------------------------------------------
# Integration tests (require live Paperless)
# ------------------------------------------------------------------

_skip_no_paperless = pytest.mark.skipif(
    not PAPERLESS_API_TOKEN or PAPERLESS_API_TOKEN == "placeholder",
    reason="No real Paperless API token configured",
)


@pytest.fixture()
async def client():
    async with PaperlessClient(PAPERLESS_BASE_URL, PAPERLESS_API_TOKEN) as c:
        yield c


@_skip_no_paperless
async def test_live_fetch_documents(client: PaperlessClient):
    page = await client.fetch_documents(1, 5)
    assert isinstance(page.has_more, bool)
    for doc in page.results:
        assert doc.id > 0
        assert isinstance(doc.title, str)


@_skip_no_paperless
async def test_live_fetch_tag_catalog(client: PaperlessClient):
    tags = await client.fetch_tag_catalog()
    assert isinstance(tags, list)
    for tag in tags:
        assert tag.id > 0
