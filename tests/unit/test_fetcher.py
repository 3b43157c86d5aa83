import httpx
import pytest
from pytest_httpx import HTTPXMock

from py_export_d365.fetcher import fetch_all_pages

pytestmark = pytest.mark.unit

FIRST_PAGE_URL = "https://org.example.com/api/data/v9.2/savedqueries"
SECOND_PAGE_URL = "https://org.example.com/api/data/v9.2/savedqueries?$skiptoken=2"
THIRD_PAGE_URL = "https://org.example.com/api/data/v9.2/savedqueries?$skiptoken=3"


@pytest.mark.asyncio
async def test_fetch_all_pages_follows_next_link(httpx_mock: HTTPXMock):
    """Tests that every page is fetched and concatenated in page order."""
    httpx_mock.add_response(
        url=FIRST_PAGE_URL,
        json={"value": [{"id": 1}, {"id": 2}], "@odata.nextLink": SECOND_PAGE_URL},
    )
    httpx_mock.add_response(
        url=SECOND_PAGE_URL,
        json={"value": [{"id": 3}], "@odata.nextLink": THIRD_PAGE_URL},
    )
    httpx_mock.add_response(url=THIRD_PAGE_URL, json={"value": [{"id": 4}, {"id": 5}]})

    async with httpx.AsyncClient() as client:
        records = await fetch_all_pages(client, FIRST_PAGE_URL, "token")

    assert [r["id"] for r in records] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_fetch_all_pages_keeps_duplicates(httpx_mock: HTTPXMock):
    """Tests that overlapping pages are not deduplicated."""
    httpx_mock.add_response(
        url=FIRST_PAGE_URL,
        json={"value": [{"id": 1}, {"id": 2}], "@odata.nextLink": SECOND_PAGE_URL},
    )
    httpx_mock.add_response(url=SECOND_PAGE_URL, json={"value": [{"id": 2}]})

    async with httpx.AsyncClient() as client:
        records = await fetch_all_pages(client, FIRST_PAGE_URL, "token")

    assert [r["id"] for r in records] == [1, 2, 2]


@pytest.mark.asyncio
async def test_fetch_all_pages_treats_missing_value_as_empty(httpx_mock: HTTPXMock):
    httpx_mock.add_response(url=FIRST_PAGE_URL, json={"@odata.context": "ctx"})

    async with httpx.AsyncClient() as client:
        records = await fetch_all_pages(client, FIRST_PAGE_URL, "token")

    assert records == []


@pytest.mark.asyncio
async def test_fetch_all_pages_sends_bearer_token(httpx_mock: HTTPXMock):
    """Tests that the token and OData headers are sent on every request."""
    httpx_mock.add_response(
        url=FIRST_PAGE_URL,
        match_headers={"Authorization": "Bearer secret", "OData-Version": "4.0"},
        json={"value": []},
    )

    async with httpx.AsyncClient() as client:
        await fetch_all_pages(client, FIRST_PAGE_URL, "secret")

    request = httpx_mock.get_request()
    assert request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_fetch_all_pages_rejects_empty_token():
    async with httpx.AsyncClient() as client:
        with pytest.raises(ValueError):
            await fetch_all_pages(client, FIRST_PAGE_URL, "")


@pytest.mark.asyncio
async def test_fetch_all_pages_http_error_aborts(httpx_mock: HTTPXMock, caplog):
    """Tests that a failing page aborts the fetch without a partial result."""
    httpx_mock.add_response(
        url=FIRST_PAGE_URL,
        json={"value": [{"id": 1}], "@odata.nextLink": SECOND_PAGE_URL},
    )
    httpx_mock.add_response(url=SECOND_PAGE_URL, status_code=401)

    async with httpx.AsyncClient() as client:
        with pytest.raises(httpx.HTTPStatusError):
            await fetch_all_pages(client, FIRST_PAGE_URL, "token")

    assert "401" in caplog.text


@pytest.mark.asyncio
async def test_fetch_all_pages_transport_error_propagates(httpx_mock: HTTPXMock):
    httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=FIRST_PAGE_URL)

    async with httpx.AsyncClient() as client:
        with pytest.raises(httpx.ConnectError):
            await fetch_all_pages(client, FIRST_PAGE_URL, "token")
