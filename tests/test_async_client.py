"""Tests for the async book store client."""
import json

import httpx
import pytest

from bookrepo.async_client import AsyncBookStoreClient
from bookrepo.errors import NetworkFailure, NotFound, ValidationFailure
from bookrepo.models import Book
from bookrepo.orchestrator import CatalogManager

BASE_URL = "https://books.example.test"


class BookStoreHandler:
    """Minimal in-memory REST handler for httpx.MockTransport."""

    def __init__(self, books):
        self.books = {b["book_id"]: dict(b) for b in books}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")
        if parts[0] != "books":
            return httpx.Response(404)

        if len(parts) == 1 and request.method == "GET":
            return httpx.Response(200, json=list(self.books.values()))
        if len(parts) == 1 and request.method == "POST":
            draft = json.loads(request.content)
            if not isinstance(draft.get("year"), int):
                return httpx.Response(422, json={"detail": "year"})
            book = {"book_id": max(self.books, default=0) + 1, **draft}
            self.books[book["book_id"]] = book
            return httpx.Response(201, json=book)

        book_id = int(parts[1])
        if book_id not in self.books:
            return httpx.Response(404, json={"detail": "not found"})
        if request.method == "PUT":
            self.books[book_id].update(json.loads(request.content))
            return httpx.Response(200, json={"message": "updated"})
        if request.method == "DELETE":
            del self.books[book_id]
            return httpx.Response(204)
        return httpx.Response(405)


def make_client(handler):
    return AsyncBookStoreClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


@pytest.fixture
def handler():
    return BookStoreHandler([
        {"book_id": 1, "title": "Dune", "author": "Herbert", "year": 1965},
        {"book_id": 2, "title": "It", "author": "King", "year": 1986},
    ])


@pytest.mark.asyncio
async def test_list_books(handler):
    async with make_client(handler) as client:
        books = await client.list_books()

    assert books == [Book(1, "Dune", "Herbert", 1965), Book(2, "It", "King", 1986)]
    assert handler.requests[0].headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_create_update_delete(handler):
    async with make_client(handler) as client:
        created = await client.create_book({"title": "Carrie", "author": "King", "year": 1974})
        await client.update_book(2, {"year": 1987})
        await client.delete_book(1)

    assert created == Book(3, "Carrie", "King", 1974)
    assert handler.books[2]["year"] == 1987
    assert 1 not in handler.books
    assert [r.method for r in handler.requests] == ["POST", "PUT", "DELETE"]


@pytest.mark.asyncio
async def test_missing_book_raises_not_found(handler):
    async with make_client(handler) as client:
        with pytest.raises(NotFound) as exc_info:
            await client.update_book(99, {"title": "Nope"})

    assert exc_info.value.book_id == 99


@pytest.mark.asyncio
async def test_rejected_draft_raises_validation_failure(handler):
    async with make_client(handler) as client:
        with pytest.raises(ValidationFailure):
            await client.create_book({"title": "Carrie", "author": "King", "year": "1974?"})


@pytest.mark.asyncio
async def test_server_error_raises_network_failure():
    async with make_client(lambda request: httpx.Response(502, text="bad gateway")) as client:
        with pytest.raises(NetworkFailure):
            await client.list_books()


@pytest.mark.asyncio
async def test_transport_error_raises_network_failure():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    async with make_client(refuse) as client:
        with pytest.raises(NetworkFailure) as exc_info:
            await client.delete_book(1)

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_manager_over_http(handler):
    """Test the manager end to end against the mock REST store."""
    async with make_client(handler) as client:
        manager = CatalogManager(client)
        assert await manager.load()

        manager.begin_edit(2)
        manager.edit_field(2, "year", "1987")
        assert (await manager.save_edit(2)).year == 1987

        assert await manager.delete_book(1)
        assert not await manager.delete_book(1)

    assert [b.book_id for b in manager.books] == [2]
    assert isinstance(manager.last_error, NotFound)


@pytest.mark.asyncio
async def test_books_path_is_configurable():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json=[])

    client = AsyncBookStoreClient(
        base_url=BASE_URL, books_path="catalog", transport=httpx.MockTransport(handler)
    )
    async with client:
        assert await client.list_books() == []
        await client.update_book(3, {"year": 2001})

    assert seen == ["/catalog", "/catalog/3"]
