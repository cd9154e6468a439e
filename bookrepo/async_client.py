"""Async HTTP client for the remote book store."""
import asyncio
import httpx
from typing import List, Optional, Dict, Any
import logging

from bookrepo.config import Config
from bookrepo.errors import NetworkFailure
from bookrepo.models import Book, Patch
from bookrepo.parse import parse_books_response, parse_created_book, error_for_status

logger = logging.getLogger(__name__)


class AsyncBookStoreClient:
    """Async client for non-blocking book store calls."""

    def __init__(
        self,
        base_url: str = Config.API_BASE_URL,
        books_path: str = Config.BOOKS_PATH,
        timeout: int = 10,
        max_concurrent: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize async client.

        Args:
            base_url: API root
            books_path: Collection path under the API root
            timeout: Request timeout
            max_concurrent: Maximum concurrent requests
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.books_path = "/" + books_path.strip("/")
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)

        # Create async HTTP client
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport
        )

    async def list_books(self) -> List[Book]:
        """
        Fetch every book asynchronously.

        Returns:
            Books in the order the store sent them
        """
        response = await self._request("GET", self.books_path)
        return parse_books_response(self._json(response))

    async def create_book(self, draft: Dict[str, Any]) -> Book:
        """
        Create a book and return it with its assigned id.

        Args:
            draft: Dict with title, author and year
        """
        response = await self._request("POST", self.books_path, json=draft)
        return parse_created_book(self._json(response))

    async def update_book(self, book_id: int, patch: Patch) -> None:
        await self._request("PUT", f"{self.books_path}/{book_id}", json=patch, book_id=book_id)

    async def delete_book(self, book_id: int) -> None:
        await self._request("DELETE", f"{self.books_path}/{book_id}", book_id=book_id)

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        book_id: Optional[int] = None
    ) -> httpx.Response:
        # Use semaphore to limit concurrency
        async with self.semaphore:
            try:
                logger.info(f"Async {method} {path}")
                response = await self.client.request(method, path, json=json)
            except httpx.TimeoutException as e:
                logger.warning(f"Async {method} {path} timed out")
                raise NetworkFailure("Request timed out", path=path) from e
            except httpx.HTTPError as e:
                logger.error(f"Async request failed: {e}")
                raise NetworkFailure("Request failed", path=path) from e

        if response.is_success:
            return response

        logger.warning(f"Status {response.status_code} for {method} {path}")
        raise error_for_status(response.status_code, response.text, book_id)

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise NetworkFailure("Invalid response: body is not JSON") from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
