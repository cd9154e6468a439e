"""HTTP client for the remote book store with resilience patterns."""
import asyncio
import time
import random
import requests
from typing import Optional, Dict, Any, List
import logging

from bookrepo.config import Config
from bookrepo.errors import NetworkFailure
from bookrepo.models import Book, Patch
from bookrepo.parse import parse_books_response, parse_created_book, error_for_status

logger = logging.getLogger(__name__)

# Methods that are safe to repeat after a timeout or 5xx
IDEMPOTENT_METHODS = {"GET", "PUT", "DELETE"}


class BookStoreClient:
    """Client for the book store REST API with timeouts, retries, and backoff."""

    def __init__(
        self,
        base_url: str = Config.API_BASE_URL,
        books_path: str = Config.BOOKS_PATH,
        timeout: int = 10,
        max_retries: int = 3,
        base_backoff: float = 1.0
    ):
        """
        Initialize the book store client.

        Args:
            base_url: API root, e.g. https://book-repo-api.azurewebsites.net
            books_path: Collection path under the API root
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts for idempotent calls
            base_backoff: Base delay for exponential backoff
        """
        self.base_url = base_url.rstrip("/")
        self.books_path = "/" + books_path.strip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_backoff = base_backoff

        # Create session for connection pooling
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    @property
    def books_url(self) -> str:
        return f"{self.base_url}{self.books_path}"

    def list_books(self) -> List[Book]:
        """
        Fetch every book in the store.

        Returns:
            Books in the order the store sent them

        Raises:
            NetworkFailure: on transport errors or an unusable body
        """
        response = self._request("GET", self.books_url)
        return parse_books_response(self._json(response))

    def create_book(self, draft: Dict[str, Any]) -> Book:
        """
        Create a book from a validated draft payload.

        Args:
            draft: Dict with title, author and year

        Returns:
            The created Book carrying its store-assigned id
        """
        response = self._request("POST", self.books_url, json=draft)
        return parse_created_book(self._json(response))

    def update_book(self, book_id: int, patch: Patch) -> None:
        """Send a partial update for one book."""
        self._request("PUT", f"{self.books_url}/{book_id}", json=patch, book_id=book_id)

    def delete_book(self, book_id: int) -> None:
        """Delete one book."""
        self._request("DELETE", f"{self.books_url}/{book_id}", book_id=book_id)

    def _request(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        book_id: Optional[int] = None
    ) -> requests.Response:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP verb
            url: Request URL
            json: Optional JSON body
            book_id: Target record, for error context

        Returns:
            The successful response

        Raises:
            NotFound, ValidationFailure: on 404 and 400/422
            NetworkFailure: once all attempts are exhausted
        """
        attempts = self.max_retries if method in IDEMPOTENT_METHODS else 1
        last_error: Optional[Exception] = None
        last_cause: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                logger.info(f"{method} attempt {attempt + 1}/{attempts}: {url}")

                response = self.session.request(
                    method,
                    url,
                    json=json,
                    timeout=self.timeout
                )

                # Handle different status codes
                if response.status_code < 300:
                    logger.info(f"Success: {response.status_code}")
                    return response

                last_error = error_for_status(response.status_code, response.text, book_id)
                last_cause = None

                if response.status_code == 429:
                    # Rate limited - must retry with backoff
                    logger.warning(f"Rate limited (429) on attempt {attempt + 1}")
                elif response.status_code >= 500:
                    # Server error - retryable
                    logger.warning(f"Server error ({response.status_code}) on attempt {attempt + 1}")
                else:
                    # Client error - don't retry
                    logger.error(f"Client error ({response.status_code}): {response.text}")
                    raise last_error

            except requests.exceptions.Timeout as e:
                logger.warning(f"Timeout on attempt {attempt + 1}")
                last_error = NetworkFailure("Request timed out", url=url)
                last_cause = e

            except requests.exceptions.ConnectionError as e:
                logger.warning(f"Connection error on attempt {attempt + 1}: {e}")
                last_error = NetworkFailure("Connection failed", url=url)
                last_cause = e

            except requests.exceptions.RequestException as e:
                logger.error(f"Unexpected request error: {e}")
                raise NetworkFailure("Request failed", url=url) from e

            if attempt < attempts - 1:
                self._backoff(attempt)

        logger.error(f"All {attempts} attempts failed for {method} {url}")
        raise last_error from last_cause

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise NetworkFailure("Invalid response: body is not JSON") from e

    def _backoff(self, attempt: int):
        """
        Sleep with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        # Exponential backoff: base * 2^attempt
        delay = self.base_backoff * (2 ** attempt)

        # Add jitter: random value between 0 and delay
        jitter = random.uniform(0, delay)
        total_delay = delay + jitter

        logger.info(f"Backing off for {total_delay:.2f} seconds")
        time.sleep(total_delay)

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class ThreadedBookStore:
    """Runs a blocking BookStoreClient off the event loop.

    Exposes the same coroutine interface as AsyncBookStoreClient so the
    catalog manager can drive either one.
    """

    def __init__(self, client: BookStoreClient):
        self.client = client

    async def list_books(self) -> List[Book]:
        return await asyncio.to_thread(self.client.list_books)

    async def create_book(self, draft: Dict[str, Any]) -> Book:
        return await asyncio.to_thread(self.client.create_book, draft)

    async def update_book(self, book_id: int, patch: Patch) -> None:
        await asyncio.to_thread(self.client.update_book, book_id, patch)

    async def delete_book(self, book_id: int) -> None:
        await asyncio.to_thread(self.client.delete_book, book_id)

    async def close(self):
        self.client.close()
