"""Parse and normalize remote book store responses."""
import logging
from typing import Any, Dict, List, Optional

from bookrepo.errors import CatalogError, NetworkFailure, NotFound, ValidationFailure
from bookrepo.models import Book

logger = logging.getLogger(__name__)


def parse_book(item: Dict[str, Any]) -> Optional[Book]:
    """
    Parse a single book record from the remote store.

    Args:
        item: One JSON object from the store

    Returns:
        Book object or None if the record is unusable
    """
    if not isinstance(item, dict):
        logger.warning(f"Skipping non-object book record: {item!r}")
        return None
    try:
        return Book.from_dict(item)
    except ValueError as e:
        # Log but don't crash - one bad row shouldn't hide the rest
        logger.warning(f"Failed to parse book: {e}")
        return None


def parse_books_response(response_json: Any) -> List[Book]:
    """
    Parse the full list response.

    Args:
        response_json: Decoded JSON body of GET /books

    Returns:
        List of Book objects, malformed entries skipped

    Raises:
        NetworkFailure: if the body is not a JSON array
    """
    if not isinstance(response_json, list):
        raise NetworkFailure("Invalid response: expected a list of books",
                             got=type(response_json).__name__)

    books = []
    for item in response_json:
        book = parse_book(item)
        if book:
            books.append(book)

    skipped = len(response_json) - len(books)
    if skipped:
        logger.warning(f"Skipped {skipped} malformed book records")
    return books


def parse_created_book(response_json: Any) -> Book:
    """
    Parse the body returned by a create call.

    Raises:
        NetworkFailure: if the store did not send back a usable record
    """
    book = parse_book(response_json)
    if book is None:
        raise NetworkFailure("Invalid response: created book is malformed")
    return book


def error_for_status(status_code: int, body: str = "", book_id: Optional[int] = None) -> CatalogError:
    """
    Map a non-success HTTP status to a catalog error.

    Args:
        status_code: HTTP status returned by the store
        body: Response text, kept for the log
        book_id: Target record, if the call had one

    Returns:
        The error to raise
    """
    if status_code == 404:
        return NotFound("Book not found", book_id=book_id, status=status_code)
    if status_code in (400, 422):
        return ValidationFailure("Rejected by the book store", status=status_code, body=body[:200])
    return NetworkFailure("Book store error", status=status_code, body=body[:200])
