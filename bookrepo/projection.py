"""Filtered, paginated, edit-merged view of the collection."""
import math
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple

from bookrepo.models import Book
from bookrepo.sessions import EditSessionTracker

DEFAULT_PAGE_SIZE = 5


@dataclass(frozen=True)
class Row:
    """One rendered line: committed book plus any live edits."""
    book_id: int
    title: str
    author: str
    year: int
    is_editing: bool
    book: Book
    invalid_fields: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Projection:
    rows: Tuple[Row, ...]
    total_pages: int
    filtered_count: int
    current_page: int

    @property
    def is_empty(self) -> bool:
        return not self.rows


def matches(book: Book, search_text: str) -> bool:
    """Case-insensitive title substring match; empty search matches all."""
    needle = (search_text or "").lower()
    if not needle:
        return True
    title = getattr(book, "title", None)
    return bool(title) and needle in title.lower()


def filter_books(books: Iterable[Book], search_text: str) -> List[Book]:
    return [b for b in books if matches(b, search_text)]


def total_pages_for(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size))


def project(
    books: Iterable[Book],
    sessions: EditSessionTracker,
    search_text: str,
    current_page: int,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Projection:
    """
    Compute the rows to render.

    Args:
        books: Collection in insertion order
        sessions: Edit sessions to merge into the rows
        search_text: Title filter
        current_page: 1-based page, already clamped by the caller
        page_size: Rows per page

    Returns:
        Projection with the page's rows and the total page count

    Raises:
        ValueError: if page_size < 1 or current_page is out of range
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    filtered = filter_books(books, search_text)
    total_pages = total_pages_for(len(filtered), page_size)
    if not 1 <= current_page <= total_pages:
        raise ValueError(f"page {current_page} out of range 1..{total_pages}")

    start = (current_page - 1) * page_size
    rows = []
    for book in filtered[start:start + page_size]:
        editing = sessions.is_editing(book.book_id)
        patch = sessions.patch_for(book.book_id) if editing else {}
        rows.append(Row(
            book_id=book.book_id,
            title=patch.get("title", book.title),
            author=patch.get("author", book.author),
            year=patch.get("year", book.year),
            is_editing=editing,
            book=book,
            invalid_fields=sessions.invalid_fields(book.book_id),
        ))

    return Projection(
        rows=tuple(rows),
        total_pages=total_pages,
        filtered_count=len(filtered),
        current_page=current_page,
    )


class ViewState:
    """Search text and page cursor for the projection."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE, search_text: str = ""):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.page_size = page_size
        self.search_text = search_text
        self.current_page = 1

    def set_search(self, text: Optional[str]) -> None:
        text = text or ""
        if text != self.search_text:
            self.search_text = text
            self.current_page = 1

    def clamp(self, filtered_count: int) -> int:
        """Pull current_page back into range for the given filtered count."""
        last = total_pages_for(filtered_count, self.page_size)
        self.current_page = min(max(self.current_page, 1), last)
        return self.current_page

    def next_page(self, filtered_count: int) -> int:
        if self.current_page < total_pages_for(filtered_count, self.page_size):
            self.current_page += 1
        return self.current_page

    def prev_page(self) -> int:
        if self.current_page > 1:
            self.current_page -= 1
        return self.current_page
