"""Local collection store: the last confirmed remote state."""
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from bookrepo.errors import DesyncWarning
from bookrepo.models import Book

logger = logging.getLogger(__name__)
desync_logger = logging.getLogger("bookrepo.desync")


@dataclass(frozen=True)
class ReplaceAll:
    books: Tuple[Book, ...]


@dataclass(frozen=True)
class AddBook:
    book: Book


@dataclass(frozen=True)
class UpdateBook:
    book: Book


@dataclass(frozen=True)
class RemoveBook:
    book_id: int


Intent = Union[ReplaceAll, AddBook, UpdateBook, RemoveBook]


@dataclass(frozen=True)
class Transition:
    """Result of applying one intent."""
    books: Tuple[Book, ...]
    warning: Optional[DesyncWarning] = None


def reduce_books(books: Tuple[Book, ...], intent: Intent) -> Transition:
    """
    Apply a mutation intent to a collection.

    Pure: the input tuple is never modified. A desync leaves the
    collection as it was (apart from dropping duplicates on ReplaceAll)
    and is returned as the transition's warning.

    Args:
        books: Current collection in insertion order
        intent: One of ReplaceAll, AddBook, UpdateBook, RemoveBook

    Returns:
        Transition with the new collection and an optional warning
    """
    if isinstance(intent, ReplaceAll):
        seen = set()
        unique: List[Book] = []
        warning = None
        for book in intent.books:
            if book.book_id in seen:
                warning = warning or DesyncWarning("replace-all duplicate", book.book_id)
                continue
            seen.add(book.book_id)
            unique.append(book)
        return Transition(tuple(unique), warning)

    if isinstance(intent, AddBook):
        if any(b.book_id == intent.book.book_id for b in books):
            return Transition(books, DesyncWarning("add duplicate", intent.book.book_id))
        return Transition(books + (intent.book,))

    if isinstance(intent, UpdateBook):
        target = intent.book.book_id
        if not any(b.book_id == target for b in books):
            return Transition(books, DesyncWarning("update missing", target))
        return Transition(tuple(intent.book if b.book_id == target else b for b in books))

    if isinstance(intent, RemoveBook):
        remaining = tuple(b for b in books if b.book_id != intent.book_id)
        if len(remaining) == len(books):
            return Transition(books, DesyncWarning("remove missing", intent.book_id))
        return Transition(remaining)

    raise TypeError(f"Unknown intent: {intent!r}")


class CollectionStore:
    """Holds the book collection and applies intents to it."""

    def __init__(self, books: Sequence[Book] = ()):
        self._books: Tuple[Book, ...] = ()
        if books:
            self.replace_all(books)

    @property
    def books(self) -> Tuple[Book, ...]:
        return self._books

    def dispatch(self, intent: Intent) -> Optional[DesyncWarning]:
        """Apply an intent; log and return any desync warning."""
        transition = reduce_books(self._books, intent)
        self._books = transition.books
        if transition.warning is not None:
            desync_logger.warning(str(transition.warning))
        else:
            logger.debug(f"Applied {type(intent).__name__}: {len(self._books)} books")
        return transition.warning

    def replace_all(self, books: Sequence[Book]) -> Optional[DesyncWarning]:
        return self.dispatch(ReplaceAll(tuple(books)))

    def add(self, book: Book) -> Optional[DesyncWarning]:
        return self.dispatch(AddBook(book))

    def update(self, book: Book) -> Optional[DesyncWarning]:
        return self.dispatch(UpdateBook(book))

    def remove(self, book_id: int) -> Optional[DesyncWarning]:
        return self.dispatch(RemoveBook(book_id))

    def get(self, book_id: int) -> Optional[Book]:
        for book in self._books:
            if book.book_id == book_id:
                return book
        return None

    def ids(self) -> List[int]:
        return [b.book_id for b in self._books]

    def __len__(self) -> int:
        return len(self._books)

    def __iter__(self) -> Iterator[Book]:
        return iter(self._books)

    def __contains__(self, book_id: object) -> bool:
        return any(b.book_id == book_id for b in self._books)
